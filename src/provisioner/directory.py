"""Entra ID directory client over the az CLI.

Lookups are name/filter based list queries. An empty list means the resource
is absent; that is never an error. More than one match is refused, because
the display name is the only deduplication key and picking one at random
would bind the environment to an arbitrary identity.
"""

from __future__ import annotations

import logging
from typing import Any

from .commands import CommandError, CommandRunner
from .errors import RegistryError

logger = logging.getLogger(__name__)


class AmbiguousLookupError(RegistryError):
    """Raised when a name lookup matches more than one resource."""

    pass


class DirectoryClient:
    """Application registrations, service principals and the az account."""

    def __init__(self, runner: CommandRunner, az_executable: str = "az") -> None:
        self._runner = runner
        self._az = az_executable

    def _json(self, *args: str) -> Any:
        return self._runner.run_json([self._az, *args, "--output", "json"])

    @staticmethod
    def _single(items: Any, kind: str, key: str, lookup: str) -> str | None:
        if not items:
            return None
        if not isinstance(items, list):
            raise RegistryError(f"Unexpected {kind} lookup result for {lookup}: {items!r}")
        if len(items) > 1:
            ids = ", ".join(str(item.get(key)) for item in items)
            raise AmbiguousLookupError(
                f"{len(items)} {kind}s match {lookup} ({ids}). "
                "Delete the duplicates or rename them, then re-run."
            )
        value = items[0].get(key)
        if not value:
            raise RegistryError(f"{kind} matching {lookup} has no '{key}'")
        return str(value)

    # -------------------------------------------------------------------------
    # Application registrations
    # -------------------------------------------------------------------------

    def find_application(self, display_name: str) -> str | None:
        """Return the appId of the registration with this display name."""
        items = self._json("ad", "app", "list", "--display-name", display_name)
        # --display-name is a startswith filter on some az versions
        if isinstance(items, list):
            items = [item for item in items if item.get("displayName") == display_name]
        return self._single(items, "app registration", "appId", f"'{display_name}'")

    def create_application(self, display_name: str) -> str:
        """Create a single-tenant registration and return its appId."""
        app = self._json(
            "ad",
            "app",
            "create",
            "--display-name",
            display_name,
            "--sign-in-audience",
            "AzureADMyOrg",
        )
        if not isinstance(app, dict) or not app.get("appId"):
            raise RegistryError(f"App registration '{display_name}' returned no appId")
        logger.info(f"Created app registration '{display_name}' with appId={app['appId']}")
        return str(app["appId"])

    # -------------------------------------------------------------------------
    # Service principals
    # -------------------------------------------------------------------------

    def find_service_principal(self, app_id: str) -> str | None:
        """Return the object id of the principal for an appId."""
        items = self._json("ad", "sp", "list", "--filter", f"appId eq '{app_id}'")
        return self._single(items, "service principal", "id", f"appId {app_id}")

    def create_service_principal(self, app_id: str) -> str:
        """Create the principal for an appId and return its object id."""
        sp = self._json("ad", "sp", "create", "--id", app_id)
        if not isinstance(sp, dict) or not sp.get("id"):
            raise RegistryError(f"Service principal for appId {app_id} returned no id")
        logger.info(f"Created service principal {sp['id']} for appId={app_id}")
        return str(sp["id"])

    def reset_credential(self, principal_id: str) -> str:
        """Replace the principal's password credential.

        The previous secret stops working. Returns an empty string when the
        CLI answers without a password, leaving the caller to decide.
        """
        result = self._json("ad", "sp", "credential", "reset", "--id", principal_id)
        if not isinstance(result, dict):
            return ""
        return str(result.get("password") or "")

    # -------------------------------------------------------------------------
    # Account and subscription
    # -------------------------------------------------------------------------

    def show_signed_in_account(self) -> dict[str, Any] | None:
        """Return the signed-in account, or None when nobody is logged in."""
        try:
            account = self._json("account", "show")
        except CommandError as e:
            logger.info(f"No az account signed in: {e}")
            return None
        return account if isinstance(account, dict) else None

    def show_subscription(self, subscription_id: str) -> dict[str, Any]:
        """Return the subscription record visible to the signed-in account."""
        subscription = self._json("account", "show", "--subscription", subscription_id)
        if not isinstance(subscription, dict):
            raise RegistryError(f"Subscription {subscription_id} not found")
        return subscription

    def login(self) -> None:
        """Start the interactive az login flow."""
        self._runner.interactive([self._az, "login"])
