"""Subscription role assignments for the deployment identity.

Assignment names are deterministic (uuid5 of principal, role and scope),
so re-running produces the same assignment id. Azure answers an existing
assignment with 409 Conflict, which counts as success here. Any other
failure stops the run: downstream deployment assumes full access.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable

from azure.core.exceptions import AzureError, HttpResponseError, ResourceExistsError
from azure.mgmt.authorization import AuthorizationManagementClient
from azure.mgmt.authorization.models import RoleAssignmentCreateParameters

from .errors import RegistryError
from .models import RoleAssignmentOutcome
from .security import get_cli_credential, log_audit_event

logger = logging.getLogger(__name__)

VALID_GUID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"

# Well-known Azure built-in role GUIDs (identical in every tenant)
BUILTIN_ROLES: dict[str, str] = {
    "Owner": "8e3af657-a8ff-443c-a75c-2fe8c4bcb635",
    "Contributor": "b24988ac-6180-42a0-ab88-20f7382dd24c",
    "Reader": "acdd72a7-3385-48ef-bd42-f606fba81ae7",
    "User Access Administrator": "18d7d88d-d35e-4fb5-a5c3-7773c20a72d9",
    "Role Based Access Control Administrator": "f58310d9-a9f6-439a-9e8d-f62e7b41a168",
    "Key Vault Administrator": "00482a5a-887f-4fb3-b363-3b7fe8e74483",
    "Key Vault Secrets User": "4633458b-17de-408a-b874-0445c86b69e6",
    "Storage Blob Data Contributor": "ba92f5b4-2d11-453d-a403-e96b0029c9fe",
    "Website Contributor": "de139f84-1756-47ae-9be6-808fbbe84772",
    "Logic App Contributor": "87a39d53-fc1b-424a-814c-f7e04687dc9e",
}


class RoleAssignmentError(RegistryError):
    """Raised when a role assignment is rejected for any reason but 'exists'."""

    pass


def subscription_scope(subscription_id: str) -> str:
    return f"/subscriptions/{subscription_id}"


def get_role_definition_guid(role_name: str) -> str:
    """Map a built-in role name to its GUID; custom roles are given as GUIDs.

    Raises:
        ValueError: If the role is neither a known built-in nor a GUID.
    """
    if role_name in BUILTIN_ROLES:
        return BUILTIN_ROLES[role_name]

    if not re.match(VALID_GUID_PATTERN, role_name.lower()):
        raise ValueError(
            f"Role '{role_name}' is not a recognized built-in role and is not a valid GUID. "
            f"Custom roles must be specified as GUIDs (xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx)."
        )
    return role_name.lower()


def assignment_name(principal_id: str, role_guid: str, scope: str) -> str:
    """Deterministic role assignment name for (principal, role, scope)."""
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, f"{principal_id}:{role_guid}:{scope}"))


class RoleAssignmentClient:
    """Create role assignments through the Azure authorization API."""

    def __init__(self, subscription_id: str) -> None:
        self._subscription_id = subscription_id
        self._client = AuthorizationManagementClient(
            credential=get_cli_credential(),
            subscription_id=subscription_id,
        )

    def create(self, scope: str, role_name: str, principal_id: str) -> RoleAssignmentOutcome:
        """Assign role_name to principal_id at scope.

        Returns:
            Outcome with created=False when the assignment already existed.

        Raises:
            RoleAssignmentError: On any failure other than 'already exists'.
        """
        try:
            role_guid = get_role_definition_guid(role_name)
        except ValueError as e:
            raise RoleAssignmentError(str(e)) from e

        role_definition_id = (
            f"{subscription_scope(self._subscription_id)}"
            f"/providers/Microsoft.Authorization/roleDefinitions/{role_guid}"
        )
        name = assignment_name(principal_id, role_guid, scope)
        outcome = RoleAssignmentOutcome(
            role_name=role_name,
            role_definition_id=role_definition_id,
            assignment_name=name,
            scope=scope,
            created=True,
        )

        try:
            self._client.role_assignments.create(
                scope=scope,
                role_assignment_name=name,
                parameters=RoleAssignmentCreateParameters(
                    role_definition_id=role_definition_id,
                    principal_id=principal_id,
                    # Lets ARM accept principals not yet replicated in Entra ID
                    principal_type="ServicePrincipal",
                ),
            )
        except ResourceExistsError:
            outcome.created = False
        except HttpResponseError as e:
            if e.status_code == 409:
                outcome.created = False
            else:
                error_code = e.error.code if e.error else None
                logger.error(
                    f"Failed to assign role '{role_name}': {e}",
                    extra={"status_code": e.status_code, "error_code": error_code},
                )
                raise RoleAssignmentError(
                    f"Role assignment '{role_name}' at {scope} failed "
                    f"({e.status_code}): {e.message}"
                ) from e
        except AzureError as e:
            logger.error(f"Azure error assigning role '{role_name}': {e}")
            raise RoleAssignmentError(
                f"Role assignment '{role_name}' at {scope} failed: {e}"
            ) from e

        return outcome


class RoleAssignmentEnforcer:
    """Ensure a fixed set of roles is held by a principal on a subscription."""

    def __init__(self, client: RoleAssignmentClient, roles: Iterable[str]) -> None:
        self._client = client
        self._roles = tuple(roles)

    @property
    def roles(self) -> tuple[str, ...]:
        return self._roles

    def enforce(
        self,
        subscription_id: str,
        principal_id: str,
        environment: str,
    ) -> list[RoleAssignmentOutcome]:
        """Assign every configured role; stop at the first real failure."""
        scope = subscription_scope(subscription_id)
        outcomes: list[RoleAssignmentOutcome] = []

        for role_name in self._roles:
            try:
                outcome = self._client.create(scope, role_name, principal_id)
            except RoleAssignmentError:
                log_audit_event("role_assignment", environment, role_name, "assign", "failure")
                raise

            if outcome.created:
                logger.info(f"Assigned role '{role_name}' to {principal_id} at {scope}")
                log_audit_event("role_assignment", environment, role_name, "assign", "success")
            else:
                logger.info(f"Role '{role_name}' already assigned to {principal_id} at {scope}")
            outcomes.append(outcome)

        return outcomes
