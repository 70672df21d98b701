"""Identity reconciliation: one app registration and one principal per role.

Each role walks a small state machine:

    UNRESOLVED
      -> REGISTRATION_FOUND | REGISTRATION_CREATED
      -> PRINCIPAL_FOUND    | PRINCIPAL_CREATED
      -> RESOLVED

Both steps look up before they create, keyed on the deterministic display
name and the appId. A run that crashed after creating the registration but
before the principal therefore resumes at the principal step on re-run.
"""

from __future__ import annotations

import logging

from .directory import DirectoryClient
from .models import IdentityResolution, IdentityRole, ReconcileState, display_name
from .security import log_audit_event

logger = logging.getLogger(__name__)


class IdentityReconciler:
    """Find or create the directory identity for a (environment, role) pair."""

    def __init__(self, directory: DirectoryClient) -> None:
        self._directory = directory

    def reconcile(self, environment: str, role: IdentityRole) -> IdentityResolution:
        """Resolve the registration and principal for a role.

        Returns:
            IdentityResolution in the RESOLVED state.

        Raises:
            RegistryError: If a lookup is ambiguous or a create call fails.
        """
        name = display_name(environment, role)
        resolution = IdentityResolution(role=role, display_name=name)

        app_id = self._directory.find_application(name)
        if app_id:
            resolution.advance(ReconcileState.REGISTRATION_FOUND)
            logger.info(f"Found app registration '{name}' (appId={app_id})")
        else:
            app_id = self._directory.create_application(name)
            resolution.advance(ReconcileState.REGISTRATION_CREATED)
            log_audit_event("app_registration", environment, name, "create", "success")
        resolution.app_id = app_id

        principal_id = self._directory.find_service_principal(app_id)
        if principal_id:
            resolution.advance(ReconcileState.PRINCIPAL_FOUND)
            logger.info(f"Found service principal {principal_id} for '{name}'")
        else:
            principal_id = self._directory.create_service_principal(app_id)
            resolution.advance(ReconcileState.PRINCIPAL_CREATED)
            log_audit_event("service_principal", environment, name, "create", "success")
        resolution.principal_id = principal_id

        resolution.advance(ReconcileState.RESOLVED)
        logger.info(
            f"Resolved {role.name.lower()} identity '{name}'",
            extra={
                "app_id": app_id,
                "principal_id": principal_id,
                "states": [state.value for state in resolution.states],
            },
        )
        return resolution
