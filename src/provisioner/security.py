"""Credential handling and audit logging.

SECURITY INVARIANTS:
1. Client secrets are never written to logs, only to the azd environment store
2. Azure SDK calls authenticate with the operator's az CLI session
3. Every create, reset or assign call emits an audit event
"""

from __future__ import annotations

import logging

from azure.identity import AzureCliCredential

logger = logging.getLogger(__name__)

# Seconds to wait for 'az account get-access-token'
CLI_CREDENTIAL_TIMEOUT_SECONDS = 30

MASK = "****"
VISIBLE_SECRET_CHARS = 3


def mask_secret(value: str | None) -> str:
    """Mask a secret for display, keeping a short prefix for recognition."""
    if not value:
        return "<empty>"
    if len(value) <= VISIBLE_SECRET_CHARS * 2:
        return MASK
    return value[:VISIBLE_SECRET_CHARS] + MASK


def get_cli_credential() -> AzureCliCredential:
    """Get a credential backed by the signed-in az CLI account.

    The operator confirms that account interactively before any mutation,
    so SDK calls act as the same identity as the CLI calls.
    """
    logger.debug("Using Azure CLI credential")
    return AzureCliCredential(process_timeout=CLI_CREDENTIAL_TIMEOUT_SECONDS)


def log_audit_event(
    event_type: str,
    environment: str,
    target_resource: str | None = None,
    action: str | None = None,
    result: str | None = None,
) -> None:
    """Log a mutation of an external registry.

    Args:
        event_type: Kind of resource (app_registration, role_assignment, ...).
        environment: azd environment the run is provisioning.
        target_resource: Display name, id or URL of the resource.
        action: Action performed (create, reset, assign).
        result: Result of the action (success, exists, failure).
    """
    logger.info(
        f"Audit: {event_type} {action or ''}".rstrip(),
        extra={
            "audit": True,
            "event_type": event_type,
            "environment": environment,
            "target_resource": target_resource,
            "action": action,
            "result": result,
        },
    )
