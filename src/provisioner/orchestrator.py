"""Post-provision sequence for an azd environment.

Steps run strictly in order, each behind an operator checkpoint:

1. Confirm the target environment and the signed-in az account
2. Confirm the subscription bound to the environment
3. Reconcile the deployment identity (sp-<env>-azure)
4. Reconcile the integration identity (sp-<env>-dataverse) and reset its secret
5. Grant the deployment identity its subscription roles
6. Confirm the pac account and resolve the Dataverse environment

Every derived value is written to the environment store as soon as it is
known. Nothing is rolled back on failure; re-running converges because each
creation step looks up by name first.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .config import ProvisionerConfig, check_environment_name
from .directory import DirectoryClient
from .env_store import EnvironmentStore
from .errors import PreconditionError, ProvisioningAborted, RegistryError
from .gate import ConfirmationGate
from .identity import IdentityReconciler
from .models import (
    AZURE_SERVICE_PRINCIPAL_NAME,
    AZURE_SUBSCRIPTION_ID,
    DATAVERSE_CLIENT_ID,
    DATAVERSE_CLIENT_SECRET,
    DATAVERSE_ENV_URL,
    DATAVERSE_SERVICE_PRINCIPAL_NAME,
    SECRET_KEYS,
    IdentityResolution,
    IdentityRole,
    ProvisionResult,
    RoleAssignmentOutcome,
    display_name,
)
from .platform import PlatformClient, PlatformEnvironmentResolver
from .role_assignments import RoleAssignmentClient, RoleAssignmentEnforcer, subscription_scope
from .security import log_audit_event, mask_secret

logger = logging.getLogger(__name__)

RoleClientFactory = Callable[[str], RoleAssignmentClient]


class Provisioner:
    """Run the reconciliation sequence for one azd environment."""

    def __init__(
        self,
        config: ProvisionerConfig,
        gate: ConfirmationGate,
        store: EnvironmentStore,
        directory: DirectoryClient,
        platform: PlatformClient,
        role_client_factory: RoleClientFactory = RoleAssignmentClient,
    ) -> None:
        """Initialize the provisioner.

        Args:
            config: Provisioner configuration.
            gate: Operator confirmation boundary.
            store: azd environment variable store.
            directory: Entra ID client.
            platform: Power Platform client.
            role_client_factory: Builds a role assignment client for a subscription id.
        """
        self._config = config
        self._gate = gate
        self._store = store
        self._directory = directory
        self._platform = platform
        self._role_client_factory = role_client_factory
        self._identities = IdentityReconciler(directory)
        self._resolver = PlatformEnvironmentResolver(
            platform, gate, config.resolved_template_path
        )

    def run(
        self,
        environment_name: str | None = None,
        dataverse_url: str | None = None,
    ) -> ProvisionResult:
        """Run every step and return what was derived.

        Raises:
            ProvisioningAborted: If the operator rejects a checkpoint.
            PreconditionError: If the environment or a required tool is missing.
            RegistryError: If an external registry rejects a mutation.
        """
        environment = self._select_environment(environment_name)
        self._confirm_azure_account()
        subscription_id = self._confirm_subscription(environment)

        result = ProvisionResult(environment_name=environment, subscription_id=subscription_id)

        deployment = self._reconcile_identity(environment, IdentityRole.DEPLOYMENT)
        result.deployment_identity = deployment
        self._persist(result, AZURE_SERVICE_PRINCIPAL_NAME, deployment.display_name)

        integration = self._reconcile_identity(environment, IdentityRole.INTEGRATION)
        result.integration_identity = integration
        self._persist(result, DATAVERSE_SERVICE_PRINCIPAL_NAME, integration.display_name)
        self._persist(result, DATAVERSE_CLIENT_ID, integration.app_id or "")
        secret = self._reset_secret(environment, integration)
        result.secret_missing = not secret
        self._persist(result, DATAVERSE_CLIENT_SECRET, secret)

        result.role_assignments = self._enforce_roles(environment, subscription_id, deployment)

        self._confirm_platform_account()
        platform = self._resolver.resolve(
            environment,
            supplied_url=dataverse_url,
            persisted_url=self._store.get_variable(environment, DATAVERSE_ENV_URL),
        )
        result.platform = platform
        self._persist(result, DATAVERSE_ENV_URL, platform.url)

        # Application user assignment is left to the operator
        logger.info(
            "Next step: add the integration identity as an application user "
            f"(app id {integration.app_id}) in {platform.url}, "
            f"e.g. 'pac admin assign-user --environment {platform.url} "
            f"--user {integration.app_id} --role \"System Administrator\" --application-user'"
        )

        logger.info(
            "Provisioning complete",
            extra={
                "environment": environment,
                "created_count": result.created_count,
                "variables": sorted(result.variables),
            },
        )
        return result

    # -------------------------------------------------------------------------
    # Checkpoints
    # -------------------------------------------------------------------------

    def _select_environment(self, override: str | None) -> str:
        environment = override or self._config.environment_name
        if not environment:
            environment = self._store.get_default_environment()
            name_error = check_environment_name(environment)
            if name_error:
                raise PreconditionError(
                    f"Default environment in {self._store.registry_path} {name_error}"
                )

        if not self._gate.confirm(
            "Provision this azd environment?", f"Environment: {environment}"
        ):
            raise ProvisioningAborted(
                f"Environment '{environment}' rejected.",
                remediation="Select the target with 'azd env select <name>' and re-run.",
            )
        return environment

    def _confirm_azure_account(self) -> None:
        """Confirm the az account, re-authenticating until the operator agrees."""
        while True:
            account = self._directory.show_signed_in_account()
            if account:
                user = (account.get("user") or {}).get("name", "<unknown>")
                summary = f"Azure account: {user} (tenant {account.get('tenantId', '<unknown>')})"
                if self._gate.confirm("Use this Azure account?", summary):
                    return
            logger.info("Starting az login")
            self._directory.login()

    def _confirm_subscription(self, environment: str) -> str:
        subscription_id = self._store.get_variable(environment, AZURE_SUBSCRIPTION_ID)
        if not subscription_id:
            raise PreconditionError(
                f"{AZURE_SUBSCRIPTION_ID} is not set for environment '{environment}'. "
                f"Run 'azd env set {AZURE_SUBSCRIPTION_ID} <id>' first."
            )

        subscription = self._directory.show_subscription(subscription_id)
        summary = f"Subscription: {subscription.get('name', '<unknown>')} ({subscription_id})"
        if not self._gate.confirm("Provision into this subscription?", summary):
            raise ProvisioningAborted(
                f"Subscription {subscription_id} rejected.",
                remediation=(
                    f"Run 'azd env set {AZURE_SUBSCRIPTION_ID} <id>' for '{environment}' "
                    "and re-run."
                ),
            )
        return subscription_id

    def _confirm_platform_account(self) -> None:
        """Confirm the pac profile, re-authenticating until the operator agrees."""
        while True:
            account = self._platform.show_signed_in_account()
            if account and self._gate.confirm("Use this Power Platform account?", account):
                return
            logger.info("Starting pac auth create")
            self._platform.login()

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _reconcile_identity(self, environment: str, role: IdentityRole) -> IdentityResolution:
        name = display_name(environment, role)
        if not self._gate.confirm(
            f"Find or create the {role.name.lower()} service principal?",
            f"Service principal: {name}",
        ):
            raise ProvisioningAborted(
                f"Service principal '{name}' rejected.",
                remediation="Nothing was created for it; re-run when ready.",
            )
        return self._identities.reconcile(environment, role)

    def _reset_secret(self, environment: str, identity: IdentityResolution) -> str:
        """Issue a new client secret; failures and empty answers only warn."""
        if not self._gate.confirm(
            "Reset the integration client secret?",
            f"Service principal: {identity.display_name}\n"
            f"The current {DATAVERSE_CLIENT_SECRET} stops working after the reset.",
        ):
            raise ProvisioningAborted(
                f"Credential reset for '{identity.display_name}' rejected.",
                remediation=(
                    f"The existing secret stays valid. Re-run and approve the reset when "
                    f"{DATAVERSE_CLIENT_SECRET} can be replaced."
                ),
            )

        try:
            secret = self._directory.reset_credential(identity.principal_id or "")
        except RegistryError as e:
            self._audit_reset(environment, identity, "failure")
            self._warn_missing_secret(identity, f"failed: {e}")
            return ""

        if secret:
            self._audit_reset(environment, identity, "success")
        else:
            self._audit_reset(environment, identity, "empty")
            self._warn_missing_secret(identity, "returned no secret")
        return secret

    def _audit_reset(self, environment: str, identity: IdentityResolution, outcome: str) -> None:
        log_audit_event(
            "service_principal_credential", environment, identity.display_name, "reset", outcome
        )

    def _warn_missing_secret(self, identity: IdentityResolution, reason: str) -> None:
        logger.warning(
            f"Credential reset for '{identity.display_name}' {reason}; "
            f"{DATAVERSE_CLIENT_SECRET} will be empty. Reset it manually with "
            f"'az ad sp credential reset --id {identity.principal_id}'."
        )

    def _enforce_roles(
        self, environment: str, subscription_id: str, identity: IdentityResolution
    ) -> list[RoleAssignmentOutcome]:
        scope = subscription_scope(subscription_id)
        if not self._gate.confirm(
            "Grant the subscription roles to the deployment identity?",
            f"Service principal: {identity.display_name}\n"
            f"Roles: {', '.join(self._config.roles)}\n"
            f"Scope: {scope}",
        ):
            raise ProvisioningAborted(
                f"Role assignments for '{identity.display_name}' rejected.",
                remediation="Adjust PROVISION_ROLES if needed and re-run.",
            )

        enforcer = RoleAssignmentEnforcer(
            self._role_client_factory(subscription_id), self._config.roles
        )
        return enforcer.enforce(subscription_id, identity.principal_id or "", environment)

    def _persist(self, result: ProvisionResult, key: str, value: str) -> None:
        self._store.set_variable(result.environment_name, key, value)
        result.variables[key] = value
        shown = mask_secret(value) if key in SECRET_KEYS else value
        logger.info(f"Set {key}={shown}", extra={"environment": result.environment_name})
