"""Pydantic models and result types for provisioning.

These models provide:
1. Type-safe parsing of the azd environment registry and platform template
2. Validation at the boundary (fail fast, fail loudly)
3. Plain result records handed back to the CLI
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, field_validator

# =============================================================================
# Persisted variable keys
# =============================================================================

AZURE_SUBSCRIPTION_ID = "AZURE_SUBSCRIPTION_ID"
AZURE_SERVICE_PRINCIPAL_NAME = "AZURE_SERVICE_PRINCIPAL_NAME"
DATAVERSE_SERVICE_PRINCIPAL_NAME = "DATAVERSE_SERVICE_PRINCIPAL_NAME"
DATAVERSE_CLIENT_ID = "DATAVERSE_CLIENT_ID"
DATAVERSE_CLIENT_SECRET = "DATAVERSE_CLIENT_SECRET"
DATAVERSE_ENV_URL = "DATAVERSE_ENV_URL"

PERSISTED_KEYS: tuple[str, ...] = (
    AZURE_SERVICE_PRINCIPAL_NAME,
    DATAVERSE_SERVICE_PRINCIPAL_NAME,
    DATAVERSE_CLIENT_ID,
    DATAVERSE_CLIENT_SECRET,
    DATAVERSE_ENV_URL,
)

SECRET_KEYS: frozenset[str] = frozenset({DATAVERSE_CLIENT_SECRET})


# =============================================================================
# File formats
# =============================================================================


class EnvironmentRegistry(BaseModel):
    """The azd environment registry (.azure/config.json)."""

    model_config = {"extra": "ignore"}

    default_environment: Annotated[str, Field(min_length=1, alias="defaultEnvironment")]


class PlatformEnvironmentTemplate(BaseModel):
    """Declarative template for a new Dataverse environment."""

    model_config = {"extra": "ignore"}

    name_prefix: str = Field(alias="namePrefix")
    domain_prefix: str = Field(alias="domainPrefix")
    type: Annotated[str, Field(min_length=1)]
    region: Annotated[str, Field(min_length=1)]
    language: Annotated[str, Field(min_length=1)]
    currency: Annotated[str, Field(min_length=1)]

    @field_validator("domain_prefix")
    @classmethod
    def validate_domain_prefix(cls, v: str) -> str:
        if any(ch.isspace() for ch in v):
            raise ValueError("domainPrefix must not contain whitespace")
        return v

    def environment_name(self, environment: str) -> str:
        """Display name of the platform environment for an azd environment."""
        return f"{self.name_prefix}{environment}"

    def environment_domain(self, environment: str) -> str:
        """Domain of the platform environment; always lowercase."""
        return f"{self.domain_prefix}{environment}".lower()

    def describe(self, environment: str) -> dict[str, str]:
        """Settings shown to the operator before creation."""
        return {
            "name": self.environment_name(environment),
            "domain": self.environment_domain(environment),
            "type": self.type,
            "region": self.region,
            "language": self.language,
            "currency": self.currency,
        }


# =============================================================================
# Identity reconciliation
# =============================================================================


class IdentityRole(str, Enum):
    """Logical identities provisioned per environment.

    The value is the suffix used in the display name.
    """

    DEPLOYMENT = "azure"
    INTEGRATION = "dataverse"

    @property
    def suffix(self) -> str:
        return self.value


class ReconcileState(str, Enum):
    """States visited while resolving one identity."""

    UNRESOLVED = "unresolved"
    REGISTRATION_FOUND = "registration_found"
    REGISTRATION_CREATED = "registration_created"
    PRINCIPAL_FOUND = "principal_found"
    PRINCIPAL_CREATED = "principal_created"
    RESOLVED = "resolved"


def display_name(environment: str, role: IdentityRole) -> str:
    """Derive the directory display name for an identity.

    The name is the only deduplication key, so it must stay deterministic.
    """
    return f"sp-{environment}-{role.suffix}"


@dataclass
class IdentityResolution:
    """Outcome of reconciling one application identity and its principal."""

    role: IdentityRole
    display_name: str
    app_id: str | None = None
    principal_id: str | None = None
    states: list[ReconcileState] = field(default_factory=lambda: [ReconcileState.UNRESOLVED])

    @property
    def state(self) -> ReconcileState:
        return self.states[-1]

    @property
    def created_registration(self) -> bool:
        return ReconcileState.REGISTRATION_CREATED in self.states

    @property
    def created_principal(self) -> bool:
        return ReconcileState.PRINCIPAL_CREATED in self.states

    @property
    def resolved(self) -> bool:
        return self.state == ReconcileState.RESOLVED

    def advance(self, state: ReconcileState) -> None:
        self.states.append(state)


# =============================================================================
# Role assignments and platform environment
# =============================================================================


@dataclass
class RoleAssignmentOutcome:
    """Outcome of ensuring one role assignment."""

    role_name: str
    role_definition_id: str
    assignment_name: str
    scope: str
    created: bool

    @property
    def already_existed(self) -> bool:
        return not self.created


class PlatformSource(str, Enum):
    """Where the Dataverse environment URL came from."""

    SUPPLIED = "supplied"
    PERSISTED = "persisted"
    DISCOVERED = "discovered"
    GENERATED = "generated"


@dataclass
class PlatformResolution:
    """Resolved Dataverse environment."""

    url: str
    source: PlatformSource
    name: str | None = None
    domain: str | None = None


# =============================================================================
# Run result
# =============================================================================


@dataclass
class ProvisionResult:
    """Everything a provisioning run derived and persisted."""

    environment_name: str
    subscription_id: str
    deployment_identity: IdentityResolution | None = None
    integration_identity: IdentityResolution | None = None
    role_assignments: list[RoleAssignmentOutcome] = field(default_factory=list)
    platform: PlatformResolution | None = None
    variables: dict[str, str] = field(default_factory=dict)
    secret_missing: bool = False

    @property
    def created_count(self) -> int:
        """Number of registrations, principals and role assignments created."""
        count = 0
        for identity in (self.deployment_identity, self.integration_identity):
            if identity is not None:
                count += int(identity.created_registration) + int(identity.created_principal)
        count += sum(1 for outcome in self.role_assignments if outcome.created)
        return count
