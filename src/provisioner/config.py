"""Configuration management with validation.

Every setting is validated when the configuration is built, so a bad value
stops the run before any external registry is touched.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Roles granted to the deployment identity on the subscription
DEFAULT_ROLES: tuple[str, ...] = ("Contributor", "User Access Administrator")

DEFAULT_TEMPLATE_PATH = Path(".dataverse") / "environment.json"

DEFAULT_COMMAND_TIMEOUT_SECONDS = 300
MIN_COMMAND_TIMEOUT_SECONDS = 10
# pac admin create can take a long time to return
MAX_COMMAND_TIMEOUT_SECONDS = 3600

MAX_TEMPLATE_FILE_SIZE_BYTES = 64 * 1024
MAX_ENVIRONMENT_NAME_LENGTH = 64

# azd environment names: letters, digits, '-' and '_'
VALID_ENVIRONMENT_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]*$"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def check_environment_name(name: str) -> str | None:
    """Return why an azd environment name is unusable, or None if it is valid."""
    if not name:
        return "must not be empty"
    if len(name) > MAX_ENVIRONMENT_NAME_LENGTH:
        return f"exceeds maximum length of {MAX_ENVIRONMENT_NAME_LENGTH}"
    if not re.match(VALID_ENVIRONMENT_NAME_PATTERN, name):
        return f"must match pattern {VALID_ENVIRONMENT_NAME_PATTERN}: {name}"
    return None


@dataclass(frozen=True)
class ProvisionerConfig:
    """Provisioner configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-run.
    """

    project_dir: Path = field(default_factory=Path.cwd)

    # Overrides the default environment recorded in .azure/config.json
    environment_name: str | None = None

    # Relative paths are resolved against project_dir
    template_path: Path = DEFAULT_TEMPLATE_PATH

    roles: tuple[str, ...] = DEFAULT_ROLES

    az_executable: str = "az"
    pac_executable: str = "pac"
    command_timeout_seconds: int = DEFAULT_COMMAND_TIMEOUT_SECONDS

    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not self.project_dir.is_dir():
            errors.append(f"Project directory does not exist: {self.project_dir}")

        if self.environment_name is not None:
            name_error = check_environment_name(self.environment_name)
            if name_error:
                errors.append(f"AZURE_ENV_NAME {name_error}")

        if not self.roles:
            errors.append("PROVISION_ROLES must name at least one role")
        elif any(not role.strip() for role in self.roles):
            errors.append("PROVISION_ROLES must not contain empty role names")

        if not self.az_executable:
            errors.append("AZ_EXECUTABLE must not be empty")
        if not self.pac_executable:
            errors.append("PAC_EXECUTABLE must not be empty")

        if not (
            MIN_COMMAND_TIMEOUT_SECONDS
            <= self.command_timeout_seconds
            <= MAX_COMMAND_TIMEOUT_SECONDS
        ):
            errors.append(
                f"COMMAND_TIMEOUT must be between {MIN_COMMAND_TIMEOUT_SECONDS} "
                f"and {MAX_COMMAND_TIMEOUT_SECONDS} seconds"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def resolved_template_path(self) -> Path:
        """Template path, anchored at the project directory when relative."""
        if self.template_path.is_absolute():
            return self.template_path
        return self.project_dir / self.template_path

    @classmethod
    def from_env(cls) -> ProvisionerConfig:
        """Load configuration from environment variables.

        Environment Variables:
            PROVISION_PROJECT_DIR: azd project root (default: current directory)
            AZURE_ENV_NAME: Environment to provision instead of the azd default
            DATAVERSE_TEMPLATE_PATH: Platform environment template
                (default: .dataverse/environment.json)
            PROVISION_ROLES: Comma-separated role names for the deployment identity
                (default: Contributor,User Access Administrator)
            AZ_EXECUTABLE: Azure CLI executable (default: az)
            PAC_EXECUTABLE: Power Platform CLI executable (default: pac)
            COMMAND_TIMEOUT: Timeout for each CLI call in seconds (default: 300)
            LOG_LEVEL: Logging level (default: INFO)
            LOG_JSON: If "true", emit JSON log lines (default: false)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        def get_roles(value: str | None) -> tuple[str, ...]:
            if value is None:
                return DEFAULT_ROLES
            return tuple(role.strip() for role in value.split(","))

        return cls(
            project_dir=Path(os.environ.get("PROVISION_PROJECT_DIR", os.getcwd())),
            environment_name=os.environ.get("AZURE_ENV_NAME"),
            template_path=Path(
                os.environ.get("DATAVERSE_TEMPLATE_PATH", str(DEFAULT_TEMPLATE_PATH))
            ),
            roles=get_roles(os.environ.get("PROVISION_ROLES")),
            az_executable=os.environ.get("AZ_EXECUTABLE", "az"),
            pac_executable=os.environ.get("PAC_EXECUTABLE", "pac"),
            command_timeout_seconds=get_int("COMMAND_TIMEOUT", DEFAULT_COMMAND_TIMEOUT_SECONDS),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_json=get_bool("LOG_JSON", False),
        )
