"""Adapter over the azd environment variable store.

Layout created by ``azd init`` / ``azd env new`` (out of scope here):

    <project>/.azure/config.json        {"defaultEnvironment": "<name>"}
    <project>/.azure/<name>/.env        KEY="value" lines

Values are read and written with python-dotenv so quoted values and
``KEY=value`` formatting round-trip the same way azd handles them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from dotenv import dotenv_values, set_key
from pydantic import ValidationError

from .errors import PreconditionError
from .models import EnvironmentRegistry

logger = logging.getLogger(__name__)

AZD_DIR_NAME = ".azure"
REGISTRY_FILE_NAME = "config.json"
ENV_FILE_NAME = ".env"


class EnvironmentNotConfiguredError(PreconditionError):
    """Raised when the project has no usable azd environment."""

    pass


class EnvironmentStore:
    """Read and write the key-value store of an azd environment."""

    def __init__(self, project_dir: Path) -> None:
        self._project_dir = project_dir
        self._azd_dir = project_dir / AZD_DIR_NAME

    @property
    def registry_path(self) -> Path:
        return self._azd_dir / REGISTRY_FILE_NAME

    def env_file(self, environment: str) -> Path:
        return self._azd_dir / environment / ENV_FILE_NAME

    def get_default_environment(self) -> str:
        """Return the default environment name.

        Raises:
            EnvironmentNotConfiguredError: If azd has not been initialized.
        """
        hint = "Run 'azd init' or 'azd env new <name>' first."
        path = self.registry_path

        if not path.exists():
            raise EnvironmentNotConfiguredError(f"Environment registry not found: {path}. {hint}")

        try:
            raw_data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise EnvironmentNotConfiguredError(f"Failed to read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise EnvironmentNotConfiguredError(f"Invalid JSON in {path}: {e}") from e

        if not isinstance(raw_data, dict):
            raise EnvironmentNotConfiguredError(f"{path} must contain a JSON object")

        try:
            registry = EnvironmentRegistry.model_validate(raw_data)
        except ValidationError as e:
            raise EnvironmentNotConfiguredError(
                f"No default environment configured in {path}. {hint}"
            ) from e

        logger.debug("Default environment is '%s'", registry.default_environment)
        return registry.default_environment

    def get_values(self, environment: str) -> dict[str, str]:
        """Return every variable of an environment; empty if it has none."""
        path = self.env_file(environment)
        if not path.exists():
            return {}
        return {key: value or "" for key, value in dotenv_values(path).items()}

    def get_variable(self, environment: str, key: str) -> str | None:
        """Return a variable value, or None when the key is not set."""
        return self.get_values(environment).get(key)

    def set_variable(self, environment: str, key: str, value: str) -> None:
        """Write a variable, replacing any previous value.

        Raises:
            EnvironmentNotConfiguredError: If the environment does not exist.
        """
        env_dir = self._azd_dir / environment
        if not env_dir.is_dir():
            raise EnvironmentNotConfiguredError(
                f"Environment '{environment}' does not exist under {self._azd_dir}. "
                f"Run 'azd env new {environment}' first."
            )

        path = self.env_file(environment)
        path.touch(exist_ok=True)
        set_key(path, key, value, quote_mode="always")
        logger.debug("Persisted %s for environment '%s'", key, environment)
