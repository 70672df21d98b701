"""Tests for configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from provisioner.config import (
    DEFAULT_ROLES,
    DEFAULT_TEMPLATE_PATH,
    ConfigurationError,
    ProvisionerConfig,
    check_environment_name,
)


class TestProvisionerConfig:
    """Tests for ProvisionerConfig class."""

    def test_valid_config(self, tmp_path: Path) -> None:
        """Test creating a valid configuration."""
        config = ProvisionerConfig(project_dir=tmp_path, environment_name="dev")

        assert config.environment_name == "dev"
        assert config.roles == DEFAULT_ROLES
        assert config.az_executable == "az"
        assert config.log_json is False

    def test_default_roles(self) -> None:
        """Test the deployment identity gets Contributor and User Access Administrator."""
        assert DEFAULT_ROLES == ("Contributor", "User Access Administrator")

    def test_missing_project_dir(self, tmp_path: Path) -> None:
        """Test that a missing project directory raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProvisionerConfig(project_dir=tmp_path / "missing")

        assert "Project directory" in str(exc_info.value)

    def test_invalid_environment_name(self, tmp_path: Path) -> None:
        """Test that environment names with spaces are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProvisionerConfig(project_dir=tmp_path, environment_name="my env")

        assert "AZURE_ENV_NAME" in str(exc_info.value)

    def test_empty_roles(self, tmp_path: Path) -> None:
        """Test that an empty role list raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProvisionerConfig(project_dir=tmp_path, roles=())

        assert "PROVISION_ROLES" in str(exc_info.value)

    def test_invalid_timeout(self, tmp_path: Path) -> None:
        """Test that out-of-range command timeout raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProvisionerConfig(project_dir=tmp_path, command_timeout_seconds=1)

        assert "COMMAND_TIMEOUT" in str(exc_info.value)

    def test_errors_are_collected(self, tmp_path: Path) -> None:
        """Test that all validation errors are reported together."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProvisionerConfig(project_dir=tmp_path, az_executable="", log_level="LOUD")

        message = str(exc_info.value)
        assert "AZ_EXECUTABLE" in message
        assert "LOG_LEVEL" in message

    def test_relative_template_path_is_anchored(self, tmp_path: Path) -> None:
        """Test that relative template paths resolve against the project."""
        config = ProvisionerConfig(project_dir=tmp_path)
        assert config.resolved_template_path == tmp_path / DEFAULT_TEMPLATE_PATH

        absolute = tmp_path / "elsewhere.json"
        config = ProvisionerConfig(project_dir=tmp_path, template_path=absolute)
        assert config.resolved_template_path == absolute

    def test_from_env(self, tmp_path: Path) -> None:
        """Test loading configuration from environment."""
        env = {
            "PROVISION_PROJECT_DIR": str(tmp_path),
            "AZURE_ENV_NAME": "prod",
            "PROVISION_ROLES": "Contributor, Reader",
            "COMMAND_TIMEOUT": "600",
            "LOG_JSON": "true",
        }

        with patch.dict(os.environ, env, clear=True):
            config = ProvisionerConfig.from_env()

        assert config.project_dir == tmp_path
        assert config.environment_name == "prod"
        assert config.roles == ("Contributor", "Reader")
        assert config.command_timeout_seconds == 600
        assert config.log_json is True

    def test_from_env_defaults(self, tmp_path: Path) -> None:
        """Test defaults when no variables are set."""
        with patch.dict(os.environ, {"PROVISION_PROJECT_DIR": str(tmp_path)}, clear=True):
            config = ProvisionerConfig.from_env()

        assert config.environment_name is None
        assert config.roles == DEFAULT_ROLES
        assert config.template_path == DEFAULT_TEMPLATE_PATH

    def test_from_env_invalid_integer(self, tmp_path: Path) -> None:
        """Test that a non-integer timeout raises error."""
        env = {"PROVISION_PROJECT_DIR": str(tmp_path), "COMMAND_TIMEOUT": "soon"}

        with patch.dict(os.environ, env, clear=True), pytest.raises(ConfigurationError):
            ProvisionerConfig.from_env()


class TestCheckEnvironmentName:
    """Tests for check_environment_name function."""

    @pytest.mark.parametrize("name", ["Dev", "prod-01", "team_a"])
    def test_valid_names(self, name: str) -> None:
        assert check_environment_name(name) is None

    @pytest.mark.parametrize("name", ["", "my env", "../outside", "-dev", "x" * 65])
    def test_invalid_names(self, name: str) -> None:
        assert check_environment_name(name) is not None
