"""Tests for platform environment template loading."""

import json
from pathlib import Path

import pytest
from conftest import TEMPLATE

from provisioner.config import MAX_TEMPLATE_FILE_SIZE_BYTES
from provisioner.errors import PreconditionError
from provisioner.template_loader import TemplateLoadError, load_platform_template


def write_template(directory: Path, content: str, name: str = "environment.json") -> Path:
    path = directory / name
    path.write_text(content)
    return path


class TestLoadPlatformTemplate:
    """Tests for load_platform_template function."""

    def test_load_json(self, tmp_path: Path) -> None:
        """Test loading the JSON template."""
        template = load_platform_template(write_template(tmp_path, json.dumps(TEMPLATE)))

        assert template.name_prefix == "contoso-"
        assert template.domain_prefix == "contoso"
        assert template.type == "Sandbox"
        assert template.currency == "USD"

    def test_load_yaml(self, tmp_path: Path) -> None:
        """Test that a YAML template with the same fields is accepted."""
        content = """
namePrefix: contoso-
domainPrefix: contoso
type: Production
region: europe
language: English
currency: EUR
"""
        template = load_platform_template(write_template(tmp_path, content, "environment.yaml"))

        assert template.type == "Production"
        assert template.region == "europe"

    def test_extra_fields_ignored(self, tmp_path: Path) -> None:
        """Test that unknown keys do not fail validation."""
        data = {**TEMPLATE, "$schema": "./schema.json"}
        template = load_platform_template(write_template(tmp_path, json.dumps(data)))

        assert template.language == "English"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing template is a precondition failure."""
        with pytest.raises(TemplateLoadError) as exc_info:
            load_platform_template(tmp_path / "missing.json")

        assert isinstance(exc_info.value, PreconditionError)
        assert "not found" in str(exc_info.value)

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test that malformed JSON is rejected."""
        with pytest.raises(TemplateLoadError) as exc_info:
            load_platform_template(write_template(tmp_path, '{"namePrefix": '))

        assert "Invalid template syntax" in str(exc_info.value)

    def test_not_an_object(self, tmp_path: Path) -> None:
        """Test that a JSON list is rejected."""
        with pytest.raises(TemplateLoadError) as exc_info:
            load_platform_template(write_template(tmp_path, "[]"))

        assert "must contain an object" in str(exc_info.value)

    def test_missing_fields_are_listed(self, tmp_path: Path) -> None:
        """Test that each missing field is named in the error."""
        data = {"namePrefix": "contoso-", "domainPrefix": "contoso"}

        with pytest.raises(TemplateLoadError) as exc_info:
            load_platform_template(write_template(tmp_path, json.dumps(data)))

        message = str(exc_info.value)
        for field_name in ("type", "region", "language", "currency"):
            assert field_name in message

    def test_whitespace_in_domain_prefix(self, tmp_path: Path) -> None:
        """Test that a domain prefix with spaces is rejected."""
        data = {**TEMPLATE, "domainPrefix": "contoso dev"}

        with pytest.raises(TemplateLoadError) as exc_info:
            load_platform_template(write_template(tmp_path, json.dumps(data)))

        assert "whitespace" in str(exc_info.value)

    def test_oversized_file(self, tmp_path: Path) -> None:
        """Test that files above the size limit are rejected."""
        padding = " " * (MAX_TEMPLATE_FILE_SIZE_BYTES + 1)

        with pytest.raises(TemplateLoadError) as exc_info:
            load_platform_template(write_template(tmp_path, json.dumps(TEMPLATE) + padding))

        assert "maximum size" in str(exc_info.value)


class TestTemplateDerivation:
    """Tests for the names derived from a template."""

    def test_name_and_domain(self, tmp_path: Path) -> None:
        """Test name keeps case while the domain is lowercased."""
        template = load_platform_template(write_template(tmp_path, json.dumps(TEMPLATE)))

        assert template.environment_name("Dev") == "contoso-Dev"
        assert template.environment_domain("Dev") == "contosodev"

    def test_describe(self, tmp_path: Path) -> None:
        """Test the settings presented for confirmation."""
        template = load_platform_template(write_template(tmp_path, json.dumps(TEMPLATE)))

        assert template.describe("Dev") == {
            "name": "contoso-Dev",
            "domain": "contosodev",
            "type": "Sandbox",
            "region": "unitedstates",
            "language": "English",
            "currency": "USD",
        }
