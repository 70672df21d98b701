"""Pytest configuration and fixtures."""

import json
import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import DEFAULT_SUBSCRIPTION_ID  # noqa: E402

TEMPLATE = {
    "namePrefix": "contoso-",
    "domainPrefix": "contoso",
    "type": "Sandbox",
    "region": "unitedstates",
    "language": "English",
    "currency": "USD",
}


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An azd project with environment 'Dev' bound to the mock subscription."""
    azure_dir = tmp_path / ".azure"
    (azure_dir / "Dev").mkdir(parents=True)
    (azure_dir / "config.json").write_text(
        json.dumps({"version": 1, "defaultEnvironment": "Dev"})
    )
    (azure_dir / "Dev" / ".env").write_text(
        f'AZURE_ENV_NAME="Dev"\nAZURE_SUBSCRIPTION_ID="{DEFAULT_SUBSCRIPTION_ID}"\n'
    )

    dataverse_dir = tmp_path / ".dataverse"
    dataverse_dir.mkdir()
    (dataverse_dir / "environment.json").write_text(json.dumps(TEMPLATE, indent=2))
    return tmp_path
