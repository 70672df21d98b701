"""Platform environment template loading with validation.

The template is JSON by convention; a .yaml or .yml file with the same
fields is accepted too.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_TEMPLATE_FILE_SIZE_BYTES
from .errors import PreconditionError
from .models import PlatformEnvironmentTemplate

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class TemplateLoadError(PreconditionError):
    """Raised when the template cannot be loaded or fails validation."""

    pass


def load_platform_template(path: Path) -> PlatformEnvironmentTemplate:
    """Load and validate the Dataverse environment template.

    Raises:
        TemplateLoadError: If the file is missing, too large, malformed or invalid.
    """
    if not path.exists():
        raise TemplateLoadError(f"Platform environment template not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise TemplateLoadError(f"Failed to stat template file {path}: {e}") from e

    if file_size > MAX_TEMPLATE_FILE_SIZE_BYTES:
        raise TemplateLoadError(
            f"Template file exceeds maximum size of {MAX_TEMPLATE_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateLoadError(f"Failed to read template file {path}: {e}") from e

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            raw_data = yaml.safe_load(content)
        else:
            raw_data = json.loads(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise TemplateLoadError(f"Invalid template syntax in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise TemplateLoadError(f"Template must contain an object: {path}")

    try:
        template = PlatformEnvironmentTemplate.model_validate(raw_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        error_list = "\n".join(errors)
        raise TemplateLoadError(f"Validation failed for {path}:\n{error_list}") from e

    logger.info("Loaded platform environment template from %s", path)
    return template
