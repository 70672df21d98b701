"""Logging setup and the provisioning entry point.

Logs go to stderr so they never interleave with the operator prompts on
stdout. JSON output is available for CI transcripts.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from .commands import CommandRunner
from .config import ProvisionerConfig
from .directory import DirectoryClient
from .env_store import EnvironmentStore
from .errors import PreconditionError, ProvisionerError, ProvisioningAborted
from .gate import ConfirmationGate
from .models import ProvisionResult
from .orchestrator import Provisioner
from .platform import PlatformClient

# LogRecord attributes that are not user-supplied extras
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure root logging for a provisioning run."""
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_provisioner(config: ProvisionerConfig, gate: ConfirmationGate) -> Provisioner:
    """Wire the provisioner with real CLI-backed clients."""
    runner = CommandRunner(timeout=config.command_timeout_seconds)
    return Provisioner(
        config=config,
        gate=gate,
        store=EnvironmentStore(config.project_dir),
        directory=DirectoryClient(runner, config.az_executable),
        platform=PlatformClient(runner, config.pac_executable),
    )


def run_provisioning(
    provisioner: Provisioner,
    environment_name: str | None = None,
    dataverse_url: str | None = None,
) -> tuple[int, ProvisionResult | None]:
    """Run the provisioner and map failures to exit codes.

    Returns:
        (exit code, result). The result is None unless the run completed.
    """
    logger = logging.getLogger(__name__)

    try:
        result = provisioner.run(environment_name=environment_name, dataverse_url=dataverse_url)
    except ProvisioningAborted as e:
        logger.warning(f"Provisioning aborted: {e}")
        return 1, None
    except PreconditionError as e:
        logger.error(f"Provisioning precondition failed: {e}")
        return 1, None
    except ProvisionerError as e:
        logger.error(
            f"Provisioning failed: {e}. Re-run to resume from the current state.",
            extra={"error_type": type(e).__name__},
        )
        return 1, None

    return 0, result
