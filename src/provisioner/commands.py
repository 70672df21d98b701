"""Subprocess runner for the az and pac command surfaces.

Every external registry call made through a CLI goes through CommandRunner,
so tests can swap in a simulator that interprets the same argument lists.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any

from .config import DEFAULT_COMMAND_TIMEOUT_SECONDS
from .errors import PreconditionError, RegistryError

logger = logging.getLogger(__name__)

# Longest stderr excerpt kept in error messages
MAX_ERROR_OUTPUT_CHARS = 2000


class CommandNotFoundError(PreconditionError):
    """Raised when a required CLI is not installed or not on PATH."""

    pass


class CommandError(RegistryError):
    """Raised when a CLI call exits non-zero or times out."""

    def __init__(self, cmd: list[str], message: str, returncode: int | None = None) -> None:
        super().__init__(f"Command '{' '.join(cmd[:4])}' failed: {message}")
        self.cmd = cmd
        self.returncode = returncode


class CommandRunner:
    """Run CLI commands with timeouts and uniform error handling."""

    def __init__(self, timeout: int = DEFAULT_COMMAND_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def run(self, cmd: list[str]) -> str:
        """Run a command and return its stdout.

        Raises:
            CommandNotFoundError: If the executable cannot be found.
            CommandError: If the command fails or times out.
        """
        logger.debug("Running command", extra={"command": cmd[:4]})
        try:
            result = subprocess.run(
                cmd,
                timeout=self._timeout,
                capture_output=True,
                text=True,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandError(cmd, f"timed out after {self._timeout}s") from e
        except FileNotFoundError as e:
            raise CommandNotFoundError(
                f"Command not found: {cmd[0]}. Install it and make sure it is on PATH."
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or result.stdout or "").strip()[:MAX_ERROR_OUTPUT_CHARS]
            raise CommandError(
                cmd, stderr or f"exit code {result.returncode}", returncode=result.returncode
            )
        return result.stdout

    def run_json(self, cmd: list[str]) -> Any:
        """Run a command and parse its stdout as JSON.

        Empty output parses to None.
        """
        output = self.run(cmd)
        if not output.strip():
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise CommandError(cmd, f"returned invalid JSON: {e}") from e

    def interactive(self, cmd: list[str]) -> None:
        """Run a command attached to the terminal (logins, device codes).

        No timeout: the operator may take as long as needed.
        """
        logger.debug("Running interactive command", extra={"command": cmd[:4]})
        try:
            result = subprocess.run(cmd, check=False)
        except FileNotFoundError as e:
            raise CommandNotFoundError(
                f"Command not found: {cmd[0]}. Install it and make sure it is on PATH."
            ) from e
        if result.returncode != 0:
            raise CommandError(cmd, f"exit code {result.returncode}", returncode=result.returncode)
