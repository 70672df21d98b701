"""Operator confirmation checkpoints.

The gate blocks until the operator answers. Only the exact token ``y``
(any case) approves; everything else, including empty input and ``yes``,
rejects. There is no timeout and no auto-approve mode.
"""

from __future__ import annotations

import logging
from typing import Protocol

import click

logger = logging.getLogger(__name__)

AFFIRMATIVE_TOKEN = "y"


def is_affirmative(answer: str | None) -> bool:
    """Decide whether an operator answer approves a checkpoint."""
    if answer is None:
        return False
    return answer.lower() == AFFIRMATIVE_TOKEN


class ConfirmationGate(Protocol):
    """Boundary between the provisioning sequence and the operator."""

    def confirm(self, prompt: str, proposed_value: str | None = None) -> bool:
        """Show proposed_value, ask prompt, return the decision."""
        ...

    def ask(self, prompt: str) -> str:
        """Ask for free-text input; empty string when the operator skips."""
        ...


class InteractiveGate:
    """Confirmation gate on the terminal via click."""

    def confirm(self, prompt: str, proposed_value: str | None = None) -> bool:
        if proposed_value is not None:
            click.echo("")
            click.secho(proposed_value, bold=True)
        answer = click.prompt(f"{prompt} [y/N]", default="", show_default=False)
        decision = is_affirmative(answer)
        logger.info(
            "Checkpoint answered",
            extra={"checkpoint": prompt, "approved": decision},
        )
        return decision

    def ask(self, prompt: str) -> str:
        answer: str = click.prompt(prompt, default="", show_default=False)
        return answer.strip()
