"""Tests for the operator confirmation gate."""

from __future__ import annotations

import click
import pytest
from click.testing import CliRunner

from provisioner.gate import AFFIRMATIVE_TOKEN, InteractiveGate, is_affirmative


class TestIsAffirmative:
    """Tests for the approval decision."""

    @pytest.mark.parametrize("answer", ["y", "Y"])
    def test_accepts_token_in_any_case(self, answer: str) -> None:
        """Test that only 'y' approves, regardless of case."""
        assert is_affirmative(answer) is True

    @pytest.mark.parametrize("answer", ["n", "", "yes", "YES", "yy", " y", "no", None])
    def test_rejects_everything_else(self, answer: str | None) -> None:
        """Test that empty, negative and near-miss answers reject."""
        assert is_affirmative(answer) is False

    def test_token(self) -> None:
        """Test the affirmative token."""
        assert AFFIRMATIVE_TOKEN == "y"


def _run_confirm(user_input: str, proposed: str | None = "value-to-review") -> tuple[bool, str]:
    decisions: list[bool] = []

    @click.command()
    def command() -> None:
        decisions.append(InteractiveGate().confirm("Proceed?", proposed))

    result = CliRunner().invoke(command, input=user_input)
    assert result.exception is None
    return decisions[0], result.output


class TestInteractiveGate:
    """Tests for the click-backed gate."""

    def test_shows_proposed_value_before_prompt(self) -> None:
        """Test that the proposed value is printed before the question."""
        _, output = _run_confirm("y\n")

        assert output.index("value-to-review") < output.index("Proceed? [y/N]")

    def test_approves_on_y(self) -> None:
        """Test approval with the affirmative token."""
        decision, _ = _run_confirm("Y\n")
        assert decision is True

    def test_rejects_on_empty_input(self) -> None:
        """Test that pressing enter rejects."""
        decision, _ = _run_confirm("\n")
        assert decision is False

    def test_rejects_on_yes(self) -> None:
        """Test that 'yes' is not the affirmative token."""
        decision, _ = _run_confirm("yes\n")
        assert decision is False

    def test_ask_returns_stripped_answer(self) -> None:
        """Test free-text input."""
        answers: list[str] = []

        @click.command()
        def command() -> None:
            answers.append(InteractiveGate().ask("URL"))

        CliRunner().invoke(command, input="  https://org.crm.dynamics.com/ \n")
        assert answers == ["https://org.crm.dynamics.com/"]

    def test_ask_allows_empty_answer(self) -> None:
        """Test that skipping the question returns an empty string."""
        answers: list[str] = []

        @click.command()
        def command() -> None:
            answers.append(InteractiveGate().ask("URL"))

        CliRunner().invoke(command, input="\n")
        assert answers == [""]
