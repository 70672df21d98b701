"""Exception hierarchy shared by every provisioning step.

Precondition failures stop the run before anything is mutated. Registry
errors stop the run where they happen; nothing is rolled back, and a re-run
finds the already-created resources by name. Operator rejection is a
controlled abort that carries a remediation hint.
"""

from __future__ import annotations


class ProvisionerError(Exception):
    """Base class for all provisioning failures."""

    pass


class PreconditionError(ProvisionerError):
    """Raised when a required file, setting or tool is missing."""

    pass


class RegistryError(ProvisionerError):
    """Raised when an external registry rejects a lookup or mutation."""

    pass


class ProvisioningAborted(ProvisionerError):
    """Raised when the operator rejects a confirmation checkpoint."""

    def __init__(self, message: str, remediation: str | None = None) -> None:
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        message = super().__str__()
        if self.remediation:
            return f"{message}\n  {self.remediation}"
        return message
