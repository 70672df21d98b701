"""Azure and Power Platform mocks for integration testing.

This package simulates the external registries the provisioner talks to,
so the full sequence can run without Azure connectivity.

Key Features:
- In-memory directory (app registrations, service principals, secrets)
- Subscription role assignments with 409 'already exists' behaviour
- pac environment creation with parseable or malformed output
- Failure injection per command
- Scripted operator answers for confirmation checkpoints

Usage:
    from azure_mock import MockAzureContext, ScriptedGate

    with MockAzureContext() as ctx:
        provisioner = make_provisioner(ctx, ScriptedGate())
        provisioner.run()
        assert ctx.runner.create_calls == ["ad app create", ...]
"""

from .authorization import MockAuthorizationClient, MockAuthorizationState
from .commands import (
    DEFAULT_SUBSCRIPTION_ID,
    DEFAULT_TENANT_ID,
    MockCommandRunner,
    MockRegistryState,
)
from .context import MockAzureContext, mock_azure_context
from .credential import MockCliCredential, create_mock_credential
from .operator import ScriptedGate

__all__ = [
    "DEFAULT_SUBSCRIPTION_ID",
    "DEFAULT_TENANT_ID",
    "MockAuthorizationClient",
    "MockAuthorizationState",
    "MockAzureContext",
    "MockCliCredential",
    "MockCommandRunner",
    "MockRegistryState",
    "ScriptedGate",
    "create_mock_credential",
    "mock_azure_context",
]
