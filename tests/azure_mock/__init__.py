"""Azure API mocks for allowlist sync tests.

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext() as ctx:
        ctx.state.put(workflow_id, {"accessControl": {...}}, location="usgovtexas")
        AllowlistSync(config, sleep=lambda _: None).run()
        assert ctx.state.write_count == 1
"""

from .context import MockAzureContext
from .credential import MockManagedIdentityCredential, create_mock_credential
from .resources import MockGenericResource, MockResourceClient, MockResourceState

__all__ = [
    "MockAzureContext",
    "MockGenericResource",
    "MockManagedIdentityCredential",
    "MockResourceClient",
    "MockResourceState",
    "create_mock_credential",
]
