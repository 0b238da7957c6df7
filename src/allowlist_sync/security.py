"""Credential acquisition for management API calls.

The sync authenticates only with a managed identity. Service principal
secrets, certificates and passwords in the environment are refused, so a
pipeline cannot silently fall back to a long-lived credential.

SECURITY INVARIANTS:
1. None of FORBIDDEN_CREDENTIAL_ENV_VARS may be set when a credential is requested
2. ManagedIdentityCredential is the only credential type handed out
"""

from __future__ import annotations

import logging
import os

from azure.identity import ManagedIdentityCredential

logger = logging.getLogger(__name__)

# Environment variables that indicate credential leakage
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)

SECRETLESS_VIOLATION_MESSAGE = (
    "SECURITY VIOLATION: {env_var} is set. Allowlist sync authenticates with a "
    "managed identity only; remove secret-based credentials from the environment "
    "and grant the identity Contributor on the target Logic App."
)


class SecretlessViolationError(Exception):
    """Raised when secret-based credentials are present in the environment."""

    pass


def enforce_secretless_architecture() -> None:
    """Refuse to continue if credential secrets are present in the environment.

    Raises:
        SecretlessViolationError: If any forbidden variable is set.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secretless architecture violation",
                extra={"security_event": "credential_detected", "env_var": env_var},
            )
            raise SecretlessViolationError(SECRETLESS_VIOLATION_MESSAGE.format(env_var=env_var))


def get_managed_identity_credential(
    client_id: str | None = None,
) -> ManagedIdentityCredential:
    """Get a ManagedIdentityCredential after verifying the environment.

    Args:
        client_id: Client id of a user-assigned identity; system-assigned if None.

    Raises:
        SecretlessViolationError: If credential environment variables are detected.
    """
    enforce_secretless_architecture()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()
