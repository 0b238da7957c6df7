"""Generic ARM resource reads and full-replace writes.

Both Logic App hosting models are addressed through the generic resources
API by id, so one client serves site configs and workflows alike. Azure SDK
errors are translated here into the sync's own error types.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError, HttpResponseError
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import GenericResource

from .errors import InvalidArgumentError, ResourceRetrievalError, WriteFailedError

logger = logging.getLogger(__name__)

SUBSCRIPTION_ID_PATTERN = re.compile(r"^/subscriptions/([^/]+)/", re.IGNORECASE)

# Top-level resource fields round-tripped between the SDK model and dicts
RESOURCE_FIELDS: tuple[str, ...] = ("location", "tags", "kind", "properties")


def parse_subscription_id(resource_id: str) -> str:
    """Extract the subscription id from an ARM resource id.

    Raises:
        InvalidArgumentError: If the id has no subscription segment.
    """
    match = SUBSCRIPTION_ID_PATTERN.match(resource_id or "")
    if not match:
        raise InvalidArgumentError(f"Resource id has no subscription segment: {resource_id}")
    return match.group(1)


def _to_dict(resource: Any) -> dict[str, Any]:
    if resource is None:
        return {}
    result: dict[str, Any] = {}
    for key in RESOURCE_FIELDS:
        value = getattr(resource, key, None)
        if value is not None:
            result[key] = value
    return result


def _describe(error: AzureError) -> str:
    if isinstance(error, HttpResponseError):
        return f"Azure API error ({error.status_code}): {error.message}"
    return f"Azure error: {error}"


class ResourceClient:
    """Thin wrapper over ResourceManagementClient.resources."""

    def __init__(self, subscription_id: str, credential: TokenCredential) -> None:
        self._subscription_id = subscription_id
        self._client = ResourceManagementClient(
            credential=credential,
            subscription_id=subscription_id,
        )

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    def get_resource(self, resource_id: str, api_version: str) -> dict[str, Any]:
        """Read a resource by id.

        Returns:
            Dict with ``location``, ``tags``, ``kind`` and ``properties`` where present.

        Raises:
            ResourceRetrievalError: If the read fails.
        """
        try:
            resource = self._client.resources.get_by_id(
                resource_id=resource_id,
                api_version=api_version,
            )
        except AzureError as e:
            raise ResourceRetrievalError(
                f"Failed to read {resource_id} (api-version {api_version}): {_describe(e)}"
            ) from e

        logger.debug(
            "Read resource", extra={"resource_id": resource_id, "api_version": api_version}
        )
        return _to_dict(resource)

    def put_resource(
        self,
        resource_id: str,
        api_version: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        """Replace a resource with the given body and wait for completion.

        Raises:
            WriteFailedError: If the write fails.
        """
        parameters = GenericResource(**{k: body[k] for k in RESOURCE_FIELDS if k in body})
        try:
            poller = self._client.resources.begin_create_or_update_by_id(
                resource_id=resource_id,
                api_version=api_version,
                parameters=parameters,
            )
            resource = poller.result()
        except AzureError as e:
            raise WriteFailedError(
                f"Failed to write {resource_id} (api-version {api_version}): {_describe(e)}"
            ) from e

        logger.info(
            "Wrote resource", extra={"resource_id": resource_id, "api_version": api_version}
        )
        return _to_dict(resource)
