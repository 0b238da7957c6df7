"""Mock Azure generic resources API.

Provides in-memory resource state addressed by resource id, with per
API-version read failures and write failure injection for exercising the
sync's fallback and error paths.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError


@dataclass
class MockGenericResource:
    """Mimics azure.mgmt.resource.resources.models.GenericResource."""

    id: str
    location: str | None = None
    tags: dict[str, str] | None = None
    kind: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class MockWrite:
    """A recorded write call."""

    resource_id: str
    api_version: str
    body: dict[str, Any]


class MockResourceState:
    """In-memory resource state keyed by lower-cased resource id."""

    def __init__(self) -> None:
        self._resources: dict[str, MockGenericResource] = {}
        self.writes: list[MockWrite] = []
        self.reads: list[tuple[str, str]] = []
        self.unsupported_api_versions: set[str] = set()
        self.fail_writes = False
        self.fail_reads_after_write = False
        self.drop_on_write: int = 0

    @property
    def write_count(self) -> int:
        return len(self.writes)

    def put(
        self,
        resource_id: str,
        properties: dict[str, Any],
        *,
        location: str | None = None,
        tags: dict[str, str] | None = None,
        kind: str | None = None,
    ) -> None:
        """Seed a resource."""
        self._resources[resource_id.lower()] = MockGenericResource(
            id=resource_id,
            location=location,
            tags=tags,
            kind=kind,
            properties=copy.deepcopy(properties),
        )

    def get(self, resource_id: str) -> MockGenericResource | None:
        return self._resources.get(resource_id.lower())


class MockPoller:
    """Minimal LROPoller stand-in."""

    def __init__(self, result: Any) -> None:
        self._result = result

    def result(self, timeout: int | None = None) -> Any:
        return self._result

    def done(self) -> bool:
        return True


class MockResourcesOperations:
    """Implements the subset of ``client.resources`` used by the sync."""

    def __init__(self, state: MockResourceState) -> None:
        self._state = state

    def get_by_id(self, resource_id: str, api_version: str, **kwargs: Any) -> MockGenericResource:
        self._state.reads.append((resource_id, api_version))

        if api_version in self._state.unsupported_api_versions:
            raise HttpResponseError(message=f"No registered resource provider for {api_version}")
        if self._state.fail_reads_after_write and self._state.writes:
            raise HttpResponseError(message="Simulated read failure")

        resource = self._state.get(resource_id)
        if resource is None:
            raise ResourceNotFoundError(message=f"Resource not found: {resource_id}")
        return copy.deepcopy(resource)

    def begin_create_or_update_by_id(
        self,
        resource_id: str,
        api_version: str,
        parameters: Any,
        **kwargs: Any,
    ) -> MockPoller:
        if self._state.fail_writes:
            raise HttpResponseError(message="Simulated write failure")

        properties = copy.deepcopy(parameters.properties or {})
        body = {"properties": properties}
        for key in ("location", "tags", "kind"):
            value = getattr(parameters, key, None)
            if value is not None:
                body[key] = value
        self._state.writes.append(MockWrite(resource_id, api_version, copy.deepcopy(body)))

        if self._state.drop_on_write:
            self._drop_entries(properties, self._state.drop_on_write)

        existing = self._state.get(resource_id)
        merged = copy.deepcopy(existing.properties) if existing else {}
        merged.update(properties)
        self._state.put(
            resource_id,
            merged,
            location=body.get("location"),
            tags=body.get("tags"),
            kind=body.get("kind"),
        )
        return MockPoller(self._state.get(resource_id))

    @staticmethod
    def _drop_entries(properties: dict[str, Any], count: int) -> None:
        """Simulate the service silently discarding list entries."""
        if "ipSecurityRestrictions" in properties:
            del properties["ipSecurityRestrictions"][-count:]
        triggers = (properties.get("accessControl") or {}).get("triggers")
        if triggers:
            del triggers["allowedCallerIpAddresses"][-count:]


class MockResourceClient:
    """Mock ResourceManagementClient exposing ``resources``."""

    def __init__(self, state: MockResourceState, subscription_id: str) -> None:
        self.subscription_id = subscription_id
        self.resources = MockResourcesOperations(state)
