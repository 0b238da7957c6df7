"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import requests

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"
WORKFLOW_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-integration"
    "/providers/Microsoft.Logic/workflows/wf-orders"
)
SITE_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-integration"
    "/providers/Microsoft.Web/sites/la-orders"
)
SOURCE_URL = "https://prefixes.example.com/logicapps.json"
FALLBACK_URL = "https://mirror.example.com/logicapps.json"


class FakeResponse:
    """Just enough of a streamed requests.Response for the fetcher."""

    def __init__(
        self,
        text: str,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.content = text.encode("utf-8")
        self.status_code = status_code
        self.headers = headers or {}
        self.encoding = "utf-8"
        self.bytes_read = 0
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            chunk = self.content[start : start + chunk_size]
            self.bytes_read += len(chunk)
            yield chunk

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """requests.Session stand-in serving canned bodies per URL.

    A URL mapped to an exception instance raises it; unknown URLs raise
    ConnectionError.
    """

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.calls: list[str] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"Cannot reach {url}")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            return route
        if isinstance(route, str):
            return FakeResponse(route)
        return FakeResponse(json.dumps(route))


@pytest.fixture
def fake_session() -> type[FakeSession]:
    """Factory for FakeSession instances."""
    return FakeSession
