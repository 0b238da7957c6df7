"""Prefix document retrieval over HTTP.

Candidate URLs are tried in order. A response counts as usable when it parses
as JSON, or when its raw text contains at least one CIDR string the extractor
could fall back to. Transport errors and unusable responses move on to the
next candidate; only exhausting every candidate is fatal.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import requests

from .config import DEFAULT_REQUEST_TIMEOUT_SECONDS, MAX_DOCUMENT_SIZE_BYTES
from .errors import FetchFailedError
from .extractor import scan_text

logger = logging.getLogger(__name__)

USER_AGENT = "logicapp-allowlist-sync/0.1"
READ_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True)
class FetchedDocument:
    """A downloaded prefix document."""

    url: str
    data: Any
    raw_text: str

    @property
    def is_json(self) -> bool:
        return self.data is not None


def _read_limited(response: requests.Response, url: str) -> bytes:
    """Read a streamed body, stopping once it exceeds MAX_DOCUMENT_SIZE_BYTES."""
    declared = response.headers.get("Content-Length")
    if declared and declared.isdigit() and int(declared) > MAX_DOCUMENT_SIZE_BYTES:
        raise FetchFailedError(
            f"Document at {url} exceeds maximum size of {MAX_DOCUMENT_SIZE_BYTES} bytes"
        )

    chunks: list[bytes] = []
    size = 0
    for chunk in response.iter_content(chunk_size=READ_CHUNK_BYTES):
        size += len(chunk)
        if size > MAX_DOCUMENT_SIZE_BYTES:
            raise FetchFailedError(
                f"Document at {url} exceeds maximum size of {MAX_DOCUMENT_SIZE_BYTES} bytes"
            )
        chunks.append(chunk)
    return b"".join(chunks)


def fetch_document(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
) -> FetchedDocument:
    """Download a single document.

    Args:
        url: Document URL.
        session: Optional requests session (a fresh request is made otherwise).
        timeout: Request timeout in seconds.

    Returns:
        FetchedDocument with parsed JSON (or None) and the raw body text.

    Raises:
        FetchFailedError: On transport errors, non-2xx status, an empty body,
            or a body larger than MAX_DOCUMENT_SIZE_BYTES.
    """
    http = session or requests
    try:
        response = http.get(
            url, timeout=timeout, headers={"User-Agent": USER_AGENT}, stream=True
        )
    except requests.RequestException as e:
        raise FetchFailedError(f"Failed to download {url}: {e}") from e

    try:
        response.raise_for_status()
        content = _read_limited(response, url)
    except requests.RequestException as e:
        raise FetchFailedError(f"Failed to download {url}: {e}") from e
    finally:
        response.close()

    raw_text = content.decode(response.encoding or "utf-8", errors="replace")
    if not raw_text.strip():
        raise FetchFailedError(f"Document at {url} is empty")

    try:
        data = json.loads(raw_text)
    except ValueError:
        logger.info("Document is not JSON, keeping raw text", extra={"url": url})
        data = None

    return FetchedDocument(url=url, data=data, raw_text=raw_text)


def fetch_prefix_document(
    urls: Sequence[str],
    *,
    session: requests.Session | None = None,
    timeout: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
) -> FetchedDocument:
    """Try candidate URLs in order and return the first usable document.

    Raises:
        FetchFailedError: If no candidate produced usable content.
    """
    if not urls:
        raise FetchFailedError("No prefix document URLs configured")

    failures: list[str] = []
    for url in urls:
        try:
            document = fetch_document(url, session=session, timeout=timeout)
        except FetchFailedError as e:
            logger.warning("Prefix document source failed", extra={"url": url, "error": str(e)})
            failures.append(f"{url}: {e}")
            continue

        if document.is_json or scan_text(document.raw_text):
            logger.info(
                "Downloaded prefix document",
                extra={"url": url, "json": document.is_json, "bytes": len(document.raw_text)},
            )
            return document

        logger.warning("Prefix document has no usable content", extra={"url": url})
        failures.append(f"{url}: no JSON and no CIDR text")

    raise FetchFailedError(
        "No prefix document source yielded usable content:\n  - " + "\n  - ".join(failures)
    )
