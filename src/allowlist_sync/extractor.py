"""CIDR prefix extraction from published IP range documents.

Publishers ship their ranges in several shapes. The shapes are tried in a
fixed order and the first one that produces anything wins:

1. a bare JSON array of prefixes
2. service-tag style ``values[].properties.addressPrefixes`` (or the singular
   ``addressPrefix``)
3. a flat ``prefixes`` array
4. an ARM template whose ``Microsoft.Network/routeTables`` resources carry
   ``properties.routes[].properties.addressPrefix``
5. a top-level ``properties.addressPrefixes`` array

Only when every structured shape comes back empty is the raw text scanned
with IPv4 and IPv6 CIDR patterns. A structured hit is never topped up from
the text scan, even if the scan would find more.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from .errors import NoPrefixesFoundError

logger = logging.getLogger(__name__)

PrefixSet = tuple[str, ...]

# Octet 0-255, mask /0-/32
_OCTET = r"(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)"
IPV4_CIDR_PATTERN = re.compile(
    rf"(?<![\d.]){_OCTET}(?:\.{_OCTET}){{3}}/(?:3[0-2]|[12]?\d)(?!\d)"
)

# 1-8 groups of 1-4 hex digits joined by ':' (allowing '::'), mask /0-/128
IPV6_CIDR_PATTERN = re.compile(
    r"(?<![0-9A-Fa-f:])"
    r"(?:[0-9A-Fa-f]{1,4}:{1,2}){1,7}[0-9A-Fa-f]{0,4}"
    r"/(?:12[0-8]|1[01]\d|[1-9]?\d)(?!\d)"
)

ROUTE_TABLE_TYPE_PREFIX = "microsoft.network/routetables"

STRATEGY_TEXT = "text"


@dataclass(frozen=True)
class ExtractionResult:
    """Prefixes found in a document and the strategy that found them."""

    prefixes: PrefixSet
    strategy: str

    def __len__(self) -> int:
        return len(self.prefixes)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list | tuple):
        return list(value)
    return []


def _properties(item: Any) -> dict[str, Any]:
    if isinstance(item, dict) and isinstance(item.get("properties"), dict):
        return item["properties"]
    return {}


def _from_array(document: Any) -> list[Any]:
    if isinstance(document, list) and all(isinstance(x, str) for x in document):
        return list(document)
    return []


def _from_service_tag_values(document: Any) -> list[Any]:
    if not isinstance(document, dict) or "values" not in document:
        return []
    collected: list[Any] = []
    for entry in _as_list(document["values"]):
        props = _properties(entry)
        if "addressPrefixes" in props:
            collected.extend(_as_list(props["addressPrefixes"]))
        elif "addressPrefix" in props:
            collected.append(props["addressPrefix"])
    return collected


def _from_prefixes(document: Any) -> list[Any]:
    if isinstance(document, dict) and "prefixes" in document:
        return _as_list(document["prefixes"])
    return []


def _from_route_tables(document: Any) -> list[Any]:
    if not isinstance(document, dict) or "resources" not in document:
        return []
    collected: list[Any] = []
    for resource in _as_list(document["resources"]):
        if not isinstance(resource, dict):
            continue
        resource_type = str(resource.get("type", "")).lower()
        if not resource_type.startswith(ROUTE_TABLE_TYPE_PREFIX):
            continue
        for route in _as_list(_properties(resource).get("routes")):
            props = _properties(route)
            if "addressPrefix" in props:
                collected.append(props["addressPrefix"])
    return collected


def _from_top_level_properties(document: Any) -> list[Any]:
    return _as_list(_properties(document).get("addressPrefixes"))


# Ordered; the first strategy with a non-empty result wins.
STRUCTURED_STRATEGIES: tuple[tuple[str, Callable[[Any], list[Any]]], ...] = (
    ("array", _from_array),
    ("values", _from_service_tag_values),
    ("prefixes", _from_prefixes),
    ("route-tables", _from_route_tables),
    ("properties", _from_top_level_properties),
)


def scan_text(raw_text: str) -> list[str]:
    """Find CIDR strings in free text, IPv4 matches first, then IPv6."""
    if not raw_text:
        return []
    ipv4 = IPV4_CIDR_PATTERN.findall(raw_text)
    ipv6 = IPV6_CIDR_PATTERN.findall(raw_text)
    return [*ipv4, *ipv6]


def dedupe(candidates: Iterable[Any]) -> PrefixSet:
    """Drop blank and non-string entries, keeping first occurrence order.

    Values are compared and returned exactly as given, without trimming.
    """
    seen: set[str] = set()
    result: list[str] = []
    for candidate in candidates:
        if not isinstance(candidate, str) or not candidate.strip():
            continue
        if candidate in seen:
            continue
        seen.add(candidate)
        result.append(candidate)
    return tuple(result)


def extract_prefixes(document: Any, raw_text: str = "", source: str = "") -> ExtractionResult:
    """Extract a deduplicated prefix set from a parsed document or its raw text.

    Args:
        document: Parsed JSON of unknown shape, or None if the body was not JSON.
        raw_text: The raw response body, used only if no structured shape matched.
        source: Where the document came from, used in logs and errors.

    Returns:
        ExtractionResult with the prefixes and the name of the strategy used.

    Raises:
        NoPrefixesFoundError: If no strategy yields a prefix.
    """
    for name, strategy in STRUCTURED_STRATEGIES:
        prefixes = dedupe(strategy(document))
        if prefixes:
            logger.info(
                "Extracted prefixes from structured document",
                extra={"strategy": name, "prefix_count": len(prefixes), "source": source},
            )
            return ExtractionResult(prefixes=prefixes, strategy=name)

    prefixes = dedupe(scan_text(raw_text))
    if not prefixes:
        raise NoPrefixesFoundError(f"No CIDR prefixes found in document from {source or 'input'}")

    logger.info(
        "Extracted prefixes by text scan",
        extra={"strategy": STRATEGY_TEXT, "prefix_count": len(prefixes), "source": source},
    )
    return ExtractionResult(prefixes=prefixes, strategy=STRATEGY_TEXT)
