"""Access control reconciliation for Consumption (serverless) Logic Apps.

A workflow's ``properties.accessControl`` block restricts who may call its
triggers and, optionally, who may read run contents. The workflow API has
no partial update, so a write sends the whole resource back: a fixed set of
properties is carried over from the existing resource and everything else
is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Properties copied forward into the replacement body
PRESERVED_WORKFLOW_PROPERTIES: tuple[str, ...] = (
    "definition",
    "parameters",
    "integrationAccount",
    "kind",
    "sku",
    "state",
    "accessControl",
)

TRIGGERS_KEY = "triggers"
CONTENTS_KEY = "contents"
CALLERS_KEY = "allowedCallerIpAddresses"


@dataclass(frozen=True)
class AccessControlPlan:
    """Outcome of comparing the desired allowlist with the current one."""

    needs_update: bool
    access_control: dict[str, Any]


def _address_ranges(section: Any) -> list[str]:
    if not isinstance(section, dict):
        return []
    callers = section.get(CALLERS_KEY) or []
    return [
        caller["addressRange"]
        for caller in callers
        if isinstance(caller, dict) and caller.get("addressRange")
    ]


def allowed_caller_ranges(access_control: dict[str, Any] | None, section: str) -> list[str]:
    """List the address ranges of one access-control section, in stored order."""
    if not access_control:
        return []
    return _address_ranges(access_control.get(section))


def build_access_control(prefixes: Sequence[str], include_contents: bool) -> dict[str, Any]:
    """Build the desired access-control block for a prefix set."""
    callers = [{"addressRange": prefix} for prefix in prefixes]
    access_control: dict[str, Any] = {TRIGGERS_KEY: {CALLERS_KEY: callers}}
    if include_contents:
        access_control[CONTENTS_KEY] = {CALLERS_KEY: [dict(c) for c in callers]}
    return access_control


def reconcile_access_control(
    existing: dict[str, Any] | None,
    prefixes: Sequence[str],
    include_contents: bool,
    *,
    compare_existing: bool = True,
) -> AccessControlPlan:
    """Decide whether the workflow's allowlist must change.

    Args:
        existing: Current ``properties.accessControl`` block, or None.
        prefixes: Prefix set for this run.
        include_contents: Also manage ``contents.allowedCallerIpAddresses``.
        compare_existing: When False the existing block is not trusted
            (skip-fetch and dry-run modes) and an update is always planned.

    Returns:
        AccessControlPlan with the decision and the desired block.
    """
    desired = build_access_control(prefixes, include_contents)

    if not compare_existing:
        return AccessControlPlan(needs_update=True, access_control=desired)

    wanted = set(prefixes)
    triggers_equal = set(allowed_caller_ranges(existing, TRIGGERS_KEY)) == wanted
    contents_equal = (
        not include_contents or set(allowed_caller_ranges(existing, CONTENTS_KEY)) == wanted
    )
    needs_update = not (triggers_equal and contents_equal)

    logger.info(
        "Compared workflow access control",
        extra={
            "triggers_in_sync": triggers_equal,
            "contents_in_sync": contents_equal,
            "include_contents": include_contents,
            "needs_update": needs_update,
        },
    )
    return AccessControlPlan(needs_update=needs_update, access_control=desired)


def build_workflow_body(
    existing: dict[str, Any] | None,
    access_control: dict[str, Any],
) -> dict[str, Any]:
    """Build the full replacement body for a workflow.

    Args:
        existing: Current resource as returned by the management API
            (``location``, ``tags``, ``properties``), or None for an empty baseline.
        access_control: The new access-control block.

    Returns:
        Resource body with ``location``, ``tags`` (if present) and the
        preserved properties, with ``accessControl`` replaced.
    """
    existing = existing or {}
    body: dict[str, Any] = {}

    if existing.get("location"):
        body["location"] = existing["location"]
    if existing.get("tags"):
        body["tags"] = existing["tags"]

    current_properties = existing.get("properties") or {}
    properties = {
        key: current_properties[key]
        for key in PRESERVED_WORKFLOW_PROPERTIES
        if key in current_properties
    }
    properties["accessControl"] = access_control
    body["properties"] = properties
    return body


def count_allowed_callers(resource: dict[str, Any] | None) -> tuple[int, int]:
    """Count trigger and content allowlist entries on a workflow resource."""
    properties = (resource or {}).get("properties") or {}
    access_control = properties.get("accessControl")
    return (
        len(allowed_caller_ranges(access_control, TRIGGERS_KEY)),
        len(allowed_caller_ranges(access_control, CONTENTS_KEY)),
    )
