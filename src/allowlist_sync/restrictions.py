"""Access restriction merge for Standard (App Service hosted) Logic Apps.

The site's ``ipSecurityRestrictions`` list mixes rules we own with rules
somebody added by hand. Ours are recognised purely by name
(``AzureGov_LogicApps_USGovTX_<n>``). Every run throws ours away, regenerates
them from the current prefix set, and renumbers the whole list so that
hand-made rules always sort first. Hand-made rules are never edited apart
from their priority.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

AUTO_RULE_PREFIX = "AzureGov_LogicApps_USGovTX_"
AUTO_RULE_PATTERN = re.compile(rf"^{re.escape(AUTO_RULE_PREFIX)}\d+$")

PRIORITY_START = 10
PRIORITY_STEP = 10

# Provisional priority for generated rules before renumbering
PROVISIONAL_PRIORITY = 0


class AccessRestriction(BaseModel):
    """A generated allow rule in ARM ``ipSecurityRestrictions`` shape."""

    model_config = {"populate_by_name": True}

    ip_address: str = Field(alias="ipAddress")
    action: str = "Allow"
    priority: int = PROVISIONAL_PRIORITY
    name: str
    description: str = ""

    def to_arm(self) -> dict[str, Any]:
        """Serialize with ARM property names."""
        return self.model_dump(by_alias=True)


def is_generated_rule(entry: dict[str, Any]) -> bool:
    """Check whether a restriction entry was created by this tool."""
    name = entry.get("name")
    return isinstance(name, str) and bool(AUTO_RULE_PATTERN.match(name))


def generate_rules(prefixes: Sequence[str], source_url: str = "") -> list[AccessRestriction]:
    """Build one allow rule per prefix, numbered from 1 in prefix order."""
    description = f"Auto-generated from {source_url}" if source_url else "Auto-generated"
    return [
        AccessRestriction(
            ip_address=prefix,
            name=f"{AUTO_RULE_PREFIX}{index}",
            description=description,
        )
        for index, prefix in enumerate(prefixes, start=1)
    ]


def reconcile_restrictions(
    existing: Iterable[dict[str, Any]] | None,
    prefixes: Sequence[str],
    source_url: str = "",
) -> list[dict[str, Any]]:
    """Merge a fresh prefix set into an existing restriction list.

    Args:
        existing: Current ``ipSecurityRestrictions`` entries (may be None).
        prefixes: Deduplicated prefix set for this run.
        source_url: Document URL, recorded in generated rule descriptions.

    Returns:
        New restriction list: preserved entries first, then generated ones,
        with priorities 10, 20, 30, ... in that order. The input is not modified.
    """
    preserved: list[dict[str, Any]] = []
    discarded = 0
    for entry in existing or ():
        if is_generated_rule(entry):
            discarded += 1
        else:
            preserved.append(copy.deepcopy(entry))

    generated = [rule.to_arm() for rule in generate_rules(prefixes, source_url)]

    merged = [*preserved, *generated]
    for position, entry in enumerate(merged):
        entry["priority"] = PRIORITY_START + position * PRIORITY_STEP

    logger.info(
        "Reconciled access restrictions",
        extra={
            "preserved_count": len(preserved),
            "replaced_count": discarded,
            "generated_count": len(generated),
        },
    )
    return merged


def build_site_config_body(restrictions: list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap a restriction list in the site config replacement body."""
    return {"properties": {"ipSecurityRestrictions": restrictions}}
