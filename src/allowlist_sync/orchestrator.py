"""Sync orchestration.

One run:
1. Download the prefix document (first usable candidate URL)
2. Extract the prefix set
3. Dispatch on the resource id to the Standard or Consumption flow
4. Read the current state, compute the desired state
5. Write (unless dry run, or already in sync) and read back to verify

Runs are sequential and hold no state between invocations. Two runs against
the same resource race and the last write wins; no lease or ETag is used.
Verification problems after a successful write are reported as warnings
and never roll back.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import requests

from .access_control import (
    build_workflow_body,
    count_allowed_callers,
    reconcile_access_control,
)
from .arm_client import ResourceClient, parse_subscription_id
from .config import (
    CONSUMPTION_RESOURCE_MARKER,
    SITE_CONFIG_API_VERSION,
    STANDARD_RESOURCE_MARKER,
    Config,
    TargetKind,
)
from .errors import InvalidArgumentError, ResourceRetrievalError, UnsupportedResourceTypeError
from .extractor import ExtractionResult, extract_prefixes
from .fetcher import fetch_prefix_document
from .restrictions import build_site_config_body, reconcile_restrictions
from .security import get_managed_identity_credential

logger = logging.getLogger(__name__)

SITE_CONFIG_SUFFIX = "/config/web"


def detect_target_kind(resource_id: str) -> TargetKind:
    """Determine the Logic App hosting model from its resource id.

    Raises:
        InvalidArgumentError: If the id is empty.
        UnsupportedResourceTypeError: If the id is neither a site nor a workflow.
    """
    if not resource_id:
        raise InvalidArgumentError("Resource id is required")
    if STANDARD_RESOURCE_MARKER in resource_id:
        return TargetKind.STANDARD
    if CONSUMPTION_RESOURCE_MARKER in resource_id:
        return TargetKind.CONSUMPTION
    raise UnsupportedResourceTypeError(
        f"Resource id is neither {STANDARD_RESOURCE_MARKER.strip('/')} nor "
        f"{CONSUMPTION_RESOURCE_MARKER.strip('/')}: {resource_id}"
    )


def site_config_id(resource_id: str) -> str:
    """Resource id of a site's web config."""
    return resource_id.rstrip("/") + SITE_CONFIG_SUFFIX


@dataclass
class SyncResult:
    """Result of a single sync run."""

    resource_id: str
    target_kind: TargetKind
    dry_run: bool = False
    source_url: str = ""
    strategy: str = ""
    prefix_count: int = 0
    api_version: str | None = None
    needs_update: bool = True
    written: bool = False
    body: dict[str, Any] | None = None
    current_counts: dict[str, int] = field(default_factory=dict)
    verified_counts: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def summary(self) -> str:
        """One-line human-readable outcome."""
        if self.dry_run:
            return (
                f"Dry run: {self.prefix_count} prefixes would be applied to "
                f"{self.target_kind.value} Logic App"
            )
        if not self.needs_update:
            return (
                f"Already in sync: {self.prefix_count} prefixes, current counts "
                f"{self.current_counts}"
            )
        verified = self.verified_counts or "unverified"
        return f"Applied {self.prefix_count} prefixes; verified counts {verified}"


class AllowlistSync:
    """Runs one allowlist sync against a single Logic App."""

    def __init__(
        self,
        config: Config,
        *,
        client: ResourceClient | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the sync.

        Args:
            config: Validated configuration.
            client: Management client; built from a managed identity if None
                and the run needs one.
            session: requests session for the document download.
            sleep: Delay function used before the verification read.
        """
        self._config = config
        self._client = client
        self._session = session
        self._sleep = sleep

    @property
    def config(self) -> Config:
        return self._config

    def _resource_client(self) -> ResourceClient:
        if self._client is None:
            credential = get_managed_identity_credential(self._config.client_id)
            self._client = ResourceClient(
                subscription_id=parse_subscription_id(self._config.resource_id),
                credential=credential,
            )
        return self._client

    def load_prefixes(self) -> tuple[str, ExtractionResult]:
        """Download the prefix document and extract its prefix set.

        Returns:
            Tuple of (source URL used, extraction result).
        """
        document = fetch_prefix_document(
            self._config.source_urls,
            session=self._session,
            timeout=self._config.request_timeout_seconds,
        )
        return document.url, extract_prefixes(document.data, document.raw_text, document.url)

    def run(self) -> SyncResult:
        """Execute one sync run.

        Raises:
            AllowlistSyncError: On any fatal condition.
        """
        kind = detect_target_kind(self._config.resource_id)
        result = SyncResult(
            resource_id=self._config.resource_id,
            target_kind=kind,
            dry_run=self._config.dry_run,
        )

        logger.info(
            "Starting allowlist sync",
            extra={
                "resource_id": self._config.resource_id,
                "target_kind": kind.value,
                "dry_run": self._config.dry_run,
                "skip_fetch_existing": self._config.skip_fetch_existing,
            },
        )

        source_url, extraction = self.load_prefixes()
        result.source_url = source_url
        result.strategy = extraction.strategy
        result.prefix_count = len(extraction.prefixes)

        if kind == TargetKind.STANDARD:
            self._sync_standard(extraction.prefixes, result)
        else:
            self._sync_consumption(extraction.prefixes, result)

        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    def _sync_standard(self, prefixes: tuple[str, ...], result: SyncResult) -> None:
        config_id = site_config_id(self._config.resource_id)
        result.api_version = SITE_CONFIG_API_VERSION

        # A full replace from an empty baseline would delete user-owned rules
        if self._config.skip_fetch_existing and not self._config.dry_run:
            raise InvalidArgumentError(
                "Skipping the existing site config read is only allowed with dry run "
                "for Standard Logic Apps"
            )

        existing: list[dict[str, Any]] = []
        if not self._config.skip_fetch_existing:
            current = self._resource_client().get_resource(config_id, SITE_CONFIG_API_VERSION)
            existing = (current.get("properties") or {}).get("ipSecurityRestrictions") or []
        result.current_counts = {"ipSecurityRestrictions": len(existing)}

        merged = reconcile_restrictions(existing, prefixes, result.source_url)
        result.body = build_site_config_body(merged)

        if self._config.dry_run:
            logger.info("Dry run, not writing site config", extra={"rule_count": len(merged)})
            return

        client = self._resource_client()
        client.put_resource(config_id, SITE_CONFIG_API_VERSION, result.body)
        result.written = True

        try:
            verified = client.get_resource(config_id, SITE_CONFIG_API_VERSION)
        except ResourceRetrievalError as e:
            self._warn(result, f"Verification read failed: {e}")
            return

        rules = (verified.get("properties") or {}).get("ipSecurityRestrictions") or []
        result.verified_counts = {"ipSecurityRestrictions": len(rules)}
        if len(rules) != len(merged):
            self._warn(
                result,
                f"Verification found {len(rules)} restrictions, expected {len(merged)}",
            )

    def _resolve_workflow(self) -> tuple[str, dict[str, Any] | None]:
        """Find a workflow API version that can read the resource.

        Returns:
            Tuple of (api version, existing resource or None for an empty baseline).

        Raises:
            ResourceRetrievalError: If no candidate version can read the resource.
        """
        candidates = self._config.workflow_api_versions
        if self._config.skip_fetch_existing:
            logger.info("Skipping existing workflow read", extra={"api_version": candidates[0]})
            return candidates[0], None

        client = self._resource_client()
        failures: list[str] = []
        for api_version in candidates:
            try:
                resource = client.get_resource(self._config.resource_id, api_version)
            except ResourceRetrievalError as e:
                logger.warning(
                    "Workflow read failed, trying next API version",
                    extra={"api_version": api_version, "error": str(e)},
                )
                failures.append(str(e))
                continue
            logger.info("Resolved workflow API version", extra={"api_version": api_version})
            return api_version, resource

        raise ResourceRetrievalError(
            "Unable to read workflow with any API version:\n  - " + "\n  - ".join(failures)
        )

    def _sync_consumption(self, prefixes: tuple[str, ...], result: SyncResult) -> None:
        include_contents = self._config.effective_include_contents
        api_version, existing = self._resolve_workflow()
        result.api_version = api_version

        triggers, contents = count_allowed_callers(existing)
        result.current_counts = {"triggers": triggers, "contents": contents}

        existing_access = ((existing or {}).get("properties") or {}).get("accessControl")
        plan = reconcile_access_control(
            existing_access,
            prefixes,
            include_contents,
            compare_existing=existing is not None and not self._config.dry_run,
        )
        result.needs_update = plan.needs_update
        if not plan.needs_update:
            logger.info("Workflow access control already in sync", extra=result.current_counts)
            return

        result.body = build_workflow_body(existing, plan.access_control)
        if self._config.dry_run:
            logger.info("Dry run, not writing workflow", extra={"prefix_count": len(prefixes)})
            return

        client = self._resource_client()
        client.put_resource(self._config.resource_id, api_version, result.body)
        result.written = True

        self._sleep(self._config.verify_delay_seconds)
        try:
            verified = client.get_resource(self._config.resource_id, api_version)
        except ResourceRetrievalError as e:
            self._warn(result, f"Verification read failed: {e}")
            return

        triggers, contents = count_allowed_callers(verified)
        result.verified_counts = {"triggers": triggers, "contents": contents}
        expected = len(prefixes)
        if triggers != expected:
            self._warn(result, f"Trigger allowlist has {triggers} entries, expected {expected}")
        if include_contents and contents != expected:
            self._warn(result, f"Content allowlist has {contents} entries, expected {expected}")

    def _warn(self, result: SyncResult, message: str) -> None:
        logger.warning(message, extra={"resource_id": result.resource_id})
        result.warnings.append(message)

    def _log_result(self, result: SyncResult) -> None:
        logger.info(
            "Allowlist sync finished",
            extra={
                "resource_id": result.resource_id,
                "target_kind": result.target_kind.value,
                "strategy": result.strategy,
                "prefix_count": result.prefix_count,
                "api_version": result.api_version,
                "needs_update": result.needs_update,
                "written": result.written,
                "dry_run": result.dry_run,
                "warning_count": len(result.warnings),
                "duration_seconds": result.duration_seconds,
            },
        )
