"""Configuration management with validation.

All inputs are validated at construction time so a misconfigured pipeline
fails before any network call is made.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .errors import InvalidArgumentError


class TargetSelector(str, Enum):
    """Legacy selector for which access-control sections to manage."""

    TRIGGER = "Trigger"
    CONTENT = "Content"
    BOTH = "Both"


class TargetKind(str, Enum):
    """Logic App hosting models."""

    STANDARD = "standard"
    CONSUMPTION = "consumption"


class ConfigurationError(InvalidArgumentError):
    """Raised when configuration validation fails."""

    pass


# Resource id fragments that select the hosting model
STANDARD_RESOURCE_MARKER = "/Microsoft.Web/sites/"
CONSUMPTION_RESOURCE_MARKER = "/Microsoft.Logic/workflows/"

# API versions
SITE_CONFIG_API_VERSION = "2022-03-01"
DEFAULT_WORKFLOW_API_VERSION = "2019-05-01"
FALLBACK_WORKFLOW_API_VERSIONS: tuple[str, ...] = ("2019-05-01", "2016-06-01")

# Timing constants with documented bounds
DEFAULT_VERIFY_DELAY_SECONDS = 10
MAX_VERIFY_DELAY_SECONDS = 300
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30
MIN_REQUEST_TIMEOUT_SECONDS = 1
MAX_REQUEST_TIMEOUT_SECONDS = 300

# Size limits for downloaded and local input
MAX_DOCUMENT_SIZE_BYTES = 10 * 1024 * 1024  # 10MB prefix document
MAX_SETTINGS_FILE_SIZE_BYTES = 1024 * 1024  # 1MB settings file

# Input validation patterns
VALID_RESOURCE_ID_PATTERN = (
    r"^/subscriptions/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-"
    r"[0-9a-fA-F]{4}-[0-9a-fA-F]{12}/resourceGroups/[^/]+/providers/.+"
)
VALID_API_VERSION_PATTERN = r"^\d{4}-\d{2}-\d{2}(-preview)?$"
VALID_URL_PATTERN = r"^https?://\S+$"


@dataclass(frozen=True)
class Config:
    """Sync configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-run.
    """

    # Required fields
    resource_id: str
    source_url: str

    # Additional document sources tried in order after source_url
    fallback_source_urls: tuple[str, ...] = ()

    # Workflow API version override (tried before the built-in fallbacks)
    api_version: str | None = None

    # Which access-control sections to manage; include_contents wins when set
    target: TargetSelector = TargetSelector.TRIGGER
    include_contents: bool | None = None

    # Behavior
    dry_run: bool = False
    skip_fetch_existing: bool = False
    output_path: Path | None = None

    # Timing
    verify_delay_seconds: int = DEFAULT_VERIFY_DELAY_SECONDS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS

    # Client id of a user-assigned managed identity
    client_id: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.resource_id:
            errors.append("LOGIC_APP_RESOURCE_ID is required")
        elif not re.match(VALID_RESOURCE_ID_PATTERN, self.resource_id):
            errors.append(
                f"LOGIC_APP_RESOURCE_ID is not a valid ARM resource id: {self.resource_id}"
            )

        if not self.source_url:
            errors.append("PREFIX_SOURCE_URL is required")
        elif not re.match(VALID_URL_PATTERN, self.source_url):
            errors.append(f"PREFIX_SOURCE_URL must be an http(s) URL: {self.source_url}")

        for url in self.fallback_source_urls:
            if not re.match(VALID_URL_PATTERN, url):
                errors.append(f"PREFIX_FALLBACK_URLS entry must be an http(s) URL: {url}")

        if self.api_version and not re.match(VALID_API_VERSION_PATTERN, self.api_version):
            errors.append(f"LOGIC_APP_API_VERSION must look like YYYY-MM-DD: {self.api_version}")

        if not 0 <= self.verify_delay_seconds <= MAX_VERIFY_DELAY_SECONDS:
            errors.append(f"VERIFY_DELAY must be between 0 and {MAX_VERIFY_DELAY_SECONDS} seconds")

        if not (
            MIN_REQUEST_TIMEOUT_SECONDS
            <= self.request_timeout_seconds
            <= MAX_REQUEST_TIMEOUT_SECONDS
        ):
            errors.append(
                f"REQUEST_TIMEOUT must be between {MIN_REQUEST_TIMEOUT_SECONDS} "
                f"and {MAX_REQUEST_TIMEOUT_SECONDS} seconds"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def source_urls(self) -> tuple[str, ...]:
        """All document sources in the order they are tried."""
        return (self.source_url, *self.fallback_source_urls)

    @property
    def effective_include_contents(self) -> bool:
        """Whether content access is managed alongside trigger access."""
        if self.include_contents is not None:
            return self.include_contents
        return self.target in (TargetSelector.CONTENT, TargetSelector.BOTH)

    @property
    def workflow_api_versions(self) -> tuple[str, ...]:
        """Workflow API versions to try, user override first, without repeats."""
        candidates: list[str] = []
        for version in (self.api_version, *FALLBACK_WORKFLOW_API_VERSIONS):
            if version and version not in candidates:
                candidates.append(version)
        return tuple(candidates)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            LOGIC_APP_RESOURCE_ID: Full ARM id of the target site or workflow
            PREFIX_SOURCE_URL: Primary URL of the prefix document
            PREFIX_FALLBACK_URLS: Comma-separated fallback URLs
            LOGIC_APP_API_VERSION: Workflow API version override
            ACCESS_TARGET: One of Trigger, Content, Both (default: Trigger)
            INCLUDE_CONTENT_ACCESS: If set, overrides ACCESS_TARGET
            DRY_RUN: If "true", print the body instead of writing it
            SKIP_FETCH_EXISTING: If "true", assume an empty existing baseline
            OUTPUT_PATH: File to write the computed body to in dry-run mode
            VERIFY_DELAY: Seconds to wait before the verification read (default: 10)
            REQUEST_TIMEOUT: HTTP timeout for the document fetch (default: 30)
            AZURE_CLIENT_ID: Client id of a user-assigned managed identity
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        def get_optional_bool(key: str) -> bool | None:
            if not os.environ.get(key):
                return None
            return get_bool(key, False)

        def get_target(value: str | None) -> TargetSelector:
            if not value:
                return TargetSelector.TRIGGER
            try:
                return TargetSelector(value)
            except ValueError as e:
                valid = [t.value for t in TargetSelector]
                raise ConfigurationError(f"ACCESS_TARGET must be one of {valid}: {value}") from e

        fallback_urls = tuple(
            url.strip()
            for url in os.environ.get("PREFIX_FALLBACK_URLS", "").split(",")
            if url.strip()
        )
        output_path = os.environ.get("OUTPUT_PATH")

        return cls(
            resource_id=os.environ.get("LOGIC_APP_RESOURCE_ID", ""),
            source_url=os.environ.get("PREFIX_SOURCE_URL", ""),
            fallback_source_urls=fallback_urls,
            api_version=os.environ.get("LOGIC_APP_API_VERSION") or None,
            target=get_target(os.environ.get("ACCESS_TARGET")),
            include_contents=get_optional_bool("INCLUDE_CONTENT_ACCESS"),
            dry_run=get_bool("DRY_RUN", False),
            skip_fetch_existing=get_bool("SKIP_FETCH_EXISTING", False),
            output_path=Path(output_path) if output_path else None,
            verify_delay_seconds=get_int("VERIFY_DELAY", DEFAULT_VERIFY_DELAY_SECONDS),
            request_timeout_seconds=get_int("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
        )
