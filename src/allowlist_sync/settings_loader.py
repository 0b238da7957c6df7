"""Settings file loading with validation.

A settings file carries the same values as the environment, in YAML with
camelCase keys, so a pipeline can keep per-target settings under version
control. Values given on the command line override the file.

SECURITY: The file size is checked before reading.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from .config import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_VERIFY_DELAY_SECONDS,
    MAX_SETTINGS_FILE_SIZE_BYTES,
    ConfigurationError,
    TargetSelector,
)

logger = logging.getLogger(__name__)


class SyncSettings(BaseModel):
    """Settings file schema."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    resource_id: str | None = Field(None, alias="resourceId")
    source_url: str | None = Field(None, alias="sourceUrl")
    fallback_source_urls: list[str] = Field(default_factory=list, alias="fallbackSourceUrls")
    api_version: str | None = Field(None, alias="apiVersion")
    target: TargetSelector = TargetSelector.TRIGGER
    include_contents: bool | None = Field(None, alias="includeContents")
    dry_run: bool = Field(False, alias="dryRun")
    skip_fetch_existing: bool = Field(False, alias="skipFetchExisting")
    output_path: str | None = Field(None, alias="outputPath")
    verify_delay_seconds: int = Field(DEFAULT_VERIFY_DELAY_SECONDS, alias="verifyDelaySeconds")
    request_timeout_seconds: int = Field(
        DEFAULT_REQUEST_TIMEOUT_SECONDS, alias="requestTimeoutSeconds"
    )

    def merged_with(self, overrides: dict[str, Any]) -> dict[str, Any]:
        """Return Config keyword arguments, letting non-None overrides win."""
        values = self.model_dump()
        values["fallback_source_urls"] = tuple(values["fallback_source_urls"])
        if values["output_path"]:
            values["output_path"] = Path(values["output_path"])
        for key, value in overrides.items():
            if value is not None:
                values[key] = value
        values["resource_id"] = values["resource_id"] or ""
        values["source_url"] = values["source_url"] or ""
        return values


def load_settings(path: Path) -> SyncSettings:
    """Load and validate a settings file.

    Args:
        path: Path to the YAML settings file.

    Returns:
        Validated settings.

    Raises:
        ConfigurationError: If the file cannot be read or fails validation.
    """
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ConfigurationError(f"Failed to stat settings file {path}: {e}") from e

    if file_size > MAX_SETTINGS_FILE_SIZE_BYTES:
        raise ConfigurationError(
            f"Settings file exceeds maximum size of {MAX_SETTINGS_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to read settings file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(f"Settings file must contain a YAML mapping: {path}")

    try:
        settings = SyncSettings.model_validate(raw_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        error_list = "\n".join(errors)
        raise ConfigurationError(f"Validation failed for {path}:\n{error_list}") from e

    logger.info("Loaded settings from %s", path)
    return settings
