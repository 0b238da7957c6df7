"""Pipeline entry point for the Logic App allowlist sync.

Configuration comes entirely from the environment (see Config.from_env) so
the nightly pipeline only has to export variables and run this module.
Logs are written as JSON lines to stdout.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

from .config import Config
from .errors import AllowlistSyncError
from .orchestrator import AllowlistSync, SyncResult
from .security import SecretlessViolationError

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    json_output: bool = True,
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> None:
    """Configure root logging for a run.

    Args:
        json_output: Emit JSON lines (pipeline) instead of plain text (terminal).
        level: Root log level.
        stream: Log destination. Defaults to stdout for JSON and stderr for text.
    """
    if stream is None:
        stream = sys.stdout if json_output else sys.stderr
    handler = logging.StreamHandler(stream)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def write_body(result: SyncResult, output_path: Path | None) -> None:
    """Write the computed replacement body to a file, if one was requested."""
    if output_path is None or result.body is None:
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(result.body, indent=2) + "\n", encoding="utf-8")


def main() -> int:
    """Run one sync from environment configuration.

    Returns:
        Exit code (0 for success, 1 for a failed run, 2 for a security violation).
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except AllowlistSyncError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    try:
        result = AllowlistSync(config).run()
    except SecretlessViolationError as e:
        logger.critical(
            "Security violation: credentials detected in environment",
            extra={"error": str(e)},
        )
        return 2
    except AllowlistSyncError as e:
        logger.error(
            "Allowlist sync failed",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return 1

    if result.dry_run:
        write_body(result, config.output_path)
        logger.info("Dry run body", extra={"body": result.body})

    logger.info(result.summary(), extra={"warnings": result.warnings})
    return 0


def run() -> None:
    """Entry point for the pipeline script."""
    sys.exit(main())


if __name__ == "__main__":
    run()
