"""Logic App allowlist sync CLI.

Usage:
    allowlist-sync run --resource-id <id> --source-url <url>   # Sync once
    allowlist-sync run --settings sync.yaml --dry-run          # Print body only
    allowlist-sync extract --source-url <url>                  # List prefixes
    allowlist-sync detect <resource-id>                        # Show hosting model
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from .config import DEFAULT_REQUEST_TIMEOUT_SECONDS, Config, TargetSelector
from .errors import AllowlistSyncError
from .extractor import extract_prefixes
from .fetcher import fetch_prefix_document
from .main import setup_logging, write_body
from .orchestrator import AllowlistSync, detect_target_kind
from .security import SecretlessViolationError
from .settings_loader import SyncSettings, load_settings

# Exit codes
EXIT_FAILURE = 1
EXIT_SECURITY_VIOLATION = 2


class SecurityViolationException(click.ClickException):
    """ClickException that exits with the security violation code."""

    exit_code = EXIT_SECURITY_VIOLATION


def _configure_logging(json_logs: bool, verbose: bool) -> None:
    # stdout carries command output such as the dry-run body
    setup_logging(
        json_output=json_logs,
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stderr,
    )


@click.group()
@click.version_option(version="0.1.0", prog_name="allowlist-sync")
def cli() -> None:
    """Keep a Logic App IP allowlist in sync with published cloud prefixes.

    \b
    Quick Start:
        allowlist-sync detect <resource-id>
        allowlist-sync run --resource-id <id> --source-url <url> --dry-run
    """
    pass


@cli.command()
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML settings file; options given here override it",
)
@click.option("--resource-id", envvar="LOGIC_APP_RESOURCE_ID", help="Target Logic App id")
@click.option("--source-url", envvar="PREFIX_SOURCE_URL", help="Prefix document URL")
@click.option(
    "--fallback-url",
    "fallback_urls",
    multiple=True,
    help="Fallback document URL (repeatable, tried in order)",
)
@click.option("--api-version", help="Workflow API version to try first")
@click.option(
    "--target",
    type=click.Choice([t.value for t in TargetSelector]),
    help="Legacy selector: Trigger, Content or Both",
)
@click.option(
    "--include-contents/--no-include-contents",
    default=None,
    help="Also manage content access (overrides --target)",
)
@click.option("--dry-run/--no-dry-run", default=None, help="Print the body instead of writing")
@click.option(
    "--skip-fetch-existing/--fetch-existing",
    default=None,
    help="Assume an empty existing configuration",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write the dry-run body to this file",
)
@click.option("--verify-delay", type=int, help="Seconds to wait before verifying")
@click.option("--timeout", "request_timeout", type=int, help="Document download timeout")
@click.option("--client-id", envvar="AZURE_CLIENT_ID", help="User-assigned identity client id")
@click.option("--json-logs/--text-logs", default=False, help="Log format (default: text)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def run(
    settings_path: Path | None,
    resource_id: str | None,
    source_url: str | None,
    fallback_urls: tuple[str, ...],
    api_version: str | None,
    target: str | None,
    include_contents: bool | None,
    dry_run: bool | None,
    skip_fetch_existing: bool | None,
    output_path: Path | None,
    verify_delay: int | None,
    request_timeout: int | None,
    client_id: str | None,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Sync the allowlist of one Logic App.

    \b
    Examples:
        allowlist-sync run --resource-id /subscriptions/.../workflows/wf --source-url https://...
        allowlist-sync run --settings nightly.yaml --dry-run --output body.json
    """
    _configure_logging(json_logs, verbose)

    overrides: dict[str, Any] = {
        "resource_id": resource_id,
        "source_url": source_url,
        "fallback_source_urls": fallback_urls or None,
        "api_version": api_version,
        "target": TargetSelector(target) if target else None,
        "include_contents": include_contents,
        "dry_run": dry_run,
        "skip_fetch_existing": skip_fetch_existing,
        "output_path": output_path,
        "verify_delay_seconds": verify_delay,
        "request_timeout_seconds": request_timeout,
    }

    try:
        settings = load_settings(settings_path) if settings_path else SyncSettings()
        config = Config(**settings.merged_with(overrides), client_id=client_id)
        result = AllowlistSync(config).run()
    except SecretlessViolationError as e:
        raise SecurityViolationException(str(e)) from e
    except AllowlistSyncError as e:
        raise click.ClickException(str(e)) from e

    if result.dry_run:
        write_body(result, config.output_path)
        click.echo(json.dumps(result.body, indent=2))

    for warning in result.warnings:
        click.secho(f"warning: {warning}", fg="yellow", err=True)
    click.secho(result.summary(), fg="green", err=True)


@cli.command()
@click.option("--source-url", envvar="PREFIX_SOURCE_URL", required=True, help="Document URL")
@click.option("--fallback-url", "fallback_urls", multiple=True, help="Fallback document URL")
@click.option(
    "--timeout",
    "request_timeout",
    type=int,
    default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
    show_default=True,
    help="Download timeout",
)
def extract(source_url: str, fallback_urls: tuple[str, ...], request_timeout: int) -> None:
    """Download a prefix document and print its prefixes, one per line."""
    try:
        document = fetch_prefix_document([source_url, *fallback_urls], timeout=request_timeout)
        result = extract_prefixes(document.data, document.raw_text, document.url)
    except AllowlistSyncError as e:
        raise click.ClickException(str(e)) from e

    for prefix in result.prefixes:
        click.echo(prefix)
    click.echo(f"{len(result)} prefixes via {result.strategy} from {document.url}", err=True)


@cli.command()
@click.argument("resource_id")
def detect(resource_id: str) -> None:
    """Print the hosting model (standard or consumption) of a Logic App id."""
    try:
        kind = detect_target_kind(resource_id)
    except AllowlistSyncError as e:
        raise click.ClickException(str(e)) from e
    click.echo(kind.value)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
