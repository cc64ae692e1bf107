"""Command-line interface for running plan modifiers against scenario manifests."""

from __future__ import annotations

import json
import logging
import os
import sys

import click

from .config import LOG_LEVEL_ENV_VAR, EngineOptions
from .exceptions import ManifestError, PrivateStateError
from .manifest import ScenarioManifest
from .reconciler import reconcile

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.version_option()
@click.option(
    "--log-level",
    default=lambda: os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING").upper(),
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    help=f"Logging level (default: ${LOG_LEVEL_ENV_VAR} or WARNING)",
)
def cli(log_level: str) -> None:
    """planmod plan modification CLI."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_manifest(file_path: str) -> ScenarioManifest:
    try:
        return ScenarioManifest.from_file(file_path)
    except ManifestError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command("reconcile")
@click.option(
    "--file",
    "-f",
    "file_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML scenario manifest.",
)
@click.option(
    "--no-warn-ambiguous",
    is_flag=True,
    help="Do not warn when a set element cannot be matched to a unique prior element",
)
@click.option(
    "--continue-chain-on-error",
    is_flag=True,
    help="Keep running an attribute's remaining modifiers after one reports an error",
)
def reconcile_cmd(file_path: str, no_warn_ambiguous: bool, continue_chain_on_error: bool) -> None:
    """Run every plan modifier once and print the resulting plan as JSON."""
    manifest = _load_manifest(file_path)

    try:
        options = EngineOptions.from_environment()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if no_warn_ambiguous or continue_chain_on_error:
        options = EngineOptions(
            warn_on_ambiguous_match=options.warn_on_ambiguous_match and not no_warn_ambiguous,
            stop_chain_on_error=options.stop_chain_on_error and not continue_chain_on_error,
        )

    try:
        result = reconcile(
            manifest.schema,
            manifest.config,
            manifest.state,
            manifest.plan,
            private=manifest.private,
            options=options,
        )
    except PrivateStateError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result.as_dict(), indent=2, default=str))

    if result.has_error:
        click.echo(f"\nErrors ({result.diagnostics.error_count}):", err=True)
        for diagnostic in result.diagnostics.errors():
            where = f"{diagnostic.path}: " if diagnostic.path is not None else ""
            click.echo(f"  - {where}{diagnostic.summary}", err=True)
        sys.exit(1)


@cli.command()
@click.option(
    "--file",
    "-f",
    "file_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML scenario manifest.",
)
def validate(file_path: str) -> None:
    """Check that a scenario manifest parses against its schema."""
    manifest = _load_manifest(file_path)
    click.echo(f"Manifest is valid: {manifest.attribute_count()} attribute(s)")


if __name__ == "__main__":
    cli()
