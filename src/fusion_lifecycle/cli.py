"""Fusion lifecycle CLI (fusionctl).

Runs one lifecycle action against one resource and prints the outcome as
JSON. The desired attributes come from a YAML record file; the state of
a previous run (resource id plus observed attributes) from a JSON file.

Usage:
    fusionctl create volume vol.yaml --state-out vol.state.json
    fusionctl update volume vol.yaml --state vol.state.json --state-out vol.state.json
    fusionctl read volume --state vol.state.json
    fusionctl import volume --id 7f3c...
    fusionctl delete volume --state vol.state.json

Exit codes:
    0   success (including a read that found the resource gone)
    1   terminal failure
    2   configuration or input error
    75  transient failure; retrying the same command is safe
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from . import __version__
from .adapters import RESOURCE_KINDS
from .config import ConfigurationError, ProviderConfig
from .driver import LifecycleAction, LifecycleResult, build_driver
from .errors import InvalidRecordError
from .main import build_client, setup_logging
from .spec_loader import SpecLoadError, load_record, load_state, write_state

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_TEMPFAIL = 75

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.version_option(version=__version__, prog_name="fusionctl")
@click.option("--host", envvar="FUSION_HOST", help="Fusion control plane URL")
@click.option("--issuer-id", envvar="FUSION_ISSUER_ID", help="Pure1 API client id")
@click.option(
    "--private-key-file",
    envvar="FUSION_PRIVATE_KEY_FILE",
    type=click.Path(dir_okay=False),
    help="PEM RSA private key of the API client",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Log level (logs go to stderr as JSON)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    host: str | None,
    issuer_id: str | None,
    private_key_file: str | None,
    log_level: str,
) -> None:
    """Fusion lifecycle CLI (fusionctl).

    Create, read, update, delete or import one Fusion resource and wait for
    every operation it starts to finish.

    \b
    Kinds: volume, placement_group, tenant_space, host_access_policy
    """
    setup_logging(log_level, stream=sys.stderr)
    ctx.obj = {"host": host, "issuer_id": issuer_id, "private_key_file": private_key_file}


def _kind_argument(f: Any) -> Any:
    return click.argument("kind", type=click.Choice(RESOURCE_KINDS))(f)


def _record_argument(required: bool) -> Any:
    return click.argument(
        "record_file",
        required=required,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
    )


_state_option = click.option(
    "--state",
    "state_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="State JSON written by a previous run",
)
_state_out_option = click.option(
    "--state-out",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the resulting state JSON here",
)


@cli.command()
@_kind_argument
@_record_argument(required=True)
@_state_out_option
@click.pass_context
def create(ctx: click.Context, kind: str, record_file: Path, state_out: Path | None) -> None:
    """Create a resource from a record file."""
    _run(ctx, LifecycleAction.CREATE, kind, record_file, None, state_out)


@cli.command()
@_kind_argument
@_record_argument(required=False)
@_state_option
@_state_out_option
@click.pass_context
def read(
    ctx: click.Context,
    kind: str,
    record_file: Path | None,
    state_file: Path | None,
    state_out: Path | None,
) -> None:
    """Refresh a tracked resource from the API."""
    _run(ctx, LifecycleAction.READ, kind, record_file, state_file, state_out)


@cli.command()
@_kind_argument
@_record_argument(required=True)
@_state_option
@_state_out_option
@click.pass_context
def update(
    ctx: click.Context,
    kind: str,
    record_file: Path,
    state_file: Path | None,
    state_out: Path | None,
) -> None:
    """Apply the differences between a record file and the tracked state."""
    if state_file is None:
        raise click.UsageError("update requires --state")
    _run(ctx, LifecycleAction.UPDATE, kind, record_file, state_file, state_out)


@cli.command()
@_kind_argument
@_record_argument(required=False)
@_state_option
@_state_out_option
@click.pass_context
def delete(
    ctx: click.Context,
    kind: str,
    record_file: Path | None,
    state_file: Path | None,
    state_out: Path | None,
) -> None:
    """Delete a tracked resource, running any cleanup it needs first."""
    if state_file is None:
        raise click.UsageError("delete requires --state")
    _run(ctx, LifecycleAction.DELETE, kind, record_file, state_file, state_out)


@cli.command(name="import")
@_kind_argument
@click.option("--id", "resource_id", required=True, help="Resource id to import")
@_state_out_option
@click.pass_context
def import_(ctx: click.Context, kind: str, resource_id: str, state_out: Path | None) -> None:
    """Start tracking an existing resource by id."""
    _run(ctx, LifecycleAction.IMPORT, kind, None, None, state_out, resource_id=resource_id)


# =============================================================================
# Shared execution
# =============================================================================


def _run(
    ctx: click.Context,
    action: LifecycleAction,
    kind: str,
    record_file: Path | None,
    state_file: Path | None,
    state_out: Path | None,
    *,
    resource_id: str = "",
) -> None:
    options = ctx.obj or {}
    try:
        config = ProviderConfig.from_env(
            host=options.get("host"),
            issuer_id=options.get("issuer_id"),
            private_key_file=options.get("private_key_file"),
        )
        desired = None
        if record_file is not None:
            record_data = load_record(record_file)
            if record_data.kind is not None and record_data.kind != kind:
                raise SpecLoadError(
                    f"Record file {record_file} is for kind {record_data.kind}, not {kind}"
                )
            desired = record_data.attributes
        state = load_state(state_file) if state_file is not None else None
        if state is not None and state.kind is not None and state.kind != kind:
            raise SpecLoadError(f"State file {state_file} is for kind {state.kind}, not {kind}")
    except (ConfigurationError, SpecLoadError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_USAGE)

    with build_client(config) as client:
        driver = build_driver(kind, client)
        try:
            record = driver.adapter.new_record(
                desired,
                state=state.attributes if state else None,
                resource_id=resource_id or (state.resource_id if state else ""),
            )
        except InvalidRecordError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(EXIT_USAGE)

        result = driver.run(action, record)

    # A failed call leaves desired values in the record; they were not applied
    if state_out is not None and (result.success or result.not_found):
        try:
            write_state(state_out, record.to_state())
        except SpecLoadError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(EXIT_FAILURE)
    elif state_out is not None:
        logger.warning(
            "Lifecycle call failed, state file left unchanged",
            extra={"state_out": str(state_out), "action": action.value},
        )

    click.echo(json.dumps(_result_document(result, record.to_state()), indent=2, default=str))
    ctx.exit(exit_code(result))


def _result_document(result: LifecycleResult, state: dict[str, Any]) -> dict[str, Any]:
    return {
        "kind": result.kind,
        "action": result.action.value,
        "resource_id": result.resource_id,
        "success": result.success,
        "not_found": result.not_found,
        "duration_seconds": result.duration_seconds,
        "diagnostics": [
            {"summary": d.summary, "detail": d.detail, "retryable": d.retryable}
            for d in result.diagnostics
        ],
        "state": state,
    }


def exit_code(result: LifecycleResult) -> int:
    if result.success:
        return EXIT_OK
    if result.retryable:
        return EXIT_TEMPFAIL
    return EXIT_FAILURE


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
