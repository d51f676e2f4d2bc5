"""Plan and apply commands for hostform.

This module provides the commands that compare a manifest with the
managed state and reconcile the hosting service against it.
"""

from __future__ import annotations

import click

from hostform.cli.context import Context, pass_context
from hostform.core.exceptions import HostformError
from hostform.core.manifest import load_manifest
from hostform.models.desired import Manifest
from hostform.utils.output import (
    OutputFormat,
    OutputFormatter,
    create_spinner_progress,
    print_error,
    print_info,
    print_success,
    print_warning,
)

MANIFEST_ARGUMENT = click.argument("manifest_path", type=click.Path(dir_okay=False))
FORMAT_OPTION = click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json", "yaml"]),
    default="table",
    help="Output format.",
)
YES_OPTION = click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Skip confirmation prompt.",
)


def _load(manifest_path: str) -> Manifest:
    try:
        return load_manifest(manifest_path)
    except HostformError as e:
        print_error(str(e))
        raise SystemExit(1) from e


@click.command()
@MANIFEST_ARGUMENT
@FORMAT_OPTION
@pass_context
def plan(ctx: Context, manifest_path: str, fmt: str) -> None:
    """Show the changes needed to reach MANIFEST.

    Nothing is modified. Exits with status 1 if any resource cannot
    be reconciled as declared.

    Examples:

        $ hostform plan manifest.yaml

        $ hostform plan manifest.yaml --format json
    """
    manifest = _load(manifest_path)
    result = ctx.init_engine().plan(manifest)

    OutputFormatter(OutputFormat(fmt)).print_plan(result)
    if result.errors:
        raise SystemExit(1)


@click.command()
@MANIFEST_ARGUMENT
@FORMAT_OPTION
@YES_OPTION
@pass_context
def apply(ctx: Context, manifest_path: str, fmt: str, yes: bool) -> None:
    """Reconcile the hosting service with MANIFEST.

    Shows the plan, asks for confirmation, then creates, updates,
    replaces and deletes resources. State is saved after every
    resource, so an interrupted run can be resumed.

    Examples:

        $ hostform apply manifest.yaml

        $ hostform apply manifest.yaml --yes
    """
    manifest = _load(manifest_path)
    engine = ctx.init_engine()
    formatter = OutputFormatter(OutputFormat(fmt))

    pending = engine.plan(manifest)
    if not pending.has_changes and not pending.errors:
        print_info("No changes. Hosting matches the manifest.")
        return

    if fmt == "table":
        formatter.print_plan(pending)
        if pending.errors:
            print_warning(f"{len(pending.errors)} resource(s) will be skipped, see errors above")
    if not yes:
        click.confirm("Apply these changes?", abort=True)

    with create_spinner_progress() as progress:
        progress.add_task("Applying changes...", total=None)
        result = engine.apply(manifest)

    formatter.print_apply_result(result)
    if not result.success:
        print_error(f"Apply finished with {len(result.errors)} error(s)")
        raise SystemExit(1)
    print_success("Apply complete")


@click.command()
@FORMAT_OPTION
@YES_OPTION
@pass_context
def destroy(ctx: Context, fmt: str, yes: bool) -> None:
    """Delete every resource recorded in state.

    This action is irreversible.

    Examples:

        $ hostform destroy

        $ hostform destroy --yes
    """
    engine = ctx.init_engine()
    managed = len(engine.store)
    if not managed:
        print_info("Nothing to destroy.")
        return

    if not yes:
        click.confirm(
            f"Delete all {managed} managed resource(s)? This cannot be undone.",
            abort=True,
        )

    with create_spinner_progress() as progress:
        progress.add_task("Destroying resources...", total=None)
        result = engine.destroy()

    OutputFormatter(OutputFormat(fmt)).print_apply_result(result)
    if not result.success:
        print_error(f"Destroy finished with {len(result.errors)} error(s)")
        raise SystemExit(1)
    print_success(f"Destroyed {len(result.deleted)} resource(s)")


@click.command()
@pass_context
def refresh(ctx: Context) -> None:
    """Read managed resources back and forget vanished ones.

    Examples:

        $ hostform refresh
    """
    removed = ctx.init_engine().refresh()
    for address in removed:
        print_info(f"Removed {address} from state (no longer exists)")
    print_success(f"State refreshed, {len(removed)} resource(s) removed")


@click.command()
@MANIFEST_ARGUMENT
def validate(manifest_path: str) -> None:
    """Validate MANIFEST without contacting the hosting service.

    Examples:

        $ hostform validate manifest.yaml
    """
    manifest = _load(manifest_path)
    print_success(f"Manifest is valid: {len(manifest.addresses())} resource(s)")
