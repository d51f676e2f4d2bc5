"""State inspection commands for hostform.

This module provides CLI commands for listing, showing, importing
and forgetting resources recorded in the state file.
"""

from __future__ import annotations

import click

from hostform.cli.context import Context, pass_context
from hostform.core.exceptions import HostformError
from hostform.models.state import ResourceKind
from hostform.utils.output import (
    OutputFormat,
    OutputFormatter,
    print_error,
    print_info,
    print_success,
)


@click.group()
def state() -> None:
    """Inspect managed state.

    The state file maps every managed resource address (kind.name)
    to its ID and the configuration last applied to it.
    """


@state.command("list")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json", "yaml"]),
    default="table",
    help="Output format.",
)
@click.option(
    "--kind",
    "-k",
    type=click.Choice([k.value for k in ResourceKind]),
    default=None,
    help="Only list resources of this kind.",
)
@pass_context
def state_list(ctx: Context, fmt: str, kind: str | None) -> None:
    """List managed resources.

    Examples:

        $ hostform state list

        $ hostform state list --kind vm --format json
    """
    store = ctx.init_store()
    addresses = store.addresses(ResourceKind(kind) if kind else None)

    if not addresses:
        print_info("No managed resources.")
        return

    entries = [
        {"address": address, "kind": address.split(".", 1)[0], "id": store.id_of(address)}
        for address in addresses
    ]
    OutputFormatter(OutputFormat(fmt)).print_state(entries)


@state.command("show")
@click.argument("address")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json", "yaml"]),
    default="yaml",
    help="Output format.",
)
@pass_context
def state_show(ctx: Context, address: str, fmt: str) -> None:
    """Show the recorded state of ADDRESS.

    Examples:

        $ hostform state show vm.web
    """
    resource = ctx.init_store().get(address)
    if resource is None:
        print_error(f"No resource '{address}' in state")
        raise SystemExit(1)

    data = {
        "address": address,
        "kind": resource.kind.value,
        "id": resource.id,
        "config": (
            resource.config.model_dump(mode="json", exclude_none=True)
            if resource.config is not None
            else None
        ),
    }
    if resource.imported:
        data["imported"] = True
    OutputFormatter(OutputFormat(fmt)).print_dict(data, title=address)


@state.command("rm")
@click.argument("address")
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Skip confirmation prompt.",
)
@pass_context
def state_rm(ctx: Context, address: str, yes: bool) -> None:
    """Forget ADDRESS without deleting the resource.

    The resource keeps existing at the hosting service but is no
    longer managed.

    Examples:

        $ hostform state rm disk.data --yes
    """
    store = ctx.init_store()
    if address not in store:
        print_error(f"No resource '{address}' in state")
        raise SystemExit(1)

    if not yes:
        click.confirm(f"Stop managing '{address}'?", abort=True)

    store.remove(address)
    store.save()
    print_success(f"Removed '{address}' from state")


@state.command("import")
@click.argument("address")
@click.argument("resource_id")
@pass_context
def state_import(ctx: Context, address: str, resource_id: str) -> None:
    """Start managing an existing resource as ADDRESS.

    RESOURCE_ID is the provider ID of the resource, or the key name for
    an SSH key. Its configuration is read from the hosting service, so
    the next plan shows how it differs from the manifest.

    Examples:

        $ hostform state import disk.data 12

        $ hostform state import ssh_key.admin admin
    """
    try:
        resource = ctx.init_engine().import_resource(address, resource_id)
    except HostformError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    print_success(f"Imported {resource.kind.value} {resource.id} as '{address}'")
