"""Catalog lookup commands for hostform.

Regions and images are read-only; these commands help find the IDs
a manifest needs.
"""

from __future__ import annotations

import click

from hostform.cli.context import Context, pass_context
from hostform.core import lookups
from hostform.core.exceptions import ResourceNotFoundError
from hostform.utils.output import OutputFormat, OutputFormatter, print_error

FORMAT_OPTION = click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json", "yaml"]),
    default="table",
    help="Output format.",
)


@click.group()
def lookup() -> None:
    """Look up regions and images."""


@lookup.command("regions")
@FORMAT_OPTION
@pass_context
def lookup_regions(ctx: Context, fmt: str) -> None:
    """List available regions.

    Examples:

        $ hostform lookup regions
    """
    OutputFormatter(OutputFormat(fmt)).print_regions(ctx.init_hosting().regions)


@lookup.command("region")
@click.argument("code")
@FORMAT_OPTION
@pass_context
def lookup_region(ctx: Context, code: str, fmt: str) -> None:
    """Show the region with code CODE.

    Examples:

        $ hostform lookup region FR-SD6
    """
    try:
        region = lookups.region_by_code(ctx.init_hosting(), code)
    except ResourceNotFoundError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    OutputFormatter(OutputFormat(fmt)).print_regions([region])


@lookup.command("image")
@click.argument("name")
@click.option(
    "--region",
    "-r",
    "region_code",
    required=True,
    help="Region code, e.g. FR-SD6.",
)
@FORMAT_OPTION
@pass_context
def lookup_image(ctx: Context, name: str, region_code: str, fmt: str) -> None:
    """Show the image NAME available in a region.

    Examples:

        $ hostform lookup image "Debian 12" --region FR-SD6
    """
    hosting = ctx.init_hosting()
    try:
        region = lookups.region_by_code(hosting, region_code)
        image = lookups.image_by_name(hosting, name, region.id)
    except ResourceNotFoundError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    OutputFormatter(OutputFormat(fmt)).print_images([image])
