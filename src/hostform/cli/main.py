"""Main CLI entry point for hostform.

This module defines the main CLI group and global options that are
shared across all commands.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click
from rich.console import Console

from hostform import __version__
from hostform.cli.config_cmd import config
from hostform.cli.context import Context, pass_context
from hostform.cli.lookup import lookup
from hostform.cli.plan_cmd import apply, destroy, plan, refresh, validate
from hostform.cli.state_cmd import state
from hostform.core.config import ConfigManager, get_default_config_path
from hostform.core.exceptions import HostformError
from hostform.utils.logging import configure_logging
from hostform.utils.output import error_console, print_error


def version_callback(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console = Console()
    console.print(f"hostform version [cyan]{__version__}[/cyan]")
    ctx.exit()


@click.group()
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v, -vv for more).",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Show full error tracebacks.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(),
    envvar="HOSTFORM_CONFIG",
    help=f"Path to config file (default: {get_default_config_path()}).",
)
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@pass_context
def cli(
    ctx: Context,
    verbose: int,
    debug: bool,
    config_path: str | None,
) -> None:
    """hostform - Reconcile hosting resources with a manifest.

    Declare VMs, disks, IP addresses, VLANs and SSH keys in a YAML
    manifest; hostform works out and performs the calls that make the
    hosting service match it.

    Use -v or -vv for increasing levels of verbosity.

    Examples:

        # Show what would change

        $ hostform plan manifest.yaml

        # Apply the manifest

        $ hostform apply manifest.yaml

        # List managed resources

        $ hostform state list

        # Delete everything hostform manages

        $ hostform destroy
    """
    ctx.verbose = verbose
    ctx.debug = debug

    if config_path:
        ctx.config = ConfigManager(Path(config_path))

    log_settings = ctx.init_config().config.logging
    configure_logging(
        verbosity=verbose,
        log_file=log_settings.file,
        log_level=None if verbose else log_settings.level,
    )


# Register subcommands
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(refresh)
cli.add_command(validate)
cli.add_command(state)
cli.add_command(lookup)
cli.add_command(config)


def main() -> None:
    """Main entry point with error handling."""
    try:
        cli(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Abort:
        error_console.print("\n[dim]Aborted[/dim]")
        sys.exit(1)
    except HostformError as e:
        print_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        error_console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("HOSTFORM_DEBUG") or "--debug" in sys.argv:
            import traceback

            traceback.print_exc()
        else:
            print_error(f"Unexpected error: {e}")
            error_console.print("[dim]Use --debug for full traceback[/dim]")
        sys.exit(1)


if __name__ == "__main__":
    main()
