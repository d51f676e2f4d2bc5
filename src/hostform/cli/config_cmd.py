"""Configuration management commands for hostform.

This module provides CLI commands for viewing and managing
the hostform configuration file.
"""

from __future__ import annotations

import json

import click
import yaml

from hostform.cli.context import Context, pass_context
from hostform.core.config import ConfigManager
from hostform.core.exceptions import ConfigurationError
from hostform.utils.output import console, print_error, print_info, print_success


@click.group()
def config() -> None:
    """Manage hostform configuration.

    Commands for viewing, validating, and initializing the
    configuration file.
    """


@config.command("show")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format.",
)
@pass_context
def config_show(ctx: Context, fmt: str) -> None:
    """Show current configuration.

    Displays the effective configuration, defaults included.

    Examples:

        $ hostform config show

        $ hostform config show --format json
    """
    config_manager = ctx.init_config()
    data = config_manager.to_dict()

    if fmt == "json":
        console.print_json(json.dumps(data, indent=2, default=str))
    else:
        console.print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))

    console.print(f"\n[dim]Config file: {config_manager.path}[/dim]")


@config.command("validate")
@pass_context
def config_validate(ctx: Context) -> None:
    """Validate the configuration file.

    Checks that the configuration file exists and contains
    valid YAML with correct structure.

    Examples:

        $ hostform config validate
    """
    config_path = ctx.init_config().path

    if not config_path.exists():
        print_error(f"Configuration file not found: {config_path}")
        print_info("Run 'hostform config init' to create a default config.")
        raise SystemExit(1)

    try:
        settings = ConfigManager(config_path).config
    except ConfigurationError as e:
        print_error(f"Invalid configuration: {e}")
        raise SystemExit(1) from e

    print_success(f"Configuration is valid: {config_path}")
    console.print(f"  Backend: {settings.hosting.backend}")
    console.print(f"  Hosting file: {settings.hosting.path}")
    console.print(f"  State file: {settings.state.path}")
    console.print(f"  Update strategy: {settings.reconcile.update_strategy.value}")
    console.print(f"  Shrink policy: {settings.reconcile.shrink_policy.value}")
    console.print(f"  IP replacement: {settings.reconcile.ip_replacement.value}")
    console.print(f"  Log Level: {settings.logging.level}")


@config.command("init")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration.",
)
@pass_context
def config_init(ctx: Context, force: bool) -> None:
    """Create a default configuration file.

    Examples:

        $ hostform config init

        $ hostform config init --force
    """
    config_path = ctx.init_config().path

    if config_path.exists() and not force:
        print_error(f"Configuration already exists: {config_path}")
        print_info("Use --force to overwrite.")
        raise SystemExit(1)

    try:
        path = ConfigManager.create_example_config(config_path)
    except OSError as e:
        print_error(f"Failed to create configuration: {e}")
        raise SystemExit(1) from e

    print_success(f"Created configuration at: {path}")


@config.command("path")
@pass_context
def config_path(ctx: Context) -> None:
    """Show the configuration file path.

    Examples:

        $ hostform config path
    """
    path = ctx.init_config().path
    console.print(str(path))

    if path.exists():
        console.print("[dim](file exists)[/dim]")
    else:
        console.print("[dim](file does not exist)[/dim]")
