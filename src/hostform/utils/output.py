"""Rich terminal output utilities for hostform.

This module provides formatted output using the Rich library,
including tables, spinners, and color-coded plan and apply results.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any

import yaml
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from hostform.models.catalog import Image, Region

if TYPE_CHECKING:
    from hostform.core.engine import ApplyResult, Plan

# Global console instance
console = Console()
error_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


class OutputFormatter:
    """Handles formatting and outputting data in various formats.

    Supports table, JSON, and YAML output formats with color-coded
    actions for Rich table output.

    Args:
        format_type: Output format to use (table, json, yaml).
        output_console: Rich console instance for output.

    Example:
        >>> formatter = OutputFormatter(OutputFormat.TABLE)
        >>> formatter.print_plan(plan)
    """

    def __init__(
        self,
        format_type: OutputFormat = OutputFormat.TABLE,
        output_console: Console | None = None,
    ) -> None:
        self.format_type = format_type
        self.console = output_console or console

    def _print_data(self, data: Any) -> bool:
        """Print ``data`` as JSON or YAML; False when the format is a table."""
        if self.format_type == OutputFormat.JSON:
            self.console.print_json(json.dumps(data, indent=2, default=str))
            return True
        if self.format_type == OutputFormat.YAML:
            self.console.print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
            return True
        return False

    def print_plan(self, plan: Plan) -> None:
        """Print a plan.

        Args:
            plan: Plan computed by the engine.
        """
        if self._print_data(plan.to_dict()):
            return

        table = Table(title="Plan", show_header=True)
        table.add_column("", justify="center", no_wrap=True)
        table.add_column("Resource", style="cyan", no_wrap=True)
        table.add_column("Action")
        table.add_column("ID", style="dim")
        table.add_column("Fields", style="white")

        for change in plan.changes:
            action = Text(change.action.value)
            action.stylize(change.action.color)
            if change.error is not None:
                action = Text(f"error: {change.error}")
                action.stylize("red")
            table.add_row(
                Text(change.action.symbol, style=change.action.color),
                change.address,
                action,
                change.resource_id or "-",
                ", ".join(change.fields) or "-",
            )

        self.console.print(table)
        counts = plan.summary()
        self.console.print(
            f"Plan: [green]{counts['create']} to create[/green], "
            f"[yellow]{counts['update']} to update[/yellow], "
            f"[magenta]{counts['replace']} to replace[/magenta], "
            f"[red]{counts['delete']} to delete[/red]."
        )

    def print_apply_result(self, result: ApplyResult) -> None:
        """Print the outcome of an apply or destroy.

        Args:
            result: Result returned by the engine.
        """
        if self._print_data(result.to_dict()):
            return

        table = Table(title="Apply Result", show_header=True)
        table.add_column("Resource", style="cyan", no_wrap=True)
        table.add_column("Outcome")
        table.add_column("Groups", style="white")

        rows = [
            *((a, "created", "green") for a in result.created),
            *((a, "updated", "yellow") for a in result.updated),
            *((a, "replaced", "magenta") for a in result.replaced),
            *((a, "deleted", "red") for a in result.deleted),
        ]
        for address, outcome, color in rows:
            report = result.reports.get(address)
            groups = Text()
            if report is not None:
                for i, group in enumerate(report.groups):
                    if i:
                        groups.append(", ")
                    groups.append(f"{group.name}={group.status.value}", style=group.status.color)
            table.add_row(address, Text(outcome, style=color), groups)

        if rows:
            self.console.print(table)
        for address, message in result.errors:
            self.console.print(f"[red]✗[/red] {address}: {message}")

    def print_state(self, entries: list[dict[str, Any]]) -> None:
        """Print managed resources recorded in state.

        Args:
            entries: State entries with address, kind, name and id.
        """
        if self._print_data(entries):
            return

        table = Table(title="Managed Resources", show_header=True)
        table.add_column("Address", style="cyan", no_wrap=True)
        table.add_column("Kind", style="white")
        table.add_column("ID", style="yellow", justify="right")

        for entry in entries:
            table.add_row(entry["address"], entry["kind"], str(entry.get("id") or "-"))

        self.console.print(table)

    def print_regions(self, regions: list[Region]) -> None:
        if self._print_data([r.to_dict() for r in regions]):
            return

        table = Table(title="Regions", show_header=True)
        table.add_column("ID", style="yellow", justify="right")
        table.add_column("Code", style="cyan", no_wrap=True)
        table.add_column("Country", style="white")
        table.add_column("Name", style="white")
        for region in regions:
            table.add_row(region.id, region.code, region.country, region.name)
        self.console.print(table)

    def print_images(self, images: list[Image]) -> None:
        if self._print_data([i.to_dict() for i in images]):
            return

        table = Table(title="Images", show_header=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Disk ID", style="yellow")
        table.add_column("Size", justify="right", style="white")
        table.add_column("Region", style="dim")
        for image in images:
            table.add_row(image.name, image.disk_id, f"{image.size} GB", image.region_id)
        self.console.print(table)

    def print_dict(self, data: dict[str, Any], title: str | None = None) -> None:
        """Print a dictionary in the configured format.

        Args:
            data: Dictionary to display.
            title: Optional title for table format.
        """
        if self._print_data(data):
            return

        table = Table(title=title, show_header=True)
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="white")

        for key, value in data.items():
            table.add_row(str(key), str(value))

        self.console.print(table)


def print_success(message: str) -> None:
    """Print a success message.

    Args:
        message: Success message to display.
    """
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
    """
    error_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message.

    Args:
        message: Warning message to display.
    """
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message.

    Args:
        message: Info message to display.
    """
    console.print(f"[blue]ℹ[/blue] {message}")


def create_spinner_progress() -> Progress:
    """Create a simple spinner progress for indeterminate operations.

    Returns:
        Progress instance with just spinner and description.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )

