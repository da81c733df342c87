"""Rich console output utilities for the Flexible Scaffold CLI."""

import json
from contextlib import contextmanager
from typing import Any, Iterator

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from scaffolding.i18n import Translator
from scaffolding.result import OperationResult

console = Console()
error_console = Console(stderr=True)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {escape(message)}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {escape(message)}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {escape(message)}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]→[/blue] {escape(message)}")


def print_json(data: Any) -> None:
    """Print formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def print_key_value(key: str, value: Any, key_style: str = "bold") -> None:
    """Print a key-value pair."""
    console.print(f"[{key_style}]{key}:[/{key_style}] {escape(str(value))}")


def print_result(result: OperationResult) -> None:
    """Print the one-line outcome of an operation."""
    if result.success:
        print_success(result.message)
    else:
        print_error(result.error or result.message)


def print_templates(templates: list[dict[str, Any]], t: Translator) -> None:
    """Print registered templates as a table."""
    if not templates:
        print_info(t("cli.no_templates"))
        return

    table = Table(title=t("cli.templates_title"), show_header=True, header_style="bold")
    table.add_column(t("cli.col_name"), style="cyan")
    table.add_column(t("cli.col_type"), style="green")
    table.add_column(t("cli.col_source"), overflow="fold")
    table.add_column(t("cli.col_description"))
    table.add_column(t("cli.col_added"))
    table.add_column(t("cli.col_updated"))

    for tpl in templates:
        table.add_row(
            escape(tpl["name"]),
            tpl["type"],
            escape(tpl["sourceLocation"]),
            escape(tpl.get("description") or "-"),
            _short_date(tpl.get("addedAt")),
            _short_date(tpl.get("updatedAt")),
        )

    console.print(table)


def print_template_detail(info: dict[str, Any], t: Translator) -> None:
    """Print one template's record."""
    console.print(Panel(f"[bold]{info['name']}[/bold]", subtitle=info["type"]))

    print_key_value(t("cli.col_source"), info["sourceLocation"])
    print_key_value("Path", info["localPath"])
    print_key_value(t("cli.col_description"), info.get("description") or "(none)")
    print_key_value(t("cli.col_added"), info.get("addedAt") or "-")
    print_key_value(t("cli.col_updated"), info.get("updatedAt") or "-")

    if not info.get("exists", True):
        print_warning(t("template.missing_files", name=info["name"], path=info["localPath"]))

    config = info.get("config")
    if not config:
        return

    for key in ("version", "author"):
        if config.get(key):
            print_key_value(key.capitalize(), config[key])
    if config.get("tags"):
        print_key_value("Tags", ", ".join(config["tags"]))
    if config.get("variables"):
        console.print("\n[bold]Variables:[/bold]")
        for name, default in config["variables"].items():
            console.print(f"  {{{{{name}}}}} [dim]= {default}[/dim]")
    if config.get("postProcess"):
        console.print("\n[bold]Post-process:[/bold]")
        for command in config["postProcess"]:
            console.print(f"  [dim]$[/dim] {escape(command)}")
    if config.get("requirements"):
        console.print("\n[bold]Requirements:[/bold]")
        for tool, version in config["requirements"].items():
            console.print(f"  {tool} {version}")


def print_project_created(result: OperationResult, t: Translator) -> None:
    """Print the outcome of project creation with next steps."""
    print_success(result.message)

    warnings = result.data.get("warnings") or []
    if warnings:
        console.print(f"\n[bold yellow]{t('cli.warnings')}[/bold yellow]")
        for warning in warnings:
            print_warning(warning)

    instructions = result.data.get("instructions") or []
    if instructions:
        console.print(f"\n[bold]{t('cli.next_steps')}[/bold]")
        for line in instructions:
            console.print(f"  {escape(line)}")


def print_update_summary(result: OperationResult) -> None:
    """Print per-template failures of a batch update."""
    print_result(result)
    for name, error in (result.data.get("failures") or {}).items():
        print_warning(f"{name}: {error}")


def print_registry_summary(summary: dict[str, Any], t: Translator) -> None:
    """Print configuration paths as a table."""
    table = Table(show_header=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row(t("cli.config_dir"), summary["configDir"])
    table.add_row(t("cli.registry_file"), summary["configPath"])
    table.add_row(t("cli.templates_dir"), summary["templatesPath"])
    table.add_row(t("cli.template_count"), str(summary["templateCount"]))
    table.add_row(t("cli.last_updated"), summary.get("lastUpdated") or "-")
    table.add_row(t("cli.language"), t.display_name)

    console.print(table)


@contextmanager
def spinner(message: str, enabled: bool = True) -> Iterator[None]:
    """Show a transient spinner while the body runs."""
    if not enabled:
        yield
        return
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(message, total=None)
        yield


def _short_date(value: str | None) -> str:
    return value[:10] if value else "-"
