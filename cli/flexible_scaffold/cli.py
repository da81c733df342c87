"""Flexible Scaffold CLI.

Command-line interface for managing templates and creating projects.
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import typer

from cli.flexible_scaffold.output import (
    console,
    print_error,
    print_info,
    print_json,
    print_project_created,
    print_registry_summary,
    print_result,
    print_template_detail,
    print_templates,
    print_update_summary,
    spinner,
)
from scaffolding.config import Settings, load_settings
from scaffolding.i18n import Translator
from scaffolding.manager import ScaffoldManager
from scaffolding.result import OperationResult

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="flexible-scaffold",
    help="Flexible Scaffold - register project templates and create projects from them",
    no_args_is_help=True,
)


@dataclass
class CliContext:
    """Per-invocation state shared by all commands."""

    settings: Settings
    translator: Translator = field(init=False)
    _manager: ScaffoldManager | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.translator = Translator(self.settings.language)

    @property
    def manager(self) -> ScaffoldManager:
        if self._manager is None:
            self._manager = ScaffoldManager(self.settings, self.translator)
        return self._manager

    @property
    def t(self) -> Translator:
        return self.translator


def configure_logging(level: str) -> None:
    """Send log records to stderr so stdout stays clean for output and MCP."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _state(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        ctx.obj = CliContext(load_settings())
    return ctx.obj


def _finish(state: CliContext, result: OperationResult, as_json: bool = False) -> None:
    """Print JSON when requested and exit non-zero on failure."""
    if as_json or state.settings.json_output:
        print_json(result.to_dict())
    if not result.success:
        raise typer.Exit(1)


def _wants_json(state: CliContext, as_json: bool) -> bool:
    return as_json or state.settings.json_output


def parse_variables(values: list[str] | None, t: Translator) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    variables: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(t("cli.invalid_var", value=item), param_hint="--var")
        variables[key.strip()] = value
    return variables


@app.callback()
def main_callback(
    ctx: typer.Context,
    lang: Optional[str] = typer.Option(
        None,
        "--lang",
        help="Interface language: en|zh (default: SCAFFOLD_LANG, LANG or system locale)",
    ),
    config_dir: Optional[Path] = typer.Option(
        None,
        "--config-dir",
        help="Registry directory (default: ~/.flexible-scaffold)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print results as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable debug logging",
    ),
) -> None:
    """Register project templates and create projects from them."""
    settings = load_settings(
        config_dir=config_dir,
        language=lang,
        json_output=True if json_output else None,
        log_level="DEBUG" if verbose else None,
    )
    configure_logging(settings.log_level)
    ctx.obj = CliContext(settings)


@app.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Template name"),
    source: str = typer.Argument(..., help="Git URL or local directory"),
    description: str = typer.Option("", "--description", "-d", help="Template description"),
    force: bool = typer.Option(False, "--force", "-f", help="Replace an existing template"),
) -> None:
    """Add a template from a Git repository or local directory.

    Examples:
        flexible-scaffold add react https://github.com/org/react-template.git
        flexible-scaffold add api ./templates/api -d "Internal API skeleton"
    """
    state = _state(ctx)
    with spinner(state.t("cli.working"), enabled=not state.settings.json_output):
        result = asyncio.run(state.manager.add_template(name, source, description, force))

    if not state.settings.json_output:
        print_result(result)
    _finish(state, result)


@app.command()
def remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Template name"),
) -> None:
    """Remove a template and its files.

    Examples:
        flexible-scaffold remove react
    """
    state = _state(ctx)
    result = state.manager.remove_template(name)
    if not state.settings.json_output:
        print_result(result)
    _finish(state, result)


app.command("rm", hidden=True)(remove)


@app.command()
def update(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Template name (default: all templates)"),
) -> None:
    """Re-fetch one template, or all of them.

    Examples:
        flexible-scaffold update react
        flexible-scaffold update
    """
    state = _state(ctx)
    with spinner(state.t("cli.working"), enabled=not state.settings.json_output):
        if name:
            result = asyncio.run(state.manager.update_template(name))
        else:
            result = asyncio.run(state.manager.update_all_templates())

    if not state.settings.json_output:
        print_update_summary(result)
    _finish(state, result)


@app.command("list")
def list_templates(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", "-j", help="Print as JSON"),
) -> None:
    """List registered templates.

    Examples:
        flexible-scaffold list
        flexible-scaffold ls --json
    """
    state = _state(ctx)
    result = state.manager.list_templates()

    if _wants_json(state, as_json):
        _finish(state, result, as_json=True)
        return

    if result.success:
        print_templates(result.data["templates"], state.t)
    else:
        print_result(result)
    _finish(state, result)


app.command("ls", hidden=True)(list_templates)


@app.command()
def create(
    ctx: typer.Context,
    template: str = typer.Argument(..., help="Template name"),
    project: Optional[str] = typer.Argument(None, help="Project name"),
    directory: Optional[Path] = typer.Option(
        None,
        "--dir",
        "-d",
        help="Parent directory (default: current directory)",
    ),
    interactive: bool = typer.Option(
        False,
        "--interactive",
        "-i",
        help="Ask for the project name and template variables",
    ),
    var: Optional[list[str]] = typer.Option(
        None,
        "--var",
        "-v",
        help="Template variable as KEY=VALUE (repeatable)",
    ),
) -> None:
    """Create a project from a template.

    Examples:
        flexible-scaffold create react my-app
        flexible-scaffold create react my-app --dir ~/code --var AUTHOR="Jane Doe"
        flexible-scaffold create react -i
    """
    state = _state(ctx)
    variables = parse_variables(var, state.t)

    if interactive:
        from cli.flexible_scaffold.interactive import InteractiveShell

        shell = InteractiveShell(state.manager, state.t)
        project = project or shell.ask_project_name()
        variables = {**shell.ask_template_variables(template), **variables}
    elif not project:
        raise typer.BadParameter("Project name is required", param_hint="PROJECT")

    with spinner(state.t("cli.working"), enabled=not state.settings.json_output):
        result = asyncio.run(
            state.manager.create_project(template, project, directory, variables)
        )

    if not state.settings.json_output:
        if result.success:
            print_project_created(result, state.t)
        else:
            print_result(result)
    _finish(state, result)


@app.command()
def info(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Template name"),
    as_json: bool = typer.Option(False, "--json", "-j", help="Print as JSON"),
) -> None:
    """Show details of a template.

    Examples:
        flexible-scaffold info react
    """
    state = _state(ctx)
    result = state.manager.get_template_info(name)

    if _wants_json(state, as_json):
        _finish(state, result, as_json=True)
        return

    if result.success:
        print_template_detail(result.data["template"], state.t)
    else:
        print_result(result)
    _finish(state, result)


@app.command()
def validate(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Template name"),
) -> None:
    """Check that a template's files are present."""
    state = _state(ctx)
    result = state.manager.validate_template(name)
    if not state.settings.json_output:
        print_result(result)
    _finish(state, result)


@app.command()
def cleanup(ctx: typer.Context) -> None:
    """Drop templates whose files no longer exist."""
    state = _state(ctx)
    result = state.manager.cleanup_invalid_templates()
    if not state.settings.json_output:
        print_result(result)
        for name in result.data.get("removed", []):
            print_info(name)
    _finish(state, result)


@app.command("config")
def config_command(
    ctx: typer.Context,
    show: bool = typer.Option(False, "--show", "-s", help="Show configuration (default)"),
    path: bool = typer.Option(False, "--path", "-p", help="Print the config directory"),
    export_file: Optional[Path] = typer.Option(
        None, "--export", help="Write the registry to a JSON file"
    ),
    import_file: Optional[Path] = typer.Option(
        None, "--import", help="Merge templates from a JSON file"
    ),
) -> None:
    """Show, export or import the template registry.

    Examples:
        flexible-scaffold config
        flexible-scaffold config --export templates-backup.json
        flexible-scaffold config --import templates-backup.json
    """
    state = _state(ctx)
    manager = state.manager
    t = state.t

    if path:
        console.print(str(manager.config_dir), soft_wrap=True)
        return

    if export_file:
        result = manager.export_config()
        if result.success:
            export_file.write_text(
                json.dumps(result.data["config"], indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
            result.message = t("cli.config_written", path=export_file)
            result.data = {"path": str(export_file)}
        if not state.settings.json_output:
            print_result(result)
        _finish(state, result)
        return

    if import_file:
        try:
            document = json.loads(import_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            print_error(t("cli.config_read_error", path=import_file, error=e))
            raise typer.Exit(1)
        result = manager.import_config(document)
        if not state.settings.json_output:
            print_result(result)
        _finish(state, result)
        return

    summary = manager.get_registry_summary()
    if state.settings.json_output:
        print_json(summary)
    else:
        print_registry_summary(summary, t)


@app.command()
def interactive(ctx: typer.Context) -> None:
    """Start the interactive menu."""
    from cli.flexible_scaffold.interactive import InteractiveShell

    state = _state(ctx)
    InteractiveShell(state.manager, state.t).run()


app.command("i", hidden=True)(interactive)


@app.command()
def mcp(ctx: typer.Context) -> None:
    """Run the MCP server on stdio for AI assistants."""
    from mcp_server.server import run_stdio

    state = _state(ctx)
    logger.info(state.t("cli.mcp_starting"))
    asyncio.run(run_stdio(state.manager))


@app.command()
def version() -> None:
    """Show Flexible Scaffold version."""
    from cli.flexible_scaffold import __version__

    console.print(f"Flexible Scaffold v{__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        print_error("Interrupted")
        sys.exit(130)
    except Exception as e:
        logger.exception("Unexpected error")
        print_error(str(e) or e.__class__.__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
