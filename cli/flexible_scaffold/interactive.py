"""Interactive menu for Flexible Scaffold.

Walks the user through the same operations as the CLI commands using rich
prompts, and collects template-declared variables when creating projects.
"""

import asyncio
from pathlib import Path
from typing import Callable, TextIO

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from cli.flexible_scaffold import output
from cli.flexible_scaffold.output import (
    print_info,
    print_project_created,
    print_registry_summary,
    print_result,
    print_template_detail,
    print_templates,
    print_update_summary,
)
from scaffolding.acquisition import is_git_url
from scaffolding.generator import validate_project_name
from scaffolding.i18n import Translator
from scaffolding.manager import ScaffoldManager
from scaffolding.manifest import PromptType, TemplatePrompt
from scaffolding.registry import TemplateValidationError, validate_template_name


class _EOFRaisingStream:
    """Answer stream that reads like input(): no trailing newline, EOFError when exhausted."""

    def __init__(self, stream: TextIO):
        self._stream = stream

    def readline(self) -> str:
        line = self._stream.readline()
        if not line:
            raise EOFError
        return line.rstrip("\r\n")


class InteractiveShell:
    """Menu loop over a ScaffoldManager."""

    def __init__(
        self,
        manager: ScaffoldManager,
        t: Translator,
        console: Console | None = None,
        stream: TextIO | None = None,
    ):
        """Initialize the shell.

        Args:
            manager: Operations backend
            t: Message translator
            console: Console for prompts (default: the CLI console)
            stream: Answer source instead of stdin, used by tests
        """
        self.manager = manager
        self.t = t
        self.console = console or output.console
        self.stream = _EOFRaisingStream(stream) if stream is not None else None
        self.actions: list[tuple[str, Callable[[], None] | None]] = [
            ("shell.menu.list", self.do_list),
            ("shell.menu.add", self.do_add),
            ("shell.menu.create", self.do_create),
            ("shell.menu.update", self.do_update),
            ("shell.menu.update_all", self.do_update_all),
            ("shell.menu.remove", self.do_remove),
            ("shell.menu.info", self.do_info),
            ("shell.menu.cleanup", self.do_cleanup),
            ("shell.menu.config", self.do_config),
            ("shell.menu.exit", None),
        ]

    def run(self) -> None:
        """Show the menu until the user exits or presses Ctrl-C."""
        self.console.print(Panel(f"[bold cyan]{self.t('shell.title')}[/bold cyan]"))
        try:
            while True:
                action = self._choose_action()
                if action is None:
                    break
                action()
                self.console.print()
        except (KeyboardInterrupt, EOFError):
            self.console.print()
        print_info(self.t("shell.goodbye"))

    def _choose_action(self) -> Callable[[], None] | None:
        self.console.print(f"\n[bold]{self.t('shell.choose')}[/bold]")
        for index, (label, _) in enumerate(self.actions, start=1):
            self.console.print(f"  [cyan]{index}[/cyan]. {self.t(label)}")

        choices = [str(i) for i in range(1, len(self.actions) + 1)]
        answer = self._ask(self.t("shell.ask_choice"), choices=choices, show_choices=False)
        return self.actions[int(answer) - 1][1]

    # ------------------------------------------------------------------
    # Prompt helpers
    # ------------------------------------------------------------------

    def _ask(self, message: str, **kwargs) -> str:
        return Prompt.ask(message, console=self.console, stream=self.stream, **kwargs)

    def _confirm(self, message: str, default: bool = False) -> bool:
        return Confirm.ask(message, console=self.console, default=default, stream=self.stream)

    def _ask_required(self, message: str, validator: Callable[[str], None] | None = None) -> str:
        """Ask until a non-empty (and valid) answer is given."""
        while True:
            answer = self._ask(message).strip()
            if not answer:
                output.print_warning(self.t("shell.value_required"))
                continue
            if validator is None:
                return answer
            try:
                validator(answer)
                return answer
            except TemplateValidationError as e:
                output.print_warning(str(e))

    def _choose_template(self) -> str | None:
        names = [tpl["name"] for tpl in self.manager.list_templates().data.get("templates", [])]
        if not names:
            print_info(self.t("cli.no_templates"))
            return None
        return self._ask(self.t("shell.ask_template"), choices=names)

    def ask_project_name(self) -> str:
        """Ask for a valid project name."""
        return self._ask_required(self.t("shell.ask_project_name"), validate_project_name)

    def ask_template_variables(self, template_name: str) -> dict[str, str]:
        """Collect values for the prompts a template declares.

        Returns an empty mapping for unknown templates or templates
        without prompts.
        """
        result = self.manager.get_template_info(template_name)
        if not result.success:
            return {}
        config = result.data["template"].get("config") or {}
        prompts = [TemplatePrompt.model_validate(p) for p in config.get("prompts", [])]
        return {prompt.name: self._ask_prompt(prompt) for prompt in prompts}

    def _ask_prompt(self, prompt: TemplatePrompt) -> str:
        message = prompt.message or prompt.name

        if prompt.type == PromptType.CONFIRM:
            answer = self._confirm(message, default=bool(prompt.default))
            return "true" if answer else "false"

        if prompt.type == PromptType.SELECT and prompt.choices:
            default = str(prompt.default) if prompt.default in prompt.choices else prompt.choices[0]
            return self._ask(message, choices=prompt.choices, default=default)

        if prompt.type == PromptType.MULTISELECT and prompt.choices:
            self.console.print(f"[dim]{', '.join(prompt.choices)}[/dim]")
            while True:
                default = prompt.default
                if isinstance(default, list):
                    default = ",".join(str(d) for d in default)
                answer = self._ask(message, default=str(default or ""))
                picked = [item.strip() for item in answer.split(",") if item.strip()]
                if all(item in prompt.choices for item in picked):
                    return ",".join(picked)
                output.print_warning(self.t("shell.invalid_choice"))

        if prompt.default is not None:
            return self._ask(message, default=str(prompt.default))
        return self._ask(message, default="")

    # ------------------------------------------------------------------
    # Menu actions
    # ------------------------------------------------------------------

    def do_list(self) -> None:
        result = self.manager.list_templates()
        print_templates(result.data.get("templates", []), self.t)

    def do_add(self) -> None:
        name = self._ask_required(self.t("shell.ask_template_name"), validate_template_name)
        source = self._ask_required(self.t("shell.ask_source"))
        description = self._ask(self.t("shell.ask_description"), default="")

        force = False
        existing = self.manager.get_template_info(name)
        if existing.success:
            force = self._confirm(self.t("template.exists", name=name), default=False)
            if not force:
                print_info(self.t("cli.cancelled"))
                return

        with output.spinner(self.t("cli.working")):
            if is_git_url(source):
                coro = self.manager.add_git_template(name, source, description, force)
            else:
                coro = self.manager.add_template(name, source, description, force)
            result = asyncio.run(coro)
        print_result(result)

    def do_create(self) -> None:
        template = self._choose_template()
        if template is None:
            return
        project = self.ask_project_name()
        target = self._ask(self.t("shell.ask_target_dir"), default=str(Path.cwd()))
        variables = self.ask_template_variables(template)

        with output.spinner(self.t("cli.working")):
            result = asyncio.run(
                self.manager.create_project(template, project, Path(target).expanduser(), variables)
            )
        if result.success:
            print_project_created(result, self.t)
        else:
            print_result(result)

    def do_update(self) -> None:
        template = self._choose_template()
        if template is None:
            return

        with output.spinner(self.t("cli.working")):
            result = asyncio.run(self.manager.update_template(template))
        print_update_summary(result)

    def do_update_all(self) -> None:
        with output.spinner(self.t("cli.working")):
            result = asyncio.run(self.manager.update_all_templates())
        print_update_summary(result)

    def do_remove(self) -> None:
        template = self._choose_template()
        if template is None:
            return
        if not self._confirm(self.t("cli.confirm_remove", name=template), default=False):
            print_info(self.t("cli.cancelled"))
            return
        print_result(self.manager.remove_template(template))

    def do_info(self) -> None:
        template = self._choose_template()
        if template is None:
            return
        result = self.manager.get_template_info(template)
        if result.success:
            print_template_detail(result.data["template"], self.t)
        else:
            print_result(result)

    def do_cleanup(self) -> None:
        print_result(self.manager.cleanup_invalid_templates())

    def do_config(self) -> None:
        print_registry_summary(self.manager.get_registry_summary(), self.t)
