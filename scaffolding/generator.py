"""Project generator: materializes a new project from an acquired template."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from .manifest import ALL_CONFIG_FILENAMES, TemplateConfig
from .registry import TemplateValidationError
from .variables import default_variables, render_text, substitute_variables

logger = logging.getLogger(__name__)

_PROJECT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

DEFAULT_INSTRUCTIONS = ("cd {{PROJECT_NAME}}", "npm install", "npm run dev")


def validate_project_name(name: str) -> None:
    """Project names may only contain letters, digits, hyphens and underscores.

    Raises:
        TemplateValidationError: If the name is not allowed
    """
    if not name or not _PROJECT_NAME_PATTERN.match(name):
        raise TemplateValidationError(
            f"Invalid project name '{name}': use only letters, numbers, hyphens and underscores"
        )


@dataclass
class GenerationResult:
    """What a successful generation produced."""

    project_dir: Path
    instructions: list[str]
    files_processed: int = 0
    warnings: list[str] = field(default_factory=list)


class ProjectGenerator:
    """Generates a new project from a template directory.

    Steps:
    - Copy the template (minus ignored files)
    - Strip version control and scaffold configuration files
    - Substitute ``{{KEY}}`` placeholders
    - Run the template's post-process commands
    """

    def __init__(
        self,
        project_name: str,
        template_dir: Path,
        target_dir: Path | None = None,
        config: TemplateConfig | None = None,
        variables: Mapping[str, str] | None = None,
        post_process_timeout: float | None = None,
    ):
        """Initialize project generator.

        Args:
            project_name: Name of the new project directory
            template_dir: Managed template directory to copy from
            target_dir: Parent directory for the project (default: current dir)
            config: Template configuration, if the template has one
            variables: Caller supplied variables, highest priority
            post_process_timeout: Seconds per post-process command, None or 0 for no limit
        """
        validate_project_name(project_name)

        self.project_name = project_name
        self.template_dir = Path(template_dir)
        self.target_dir = Path(target_dir) if target_dir else Path.cwd()
        self.project_dir = self.target_dir / project_name
        self.config = config or TemplateConfig()
        self.caller_variables = dict(variables or {})
        self.post_process_timeout = post_process_timeout or None

    @property
    def variables(self) -> dict[str, str]:
        """Defaults, then template defaults, then caller values."""
        merged = default_variables(self.project_name)
        merged.update(self.config.variables)
        merged.update({k: str(v) for k, v in self.caller_variables.items()})
        return merged

    async def generate(self) -> GenerationResult:
        """Generate the project.

        Returns:
            GenerationResult describing the new project

        Raises:
            FileExistsError: If the project directory already exists
            FileNotFoundError: If the template directory is missing
        """
        if self.project_dir.exists() or self.project_dir.is_symlink():
            raise FileExistsError(f"Directory already exists: {self.project_dir}")
        if not self.template_dir.is_dir():
            raise FileNotFoundError(f"Template directory not found: {self.template_dir}")

        logger.info("Creating project %s from %s", self.project_dir, self.template_dir)

        await asyncio.to_thread(self._copy_template)
        await asyncio.to_thread(self._strip_files)

        variables = self.variables
        files_processed = await asyncio.to_thread(
            substitute_variables, self.project_dir, variables
        )
        logger.debug("Substituted variables in %d files", files_processed)

        warnings = await self._run_post_process()

        return GenerationResult(
            project_dir=self.project_dir,
            instructions=self._instructions(variables),
            files_processed=files_processed,
            warnings=warnings,
        )

    def _copy_template(self) -> None:
        self.target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copytree(
            self.template_dir,
            self.project_dir,
            symlinks=True,
            ignore=self._ignore_callback(),
        )

    def _ignore_callback(self) -> Callable[[str, list[str]], set[str]] | None:
        """Build a copytree ignore function from the template's ignore patterns.

        Patterns match either the entry name or its path relative to the
        template root.
        """
        patterns = [p.strip().rstrip("/") for p in self.config.ignore if p.strip()]
        if not patterns:
            return None

        root = self.template_dir

        def ignore(directory: str, names: list[str]) -> set[str]:
            rel_dir = Path(directory).relative_to(root)
            ignored = set()
            for name in names:
                rel = (rel_dir / name).as_posix()
                if any(fnmatch.fnmatch(name, p) or fnmatch.fnmatch(rel, p) for p in patterns):
                    ignored.add(name)
            return ignored

        return ignore

    def _strip_files(self) -> None:
        """Remove the template's VCS metadata and scaffold configuration."""
        git_dir = self.project_dir / ".git"
        if git_dir.is_dir() and not git_dir.is_symlink():
            shutil.rmtree(git_dir)
        elif git_dir.exists() or git_dir.is_symlink():
            git_dir.unlink()

        for filename in ALL_CONFIG_FILENAMES:
            path = self.project_dir / filename
            if path.is_file() or path.is_symlink():
                path.unlink()

    async def _run_post_process(self) -> list[str]:
        """Run post-process commands in order. Failures become warnings."""
        warnings: list[str] = []

        for command in self.config.post_process:
            logger.info("Running post-process command: %s", command)
            warning = await self._run_command(command)
            if warning:
                logger.warning(warning)
                warnings.append(warning)

        return warnings

    async def _run_command(self, command: str) -> str | None:
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=self.project_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return f"Post-process command failed: {command}: {e}"

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.post_process_timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return f"Post-process command timed out after {self.post_process_timeout}s: {command}"

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            suffix = f": {detail}" if detail else ""
            return f"Post-process command failed (exit {process.returncode}): {command}{suffix}"
        return None

    def _instructions(self, variables: Mapping[str, str]) -> list[str]:
        lines = self.config.post_create_instructions or list(DEFAULT_INSTRUCTIONS)
        return [render_text(line, variables) for line in lines]
