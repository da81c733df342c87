"""Template acquisition: git clone or local copy into the managed directory."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
from pathlib import Path

from .registry import TemplateValidationError

logger = logging.getLogger(__name__)

_GIT_URL_PATTERN = re.compile(r"^(https?://|ssh://|git://|file://|git@[^:/\s]+:)")


class AcquisitionError(Exception):
    """Raised when a template cannot be cloned or copied."""

    pass


def is_git_url(source: str) -> bool:
    """Whether ``source`` looks like a Git remote rather than a local path."""
    return bool(_GIT_URL_PATTERN.match(source.strip()))


def validate_local_source(source: str | Path) -> Path:
    """Resolve a local template source.

    Raises:
        TemplateValidationError: If the path is missing or not a directory
    """
    path = Path(source).expanduser()
    if not path.exists():
        raise TemplateValidationError(f"Local path does not exist: {source}")
    if not path.is_dir():
        raise TemplateValidationError(f"Local path is not a directory: {source}")
    return path.resolve()


def ensure_separate(source: Path, destination: Path, managed_root: Path | None = None) -> None:
    """Refuse sources that overlap the managed copy.

    The destination is cleared before every copy, so the source must not
    share any part of the tree with it or with another managed template.

    Raises:
        TemplateValidationError: If ``source`` and ``destination`` overlap, or
            ``source`` lies inside ``managed_root``
    """
    src = Path(source).expanduser().resolve()
    dst = Path(destination).expanduser().resolve()
    if src == dst or src.is_relative_to(dst) or dst.is_relative_to(src):
        raise TemplateValidationError(f"Template source overlaps its managed copy: {source}")
    if managed_root is not None and src.is_relative_to(Path(managed_root).expanduser().resolve()):
        raise TemplateValidationError(
            f"Template source is inside the managed templates directory: {source}"
        )


def _clear_destination(destination: Path) -> None:
    if destination.is_symlink() or destination.is_file():
        destination.unlink()
    elif destination.exists():
        shutil.rmtree(destination)


async def clone_repository(url: str, destination: Path, timeout: float | None = None) -> None:
    """Clone ``url`` into ``destination``, replacing whatever is there.

    Args:
        url: Git remote
        destination: Managed template directory
        timeout: Seconds to wait for git, None or 0 for no limit

    Raises:
        AcquisitionError: If git is missing, fails or times out
    """
    await asyncio.to_thread(_clear_destination, destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Cloning %s into %s", url, destination)
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            "clone",
            url,
            str(destination),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
    except FileNotFoundError as e:
        raise AcquisitionError("Git is not installed or not in PATH") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout or None)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise AcquisitionError(f"git clone timed out after {timeout}s: {url}") from e

    if process.returncode != 0:
        detail = stderr.decode(errors="replace").strip()
        raise AcquisitionError(f"Git clone failed: {detail or f'exit code {process.returncode}'}")


async def copy_local(source: Path, destination: Path, managed_root: Path | None = None) -> None:
    """Recursively copy a local template, replacing the destination.

    Args:
        source: Template directory
        destination: Managed template directory
        managed_root: Directory holding all managed templates, if any

    Raises:
        TemplateValidationError: If the source is not a directory or overlaps
            managed content
        AcquisitionError: If the copy fails
    """
    source = validate_local_source(source)
    ensure_separate(source, destination, managed_root)

    def _copy() -> None:
        _clear_destination(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, destination, symlinks=True)

    logger.debug("Copying %s into %s", source, destination)
    try:
        await asyncio.to_thread(_copy)
    except (OSError, shutil.Error) as e:
        raise AcquisitionError(f"Failed to copy template from {source}: {e}") from e


async def acquire(
    source: str,
    destination: Path,
    *,
    git: bool,
    timeout: float | None = None,
    managed_root: Path | None = None,
) -> None:
    """Fetch a template from ``source`` into ``destination``."""
    if git:
        await clone_repository(source, destination, timeout=timeout)
    else:
        await copy_local(Path(source), destination, managed_root=managed_root)
