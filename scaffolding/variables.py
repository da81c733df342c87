"""Placeholder substitution for generated projects.

Placeholders are literal ``{{KEY}}`` tokens. Keys are matched verbatim, never
as patterns, and unknown placeholders are left untouched.
"""

import logging
import os
import re
from datetime import date
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)


def default_variables(project_name: str, today: date | None = None) -> dict[str, str]:
    """Variables every project receives.

    Args:
        project_name: Name of the new project
        today: Date to stamp (default: today)
    """
    today = today or date.today()
    return {
        "PROJECT_NAME": project_name,
        "CURRENT_YEAR": str(today.year),
        "CREATION_DATE": today.isoformat(),
    }


def render_text(text: str, variables: Mapping[str, str]) -> str:
    """Replace every ``{{KEY}}`` in ``text`` in a single pass.

    Inserted values are never scanned again, so a value containing
    ``{{OTHER}}`` stays as written whatever the key order.
    """
    if not variables:
        return text
    pattern = re.compile(
        r"\{\{(" + "|".join(re.escape(key) for key in variables) + r")\}\}"
    )
    return pattern.sub(lambda match: str(variables[match.group(1)]), text)


def substitute_variables(root: Path, variables: Mapping[str, str]) -> int:
    """Rewrite placeholders in every text file under ``root``.

    Symbolic links are neither followed nor rewritten. Files that are not
    valid UTF-8 or cannot be read are skipped. Only files that actually
    change are written back.

    Args:
        root: Project directory
        variables: Substitution mapping

    Returns:
        Number of files modified
    """
    modified = 0

    for dirpath, _dirnames, filenames in os.walk(root, followlinks=False):
        current = Path(dirpath)
        for filename in filenames:
            path = current / filename
            if path.is_symlink() or not path.is_file():
                continue

            try:
                with open(path, encoding="utf-8", newline="") as f:
                    content = f.read()
            except (UnicodeDecodeError, OSError) as e:
                logger.debug("Skipping %s: %s", path, e)
                continue

            rendered = render_text(content, variables)
            if rendered == content:
                continue

            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(rendered)
            modified += 1

    return modified
