"""
Pytest fixtures for Flexible Scaffold tests.

Every test gets its own config directory under tmp_path; nothing touches
~/.flexible-scaffold.
"""

import json
import subprocess
from pathlib import Path

import pytest

from scaffolding.config import Settings
from scaffolding.i18n import Translator
from scaffolding.manager import ScaffoldManager

# =============================================================================
# Environment
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user settings and environment out of the tests."""
    for var in (
        "SCAFFOLD_CONFIG_DIR",
        "SCAFFOLD_LANG",
        "SCAFFOLD_LOG_LEVEL",
        "SCAFFOLD_JSON_OUTPUT",
        "SCAFFOLD_CLONE_TIMEOUT",
        "SCAFFOLD_POST_PROCESS_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("LANG", "en_US.UTF-8")
    # Wide rich output so table cells are not wrapped
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.setenv("SCAFFOLD_SETTINGS_FILE", str(tmp_path / "no-settings.toml"))


# =============================================================================
# Manager Fixtures
# =============================================================================

@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Registry directory for the test."""
    return tmp_path / "scaffold-home"


@pytest.fixture
def settings(config_dir: Path) -> Settings:
    """Settings pointing at the test registry."""
    return Settings(config_dir=config_dir, language="en")


@pytest.fixture
def manager(settings: Settings) -> ScaffoldManager:
    """ScaffoldManager with English messages."""
    return ScaffoldManager(settings, Translator("en"))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Directory where projects get created."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


# =============================================================================
# Template Fixtures
# =============================================================================

def write_template(root: Path, config: dict | None = None) -> Path:
    """Create a small template tree at ``root``.

    Contents:
    - README.md with PROJECT_NAME / CURRENT_YEAR placeholders
    - src/main.txt with PROJECT_NAME and an unknown placeholder
    - assets/logo.bin (not UTF-8)
    - scaffold.config.json when ``config`` is given
    """
    root.mkdir(parents=True, exist_ok=True)
    (root / "README.md").write_text(
        "Hello {{PROJECT_NAME}}, year {{CURRENT_YEAR}}\n", encoding="utf-8"
    )
    (root / "src").mkdir(exist_ok=True)
    (root / "src" / "main.txt").write_text(
        "name={{PROJECT_NAME}}\nkeep={{UNKNOWN}}\n", encoding="utf-8"
    )
    (root / "assets").mkdir(exist_ok=True)
    (root / "assets" / "logo.bin").write_bytes(b"\xff\xfe{{PROJECT_NAME}}\x00\x81")
    if config is not None:
        (root / "scaffold.config.json").write_text(json.dumps(config), encoding="utf-8")
    return root


@pytest.fixture
def make_template():
    """Factory writing a template tree at a given path."""
    return write_template


@pytest.fixture
def make_git_repo():
    """Factory turning a directory into a one-commit git repository."""
    return init_git_repo


@pytest.fixture
def template_source(tmp_path: Path) -> Path:
    """Local template directory without configuration."""
    return write_template(tmp_path / "sources" / "basic")


@pytest.fixture
def configured_template_source(tmp_path: Path) -> Path:
    """Local template directory with a scaffold.config.json."""
    return write_template(
        tmp_path / "sources" / "configured",
        config={
            "description": "Configured starter",
            "tags": ["web", "starter"],
            "variables": {"AUTHOR": "Template Author", "LICENSE": "MIT"},
            "postCreateInstructions": ["cd {{PROJECT_NAME}}", "make run"],
            "ignore": ["*.log", "build"],
        },
    )


def init_git_repo(path: Path) -> Path:
    """Turn ``path`` into a git repository with one commit."""

    def git(*args: str) -> None:
        subprocess.run(
            [
                "git",
                "-c", "user.name=Test",
                "-c", "user.email=test@example.com",
                "-c", "commit.gpgsign=false",
                *args,
            ],
            cwd=path,
            check=True,
            capture_output=True,
        )

    git("init", "-q")
    git("add", ".")
    git("commit", "-q", "-m", "initial")
    return path


@pytest.fixture
def git_template_url(tmp_path: Path) -> str:
    """file:// URL of a throw-away git repository containing a template."""
    repo = write_template(tmp_path / "remote" / "repo")
    init_git_repo(repo)
    return repo.as_uri()
