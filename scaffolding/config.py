"""Settings for Flexible Scaffold.

Loads settings from:
1. settings.toml (defaults)
2. .env file and environment variables (overrides)
3. Explicit keyword overrides (CLI flags)

The resulting ``Settings`` value is passed to whoever needs it. Nothing here
caches a global instance.
"""

import locale
import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

DEFAULT_CONFIG_DIR = Path.home() / ".flexible-scaffold"
SUPPORTED_LANGUAGES = ("en", "zh")

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Runtime settings shared by the CLI, shell and MCP server."""

    config_dir: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR)
    language: str = "en"
    log_level: str = "WARNING"
    json_output: bool = False
    # Seconds; 0 disables the timeout
    clone_timeout: float = 0
    post_process_timeout: float = 0

    @property
    def registry_file(self) -> Path:
        return self.config_dir / "templates.json"

    @property
    def templates_dir(self) -> Path:
        return self.config_dir / "templates"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """Create Settings from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}

        if "config_dir" in values:
            values["config_dir"] = Path(values["config_dir"]).expanduser()
        if "language" in values:
            values["language"] = normalize_language(str(values["language"]))
        if "log_level" in values:
            values["log_level"] = str(values["log_level"]).upper()
        if "json_output" in values:
            values["json_output"] = _as_bool(values["json_output"])
        for key in ("clone_timeout", "post_process_timeout"):
            if key in values:
                values[key] = max(float(values[key]), 0.0)

        return cls(**values)


def normalize_language(value: str | None) -> str:
    """Map a locale-ish string (``zh_CN.UTF-8``, ``en-US``) to a supported language.

    Unknown or empty values fall back to English.
    """
    if not value:
        return "en"
    code = value.strip().lower().replace("-", "_").split(".")[0].split("_")[0]
    return code if code in SUPPORTED_LANGUAGES else "en"


def detect_language() -> str:
    """Resolve the interface language from the environment.

    Order: SCAFFOLD_LANG, LANG, the process locale, then English.
    """
    for var in ("SCAFFOLD_LANG", "LANG"):
        value = os.getenv(var)
        if value and value not in ("C", "POSIX"):
            return normalize_language(value)

    try:
        current = locale.getlocale()[0]
    except ValueError:
        current = None
    return normalize_language(current)


def find_settings_file() -> Path | None:
    """Locate the settings file.

    Returns:
        Path from SCAFFOLD_SETTINGS_FILE, else ~/.flexible-scaffold/settings.toml
        when it exists, else None.
    """
    explicit = os.getenv("SCAFFOLD_SETTINGS_FILE")
    if explicit:
        return Path(explicit).expanduser()

    default = DEFAULT_CONFIG_DIR / "settings.toml"
    if default.exists():
        return default
    return None


def load_settings(settings_path: Path | str | None = None, **overrides: Any) -> Settings:
    """Load settings from file, environment and explicit overrides.

    Args:
        settings_path: Optional explicit path to a settings.toml
        **overrides: Highest-priority values (None values are ignored)

    Returns:
        Settings with merged values.
    """
    load_dotenv()

    data: dict[str, Any] = {}

    if settings_path is None:
        settings_path = find_settings_file()

    if settings_path is not None:
        path = Path(settings_path)
        if path.exists():
            with open(path, "rb") as f:
                data = tomllib.load(f)

    env_overrides = {
        "config_dir": os.getenv("SCAFFOLD_CONFIG_DIR"),
        "log_level": os.getenv("SCAFFOLD_LOG_LEVEL") or os.getenv("LOG_LEVEL"),
        "json_output": os.getenv("SCAFFOLD_JSON_OUTPUT"),
        "clone_timeout": _float_or_none(os.getenv("SCAFFOLD_CLONE_TIMEOUT")),
        "post_process_timeout": _float_or_none(os.getenv("SCAFFOLD_POST_PROCESS_TIMEOUT")),
    }

    # Only non-None values win over the file
    for key, value in env_overrides.items():
        if value is not None:
            data[key] = value

    if "language" not in data:
        data["language"] = detect_language()
    elif os.getenv("SCAFFOLD_LANG"):
        data["language"] = os.getenv("SCAFFOLD_LANG")

    for key, value in overrides.items():
        if value is not None:
            data[key] = value

    return Settings.from_dict(data)


def with_overrides(settings: Settings, **overrides: Any) -> Settings:
    """Return a copy of ``settings`` with non-None overrides applied."""
    values = {k: v for k, v in overrides.items() if v is not None}
    if not values:
        return settings
    if "config_dir" in values:
        values["config_dir"] = Path(values["config_dir"]).expanduser()
    if "language" in values:
        values["language"] = normalize_language(values["language"])
    return replace(settings, **values)


def _float_or_none(value: str | None) -> float | None:
    """Convert string to float, or return None."""
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES
