"""Persistent template registry.

The registry is a single JSON document (``templates.json``) inside the config
directory, next to the managed ``templates/`` directory holding one
subdirectory per registered template.
"""

import json
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .manifest import TemplateConfig

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "templates.json"
TEMPLATES_DIRNAME = "templates"

_FORBIDDEN_NAME_CHARS = set('/\\:*?"<>|')


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_aware(value: datetime | None) -> datetime | None:
    # Timestamps without an offset are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TemplateValidationError(ValueError):
    """Invalid template name, source or project name."""

    pass


class TemplateType(str, Enum):
    """Where a template's content comes from."""

    GIT = "git"
    LOCAL = "local"


class TemplateRecord(BaseModel):
    """A registered template."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: TemplateType = Field(..., description="Source kind")
    source_location: str = Field(
        ...,
        validation_alias=AliasChoices("sourceLocation", "source_location", "gitUrl", "sourcePath"),
        serialization_alias="sourceLocation",
        description="Git URL or absolute local source path",
    )
    local_path: str = Field(
        ...,
        validation_alias=AliasChoices("localPath", "local_path"),
        serialization_alias="localPath",
        description="Managed copy of the template",
    )
    description: str = Field(default="", description="Free text description")
    added_at: datetime = Field(
        default_factory=utc_now,
        validation_alias=AliasChoices("addedAt", "added_at"),
        serialization_alias="addedAt",
    )
    updated_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )
    config: TemplateConfig | None = Field(default=None, description="Parsed template configuration")

    @model_validator(mode="before")
    @classmethod
    def _infer_type(cls, data: Any) -> Any:
        """Older registry files have no ``type``; derive it from the source key."""
        if isinstance(data, dict) and not data.get("type"):
            if data.get("gitUrl"):
                data = {**data, "type": TemplateType.GIT.value}
            elif data.get("sourcePath"):
                data = {**data, "type": TemplateType.LOCAL.value}
        return data

    @field_validator("added_at", "updated_at")
    @classmethod
    def _aware_timestamps(cls, value: datetime | None) -> datetime | None:
        return _as_aware(value)

    def to_json_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude={"config"})
        data["config"] = self.config.to_json_dict() if self.config else None
        return data


class Registry(BaseModel):
    """The whole registry document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    templates: dict[str, TemplateRecord] = Field(default_factory=dict)
    last_updated: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("lastUpdated", "last_updated"),
        serialization_alias="lastUpdated",
    )

    @field_validator("last_updated")
    @classmethod
    def _aware_timestamp(cls, value: datetime | None) -> datetime | None:
        return _as_aware(value)

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "templates": {name: rec.to_json_dict() for name, rec in self.templates.items()},
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


def validate_template_name(name: str) -> None:
    """Reject names that could escape the managed templates directory.

    Raises:
        TemplateValidationError: If the name is unusable
    """
    if not name or not name.strip():
        raise TemplateValidationError("Template name cannot be empty")
    if name in (".", ".."):
        raise TemplateValidationError(f"Invalid template name: {name}")
    bad = {c for c in name if c in _FORBIDDEN_NAME_CHARS or ord(c) < 32}
    if bad:
        shown = "".join(sorted(bad)).encode("unicode_escape").decode()
        raise TemplateValidationError(
            f"Invalid template name '{name}': contains forbidden characters {shown}"
        )


class TemplateRegistry:
    """Reads and writes the registry document and owns the managed directory."""

    def __init__(self, config_dir: Path):
        """Initialize the registry and create its directories.

        Args:
            config_dir: Root directory (e.g. ~/.flexible-scaffold)
        """
        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / REGISTRY_FILENAME
        self.templates_dir = self.config_dir / TEMPLATES_DIRNAME
        self.init()

    def init(self) -> None:
        """Create the config directory, templates directory and empty document."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.templates_dir.mkdir(parents=True, exist_ok=True)
        if not self.config_file.exists():
            self.save(Registry())

    def path_for(self, name: str) -> Path:
        """Managed directory for a template name."""
        validate_template_name(name)
        return self.templates_dir / name

    def load(self) -> Registry:
        """Load the registry.

        A missing file yields an empty registry. An unreadable file is
        backed up next to the original and also yields an empty registry.
        """
        if not self.config_file.exists():
            return Registry()

        try:
            with open(self.config_file, encoding="utf-8") as f:
                data = json.load(f)
            return Registry.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            backup = self._backup_corrupt()
            logger.warning(
                "Registry file %s could not be read (%s); starting with an empty registry%s",
                self.config_file,
                e.__class__.__name__,
                f", original saved to {backup}" if backup else "",
            )
            return Registry()

    def save(self, registry: Registry) -> None:
        """Stamp ``lastUpdated`` and atomically replace the document."""
        registry.last_updated = utc_now()
        atomic_write_json(self.config_file, registry.to_json_dict())

    def _backup_corrupt(self) -> Path | None:
        backup = self.config_file.with_name(self.config_file.name + ".corrupt")
        try:
            shutil.copy2(self.config_file, backup)
        except OSError as e:
            logger.debug("Could not back up %s: %s", self.config_file, e)
            return None
        return backup


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    """Write JSON via a temp file in the same directory and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
        f.flush()
        os.fsync(f.fileno())
        temp_path = Path(f.name)

    try:
        os.replace(temp_path, path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
