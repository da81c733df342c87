"""Template configuration schema.

A template may ship a declarative ``scaffold.config.json`` or
``scaffold.config.yaml`` describing its variables, post-process commands and
instructions. The file comes from an untrusted repository, so it is parsed as
data and validated; executable ``scaffold.config.js``/``.ts`` files are never
loaded.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

# Declarative files, tried in order
CONFIG_FILENAMES = (
    "scaffold.config.json",
    "scaffold.config.yaml",
    "scaffold.config.yml",
)

# Never executed, only stripped from generated projects
LEGACY_CONFIG_FILENAMES = (
    "scaffold.config.js",
    "scaffold.config.ts",
)

ALL_CONFIG_FILENAMES = CONFIG_FILENAMES + LEGACY_CONFIG_FILENAMES


class ManifestError(Exception):
    """Error parsing a template configuration file."""

    pass


class PromptType(str, Enum):
    """Kinds of interactive questions a template can declare."""

    INPUT = "input"
    SELECT = "select"
    CONFIRM = "confirm"
    MULTISELECT = "multiselect"


class TemplatePrompt(BaseModel):
    """A question asked by the interactive shell to fill a variable."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Variable name the answer is stored under")
    type: PromptType = Field(default=PromptType.INPUT, description="Question kind")
    message: str = Field(default="", description="Question text")
    default: Any = Field(default=None, description="Default answer")
    choices: list[str] = Field(default_factory=list, description="Options for select prompts")


class TemplateConfig(BaseModel):
    """Declarative template configuration.

    All fields are optional; unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = Field(default=None, description="Display name")
    description: str | None = Field(default=None, description="Template description")
    version: str | None = Field(default=None, description="Template version")
    author: str | None = Field(default=None, description="Template author")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    variables: dict[str, str] = Field(
        default_factory=dict, description="Default substitution values"
    )
    post_process: list[str] = Field(
        default_factory=list,
        alias="postProcess",
        description="Shell commands run inside a new project",
    )
    post_create_instructions: list[str] = Field(
        default_factory=list,
        alias="postCreateInstructions",
        description="Next steps shown after project creation",
    )
    requirements: dict[str, str] = Field(
        default_factory=dict, description="Informational tool requirements"
    )
    ignore: list[str] = Field(
        default_factory=list, description="Glob patterns not copied into projects"
    )
    prompts: list[TemplatePrompt] = Field(
        default_factory=list, description="Questions for interactive creation"
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used on disk."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def parse_template_config(path: Path) -> TemplateConfig:
    """Parse a declarative configuration file.

    Args:
        path: JSON or YAML file

    Returns:
        Validated TemplateConfig

    Raises:
        ManifestError: If the file cannot be read, parsed or validated
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"Cannot read {path.name}: {e}") from e

    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ManifestError(f"Invalid syntax in {path.name}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ManifestError(f"{path.name} must contain a mapping, got {type(data).__name__}")

    try:
        return TemplateConfig.model_validate(_coerce_variables(data))
    except ValidationError as e:
        raise ManifestError(f"Invalid template configuration in {path.name}: {e}") from e


def load_template_config(template_dir: Path) -> TemplateConfig | None:
    """Load the optional configuration of an acquired template.

    Failures are logged and treated as "no configuration".

    Args:
        template_dir: Root of the template

    Returns:
        TemplateConfig, or None if absent or unusable
    """
    for filename in CONFIG_FILENAMES:
        path = template_dir / filename
        if path.is_file():
            try:
                return parse_template_config(path)
            except ManifestError as e:
                logger.warning("Ignoring template configuration: %s", e)
                return None

    for filename in LEGACY_CONFIG_FILENAMES:
        if (template_dir / filename).is_file():
            logger.info(
                "%s found in %s; executable configurations are not loaded, "
                "use scaffold.config.json or scaffold.config.yaml instead",
                filename,
                template_dir,
            )
    return None


def _coerce_variables(data: dict[str, Any]) -> dict[str, Any]:
    """Accept snake_case keys and non-string variable values."""
    data = dict(data)
    for snake, camel in (
        ("post_process", "postProcess"),
        ("post_create_instructions", "postCreateInstructions"),
    ):
        if snake in data and camel not in data:
            data[camel] = data.pop(snake)

    for key in ("variables", "requirements"):
        mapping = data.get(key)
        if isinstance(mapping, dict):
            data[key] = {str(k): _as_text(v) for k, v in mapping.items()}
    return data


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
