"""Template registry and project scaffolding for Flexible Scaffold.

Registers templates from:
- Git repositories (cloned)
- Local directories (copied)

and creates new projects from them with ``{{KEY}}`` variable substitution.
"""

__version__ = "0.1.0"

from .acquisition import AcquisitionError, is_git_url
from .config import Settings, load_settings
from .generator import GenerationResult, ProjectGenerator, validate_project_name
from .i18n import Translator
from .manager import ScaffoldManager
from .manifest import ManifestError, TemplateConfig, TemplatePrompt, load_template_config
from .registry import (
    Registry,
    TemplateRecord,
    TemplateRegistry,
    TemplateType,
    TemplateValidationError,
    validate_template_name,
)
from .result import OperationResult
from .variables import default_variables, render_text, substitute_variables

__all__ = [
    "__version__",
    # Manager
    "ScaffoldManager",
    "OperationResult",
    # Settings
    "Settings",
    "load_settings",
    "Translator",
    # Registry
    "Registry",
    "TemplateRecord",
    "TemplateRegistry",
    "TemplateType",
    "TemplateValidationError",
    "validate_template_name",
    # Templates
    "TemplateConfig",
    "TemplatePrompt",
    "ManifestError",
    "load_template_config",
    "AcquisitionError",
    "is_git_url",
    # Projects
    "ProjectGenerator",
    "GenerationResult",
    "validate_project_name",
    "default_variables",
    "render_text",
    "substitute_variables",
]
