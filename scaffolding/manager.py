"""ScaffoldManager: the single entry point used by the CLI, shell and MCP server.

Every public operation returns an ``OperationResult``; exceptions never
escape an operation.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections import Counter
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from .acquisition import AcquisitionError, acquire, is_git_url, validate_local_source
from .config import Settings
from .generator import ProjectGenerator, validate_project_name
from .i18n import Translator
from .manifest import load_template_config
from .registry import (
    TemplateRecord,
    TemplateRegistry,
    TemplateType,
    TemplateValidationError,
    utc_now,
    validate_template_name,
)
from .result import OperationResult

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


class ScaffoldManager:
    """Manages registered templates and creates projects from them.

    Example:
        >>> manager = ScaffoldManager(Settings(config_dir=Path("/tmp/scaffold")))
        >>> await manager.add_template("react", "https://github.com/org/react-template.git")
        >>> await manager.create_project("react", "my-app", Path.cwd())
    """

    def __init__(self, settings: Settings | None = None, translator: Translator | None = None):
        """Initialize the manager and its on-disk registry.

        Args:
            settings: Runtime settings (default: built-in defaults)
            translator: Message translator (default: from settings.language)
        """
        self.settings = settings or Settings()
        self.t = translator or Translator(self.settings.language)
        self.registry = TemplateRegistry(self.settings.config_dir)

    @property
    def config_dir(self) -> Path:
        return self.registry.config_dir

    @property
    def templates_dir(self) -> Path:
        return self.registry.templates_dir

    @property
    def config_file(self) -> Path:
        return self.registry.config_file

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def add_template(
        self, name: str, source: str, description: str = "", force: bool = False
    ) -> OperationResult:
        """Register a template from a Git URL or a local directory.

        Args:
            name: Unique template name
            source: Git URL or local path (detected automatically)
            description: Optional description
            force: Replace an existing template of the same name
        """
        try:
            validate_template_name(name)
            source = source.strip()
            if is_git_url(source):
                template_type = TemplateType.GIT
            else:
                template_type = TemplateType.LOCAL
                source = str(validate_local_source(source))
            return await self._register(name, source, template_type, description, force)
        except TemplateValidationError as e:
            return OperationResult.fail(str(e))
        except Exception as e:
            return self._unexpected("add template", e)

    async def add_git_template(
        self, name: str, git_url: str, description: str = "", force: bool = False
    ) -> OperationResult:
        """Register a template that must come from a Git remote."""
        if not is_git_url(git_url or ""):
            return OperationResult.fail(self.t("template.invalid_git_url", url=git_url))
        return await self.add_template(name, git_url, description, force)

    async def _register(
        self,
        name: str,
        source: str,
        template_type: TemplateType,
        description: str,
        force: bool,
    ) -> OperationResult:
        if name in self.registry.load().templates and not force:
            return OperationResult.fail(self.t("template.exists", name=name))

        local_path = self.registry.path_for(name)
        try:
            await acquire(
                source,
                local_path,
                git=template_type == TemplateType.GIT,
                timeout=self.settings.clone_timeout,
                managed_root=self.templates_dir,
            )
        except AcquisitionError as e:
            return OperationResult.fail(str(e))

        config = load_template_config(local_path)
        record = TemplateRecord(
            type=template_type,
            source_location=source,
            local_path=str(local_path),
            description=description or (config.description if config else None) or "",
            config=config,
        )

        registry = self.registry.load()
        registry.templates[name] = record
        self.registry.save(registry)
        logger.info("Registered template %s (%s) from %s", name, template_type.value, source)

        return OperationResult.ok(
            self.t("template.added", name=name),
            name=name,
            type=template_type.value,
            sourceLocation=source,
            localPath=str(local_path),
        )

    def remove_template(self, name: str) -> OperationResult:
        """Delete a template's managed directory and registry entry."""
        try:
            registry = self.registry.load()
            record = registry.templates.get(name)
            if record is None:
                return OperationResult.fail(self.t("template.not_found", name=name))

            local_path = self.registry.path_for(name)
            if local_path.is_symlink() or local_path.is_file():
                local_path.unlink()
            elif local_path.exists():
                shutil.rmtree(local_path)

            del registry.templates[name]
            self.registry.save(registry)
            logger.info("Removed template %s", name)
            return OperationResult.ok(self.t("template.removed", name=name), name=name)
        except Exception as e:
            return self._unexpected("remove template", e)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def update_template(self, name: str) -> OperationResult:
        """Re-acquire a template from its recorded source."""
        try:
            record = self.registry.load().templates.get(name)
            if record is None:
                return OperationResult.fail(self.t("template.not_found", name=name))

            refreshed = await self._refresh(name, record)

            registry = self.registry.load()
            registry.templates[name] = refreshed
            self.registry.save(registry)
            return OperationResult.ok(
                self.t("template.updated", name=name),
                name=name,
                updatedAt=refreshed.updated_at.isoformat(),
            )
        except (AcquisitionError, TemplateValidationError) as e:
            return OperationResult.fail(str(e))
        except Exception as e:
            return self._unexpected("update template", e)

    async def update_all_templates(self) -> OperationResult:
        """Re-acquire every template concurrently.

        Each task only touches its own managed directory. Registry changes
        are applied in a single save once all tasks have finished.
        """
        try:
            records = dict(self.registry.load().templates)
            if not records:
                return OperationResult.ok(
                    self.t("update_all.empty"), succeeded=0, failed=0, total=0, failures={}
                )

            names = list(records)
            outcomes = await asyncio.gather(
                *(self._refresh(name, records[name]) for name in names),
                return_exceptions=True,
            )

            refreshed: dict[str, TemplateRecord] = {}
            failures: dict[str, str] = {}
            for name, outcome in zip(names, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    logger.warning("Failed to update template %s: %s", name, outcome)
                    failures[name] = str(outcome)
                else:
                    refreshed[name] = outcome

            if refreshed:
                registry = self.registry.load()
                for name, record in refreshed.items():
                    # Skip templates removed while the update ran
                    if name in registry.templates:
                        registry.templates[name] = record
                self.registry.save(registry)

            total = len(names)
            data = {
                "succeeded": len(refreshed),
                "failed": len(failures),
                "total": total,
                "failures": failures,
            }
            if failures:
                return OperationResult.fail(
                    self.t("update_all.partial", succeeded=len(refreshed), total=total), **data
                )
            return OperationResult.ok(self.t("update_all.done", count=total), **data)
        except Exception as e:
            return self._unexpected("update templates", e)

    async def _refresh(self, name: str, record: TemplateRecord) -> TemplateRecord:
        """Re-acquire one template and return its updated record.

        The managed path is recomputed from the name rather than trusted
        from the record.
        """
        local_path = self.registry.path_for(name)
        await acquire(
            record.source_location,
            local_path,
            git=record.type == TemplateType.GIT,
            timeout=self.settings.clone_timeout,
            managed_root=self.templates_dir,
        )
        config = load_template_config(local_path)
        return record.model_copy(
            update={
                "local_path": str(local_path),
                "config": config,
                "updated_at": utc_now(),
            }
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_templates(self) -> OperationResult:
        """List registered templates in insertion order."""
        try:
            registry = self.registry.load()
            templates = [_summary(name, rec) for name, rec in registry.templates.items()]
            return OperationResult.ok(
                self.t("template.listed", count=len(templates)),
                templates=templates,
                count=len(templates),
            )
        except Exception as e:
            return self._unexpected("list templates", e)

    def get_template_info(self, name: str) -> OperationResult:
        """Full registry record of one template."""
        try:
            record = self.registry.load().templates.get(name)
            if record is None:
                return OperationResult.fail(self.t("template.not_found", name=name))
            info = {"name": name, **record.to_json_dict()}
            info["exists"] = Path(record.local_path).exists()
            return OperationResult.ok(self.t("template.info", name=name), template=info)
        except Exception as e:
            return self._unexpected("get template info", e)

    def validate_template(self, name: str) -> OperationResult:
        """Check that a template is registered and its files are present."""
        try:
            record = self.registry.load().templates.get(name)
            if record is None:
                return OperationResult.fail(self.t("template.not_found", name=name))
            if not Path(record.local_path).exists():
                return OperationResult.fail(
                    self.t("template.missing_files", name=name, path=record.local_path),
                    name=name,
                    localPath=record.local_path,
                )
            return OperationResult.ok(
                self.t("template.valid", name=name), name=name, localPath=record.local_path
            )
        except Exception as e:
            return self._unexpected("validate template", e)

    def cleanup_invalid_templates(self) -> OperationResult:
        """Drop registry entries whose managed directory no longer exists."""
        try:
            registry = self.registry.load()
            invalid = [
                name
                for name, record in registry.templates.items()
                if not Path(record.local_path).exists()
            ]
            if not invalid:
                return OperationResult.ok(self.t("cleanup.none"), cleanedCount=0, removed=[])

            for name in invalid:
                logger.info("Dropping template %s: %s is missing", name, registry.templates[name].local_path)
                del registry.templates[name]
            self.registry.save(registry)
            return OperationResult.ok(
                self.t("cleanup.done", count=len(invalid)),
                cleanedCount=len(invalid),
                removed=invalid,
            )
        except Exception as e:
            return self._unexpected("clean up templates", e)

    def get_registry_summary(self) -> dict[str, Any]:
        """Paths and contents of the registry, for display and MCP resources."""
        registry = self.registry.load()
        return {
            "configPath": str(self.config_file),
            "configDir": str(self.config_dir),
            "templatesPath": str(self.templates_dir),
            "templateCount": len(registry.templates),
            "templates": list(registry.templates),
            "lastUpdated": registry.last_updated.isoformat() if registry.last_updated else None,
        }

    def get_statistics(self) -> dict[str, Any]:
        """Counts by tag plus the most recently added and updated templates."""
        registry = self.registry.load()
        tags: Counter[str] = Counter()
        for record in registry.templates.values():
            tags.update(record.config.tags if record.config else [])

        recently_added = sorted(
            registry.templates.items(), key=lambda item: item[1].added_at, reverse=True
        )[:RECENT_LIMIT]
        recently_updated = sorted(
            ((n, r) for n, r in registry.templates.items() if r.updated_at),
            key=lambda item: item[1].updated_at,
            reverse=True,
        )[:RECENT_LIMIT]

        return {
            "totalTemplates": len(registry.templates),
            "templatesByType": dict(
                Counter(r.type.value for r in registry.templates.values())
            ),
            "templatesByTags": dict(tags),
            "recentlyAdded": [
                {"name": n, "addedAt": r.added_at.isoformat()} for n, r in recently_added
            ],
            "recentlyUpdated": [
                {"name": n, "updatedAt": r.updated_at.isoformat()} for n, r in recently_updated
            ],
        }

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(
        self,
        template_name: str,
        project_name: str,
        target_dir: Path | str | None = None,
        variables: Mapping[str, str] | None = None,
    ) -> OperationResult:
        """Create a project from a registered template.

        Checks run before anything is written, in order: project name,
        template registration, destination availability.

        Args:
            template_name: Registered template
            project_name: New directory name (letters, digits, ``-``, ``_``)
            target_dir: Parent directory (default: current dir)
            variables: Extra substitution values, override all defaults
        """
        try:
            validate_project_name(project_name)
            if not template_name:
                return OperationResult.fail(self.t("template.not_found", name=template_name))

            record = self.registry.load().templates.get(template_name)
            if record is None:
                return OperationResult.fail(self.t("template.not_found", name=template_name))

            target = Path(target_dir).expanduser() if target_dir else Path.cwd()
            project_dir = target / project_name
            if project_dir.exists() or project_dir.is_symlink():
                return OperationResult.fail(self.t("project.exists", path=project_dir))
            if not Path(record.local_path).is_dir():
                return OperationResult.fail(
                    self.t("template.missing_files", name=template_name, path=record.local_path)
                )

            generator = ProjectGenerator(
                project_name=project_name,
                template_dir=Path(record.local_path),
                target_dir=target,
                config=record.config,
                variables=variables,
                post_process_timeout=self.settings.post_process_timeout,
            )
            generated = await generator.generate()

            return OperationResult.ok(
                self.t("project.created", name=project_name, path=generated.project_dir),
                projectPath=str(generated.project_dir),
                template=template_name,
                instructions=generated.instructions,
                warnings=generated.warnings,
                filesProcessed=generated.files_processed,
            )
        except TemplateValidationError as e:
            return OperationResult.fail(str(e))
        except Exception as e:
            return self._unexpected("create project", e)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_config(self) -> OperationResult:
        """The whole registry document."""
        try:
            document = self.registry.load().to_json_dict()
            return OperationResult.ok(self.t("config.exported"), config=document)
        except Exception as e:
            return self._unexpected("export configuration", e)

    def import_config(self, document: Mapping[str, Any]) -> OperationResult:
        """Merge templates from an exported document into the registry.

        Imported entries replace existing ones of the same name; others are
        kept. Each imported ``localPath`` is pointed at the managed directory
        for its name.
        """
        try:
            if not isinstance(document, Mapping) or not isinstance(
                document.get("templates"), Mapping
            ):
                return OperationResult.fail(
                    self.t("config.invalid", error="expected an object with a 'templates' mapping")
                )

            imported: dict[str, TemplateRecord] = {}
            for name, raw in document["templates"].items():
                validate_template_name(name)
                if not isinstance(raw, Mapping):
                    raise TemplateValidationError(f"Entry '{name}' must be an object")
                data = {**raw, "localPath": str(self.registry.path_for(name))}
                imported[name] = TemplateRecord.model_validate(data)

            registry = self.registry.load()
            registry.templates.update(imported)
            self.registry.save(registry)
            logger.info("Imported %d templates", len(imported))
            return OperationResult.ok(
                self.t("config.imported", count=len(imported)),
                importedCount=len(imported),
                templates=list(imported),
            )
        except (TemplateValidationError, ValidationError) as e:
            return OperationResult.fail(self.t("config.invalid", error=e))
        except Exception as e:
            return self._unexpected("import configuration", e)

    def _unexpected(self, action: str, error: Exception) -> OperationResult:
        logger.exception("Failed to %s", action)
        return OperationResult.fail(str(error) or error.__class__.__name__)


def _summary(name: str, record: TemplateRecord) -> dict[str, Any]:
    return {
        "name": name,
        "type": record.type.value,
        "sourceLocation": record.source_location,
        "description": record.description,
        "addedAt": record.added_at.isoformat(),
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
        "tags": record.config.tags if record.config else [],
    }
