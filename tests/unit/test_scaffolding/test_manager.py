"""
test_manager.py - ScaffoldManager operation tests

Cases:
- add / list / remove
- create project (preconditions, substitution, config)
- update and update-all (partial failure)
- validate / cleanup
- export / import
- statistics
"""

import json
import shutil
from datetime import date
from pathlib import Path

import pytest

from scaffolding.config import Settings
from scaffolding.i18n import Translator
from scaffolding.manager import ScaffoldManager

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _tree(path: Path) -> list[str]:
    if not path.exists():
        return []
    return sorted(p.relative_to(path).as_posix() for p in path.rglob("*"))


# =============================================================================
# Add / List / Remove
# =============================================================================

class TestAddTemplate:
    """Registering templates."""

    @pytest.mark.asyncio
    async def test_add_local_then_list(self, manager: ScaffoldManager, template_source: Path):
        """A successful add appears exactly once in the list."""
        result = await manager.add_template("basic", str(template_source), "Basic starter")

        assert result.success, result.error
        assert result.data["type"] == "local"
        assert Path(result.data["localPath"]) == manager.templates_dir / "basic"
        assert (manager.templates_dir / "basic" / "README.md").exists()

        listed = manager.list_templates().data["templates"]
        assert [t["name"] for t in listed] == ["basic"]
        assert listed[0]["description"] == "Basic starter"
        assert listed[0]["sourceLocation"] == str(template_source.resolve())

    @pytest.mark.asyncio
    async def test_description_falls_back_to_config(
        self, manager: ScaffoldManager, configured_template_source: Path
    ):
        await manager.add_template("web", str(configured_template_source))

        info = manager.get_template_info("web").data["template"]
        assert info["description"] == "Configured starter"
        assert info["config"]["tags"] == ["web", "starter"]

    @pytest.mark.asyncio
    async def test_duplicate_name_is_rejected(self, manager: ScaffoldManager, template_source: Path):
        await manager.add_template("basic", str(template_source))

        result = await manager.add_template("basic", str(template_source))

        assert not result.success
        assert "already exists" in result.error
        assert len(manager.list_templates().data["templates"]) == 1

    @pytest.mark.asyncio
    async def test_force_replaces_template(
        self, manager: ScaffoldManager, template_source: Path, configured_template_source: Path
    ):
        await manager.add_template("basic", str(template_source))

        result = await manager.add_template(
            "basic", str(configured_template_source), force=True
        )

        assert result.success
        info = manager.get_template_info("basic").data["template"]
        assert info["sourceLocation"] == str(configured_template_source.resolve())

    @pytest.mark.asyncio
    async def test_managed_copy_cannot_be_its_own_source(
        self, manager: ScaffoldManager, template_source: Path
    ):
        """Re-adding from the managed directory keeps the existing copy."""
        await manager.add_template("basic", str(template_source))
        managed = manager.templates_dir / "basic"

        result = await manager.add_template("basic", str(managed), force=True)

        assert not result.success
        assert "overlaps" in result.error
        assert (managed / "README.md").exists()

    @pytest.mark.asyncio
    async def test_source_inside_templates_dir_is_rejected(
        self, manager: ScaffoldManager, template_source: Path
    ):
        await manager.add_template("basic", str(template_source))

        result = await manager.add_template("copy", str(manager.templates_dir / "basic"))

        assert not result.success
        assert "managed templates directory" in result.error
        assert manager.list_templates().data["count"] == 1
        assert not (manager.templates_dir / "copy").exists()

    @pytest.mark.asyncio
    async def test_missing_local_source(self, manager: ScaffoldManager, tmp_path: Path):
        """An invalid source leaves no entry and no managed directory."""
        result = await manager.add_template("ghost", str(tmp_path / "nowhere"))

        assert not result.success
        assert manager.list_templates().data["count"] == 0
        assert not (manager.templates_dir / "ghost").exists()

    @pytest.mark.asyncio
    async def test_malformed_git_url_is_rejected(self, manager: ScaffoldManager):
        result = await manager.add_git_template("web", "not a url")

        assert not result.success
        assert "Invalid Git URL" in result.error
        assert manager.list_templates().data["count"] == 0
        assert _tree(manager.templates_dir) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "../escape", "a/b"])
    async def test_invalid_template_name(
        self, manager: ScaffoldManager, template_source: Path, name: str
    ):
        result = await manager.add_template(name, str(template_source))

        assert not result.success
        assert _tree(manager.templates_dir) == []

    @requires_git
    @pytest.mark.asyncio
    async def test_add_git_template(self, manager: ScaffoldManager, git_template_url: str):
        result = await manager.add_git_template("remote", git_template_url, "From git")

        assert result.success, result.error
        assert result.data["type"] == "git"
        assert (manager.templates_dir / "remote" / "README.md").exists()


class TestRemoveTemplate:
    """Removing templates."""

    @pytest.mark.asyncio
    async def test_remove_deletes_entry_and_files(
        self, manager: ScaffoldManager, template_source: Path
    ):
        await manager.add_template("basic", str(template_source))

        result = manager.remove_template("basic")

        assert result.success
        assert manager.list_templates().data["count"] == 0
        assert not (manager.templates_dir / "basic").exists()

    def test_remove_unknown_mentions_name(self, manager: ScaffoldManager):
        result = manager.remove_template("nope")

        assert not result.success
        assert "nope" in result.error

    @pytest.mark.asyncio
    async def test_remove_with_missing_directory(
        self, manager: ScaffoldManager, template_source: Path
    ):
        await manager.add_template("basic", str(template_source))
        shutil.rmtree(manager.templates_dir / "basic")

        assert manager.remove_template("basic").success


# =============================================================================
# Create Project
# =============================================================================

class TestCreateProject:
    """Materializing projects through the manager."""

    @pytest.mark.asyncio
    async def test_substitutes_defaults(
        self, manager: ScaffoldManager, template_source: Path, workspace: Path
    ):
        await manager.add_template("basic", str(template_source))

        result = await manager.create_project("basic", "demo", workspace)

        assert result.success, result.error
        readme = (workspace / "demo" / "README.md").read_text(encoding="utf-8")
        assert readme == f"Hello demo, year {date.today().year}\n"
        assert result.data["projectPath"] == str(workspace / "demo")
        assert result.data["instructions"] == ["cd demo", "npm install", "npm run dev"]

    @pytest.mark.asyncio
    async def test_uses_template_config(
        self, manager: ScaffoldManager, configured_template_source: Path, workspace: Path
    ):
        (configured_template_source / "NOTICE").write_text(
            "{{AUTHOR}} {{LICENSE}}", encoding="utf-8"
        )
        (configured_template_source / "trace.log").write_text("x", encoding="utf-8")
        await manager.add_template("web", str(configured_template_source))

        result = await manager.create_project(
            "web", "site", workspace, variables={"AUTHOR": "Caller"}
        )

        project = workspace / "site"
        assert (project / "NOTICE").read_text(encoding="utf-8") == "Caller MIT"
        assert not (project / "trace.log").exists()
        assert not (project / "scaffold.config.json").exists()
        assert result.data["instructions"] == ["cd site", "make run"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("project_name", ["my app", "../x", ""])
    async def test_invalid_project_name_has_no_side_effects(
        self, manager: ScaffoldManager, template_source: Path, workspace: Path, project_name: str
    ):
        await manager.add_template("basic", str(template_source))
        before = _tree(workspace)

        result = await manager.create_project("basic", project_name, workspace)

        assert not result.success
        assert "Invalid project name" in result.error
        assert _tree(workspace) == before

    @pytest.mark.asyncio
    async def test_project_name_checked_before_template(
        self, manager: ScaffoldManager, workspace: Path
    ):
        result = await manager.create_project("missing", "bad name", workspace)

        assert "Invalid project name" in result.error

    @pytest.mark.asyncio
    async def test_unknown_template(self, manager: ScaffoldManager, workspace: Path):
        result = await manager.create_project("missing", "demo", workspace)

        assert not result.success
        assert "missing" in result.error
        assert _tree(workspace) == []

    @pytest.mark.asyncio
    async def test_existing_destination_untouched(
        self, manager: ScaffoldManager, template_source: Path, workspace: Path
    ):
        await manager.add_template("basic", str(template_source))
        existing = workspace / "demo"
        existing.mkdir()
        (existing / "mine.txt").write_text("keep", encoding="utf-8")

        result = await manager.create_project("basic", "demo", workspace)

        assert not result.success
        assert "already exists" in result.error
        assert _tree(existing) == ["mine.txt"]
        assert (existing / "mine.txt").read_text(encoding="utf-8") == "keep"

    @pytest.mark.asyncio
    async def test_template_files_missing(
        self, manager: ScaffoldManager, template_source: Path, workspace: Path
    ):
        await manager.add_template("basic", str(template_source))
        shutil.rmtree(manager.templates_dir / "basic")

        result = await manager.create_project("basic", "demo", workspace)

        assert not result.success
        assert "missing" in result.error


# =============================================================================
# Update
# =============================================================================

class TestUpdate:
    """Re-acquiring templates."""

    @pytest.mark.asyncio
    async def test_update_refreshes_content(
        self, manager: ScaffoldManager, template_source: Path
    ):
        await manager.add_template("basic", str(template_source))
        (template_source / "NEW.md").write_text("new", encoding="utf-8")

        result = await manager.update_template("basic")

        assert result.success, result.error
        assert (manager.templates_dir / "basic" / "NEW.md").exists()
        info = manager.get_template_info("basic").data["template"]
        assert info["updatedAt"] is not None

    @pytest.mark.asyncio
    async def test_update_unknown(self, manager: ScaffoldManager):
        result = await manager.update_template("nope")

        assert not result.success
        assert "nope" in result.error

    @pytest.mark.asyncio
    async def test_update_all_partial_failure(
        self, manager: ScaffoldManager, make_template, tmp_path: Path
    ):
        """Three templates, one source gone: 2/3 succeed and are stamped."""
        sources = {name: make_template(tmp_path / "src" / name) for name in ("a", "b", "c")}
        for name, source in sources.items():
            assert (await manager.add_template(name, str(source))).success
        shutil.rmtree(sources["b"])

        result = await manager.update_all_templates()

        assert not result.success
        assert "2/3" in result.error
        assert result.data["succeeded"] == 2
        assert result.data["failed"] == 1
        assert set(result.data["failures"]) == {"b"}

        templates = {t["name"]: t for t in manager.list_templates().data["templates"]}
        assert templates["a"]["updatedAt"] is not None
        assert templates["c"]["updatedAt"] is not None
        assert templates["b"]["updatedAt"] is None

    @pytest.mark.asyncio
    async def test_update_all_success(
        self, manager: ScaffoldManager, make_template, tmp_path: Path
    ):
        for name in ("a", "b"):
            await manager.add_template(name, str(make_template(tmp_path / "src" / name)))

        result = await manager.update_all_templates()

        assert result.success
        assert result.data["succeeded"] == 2

    @pytest.mark.asyncio
    async def test_update_all_empty(self, manager: ScaffoldManager):
        result = await manager.update_all_templates()

        assert result.success
        assert result.data["total"] == 0

    @requires_git
    @pytest.mark.asyncio
    async def test_update_git_template(
        self, manager: ScaffoldManager, git_template_url: str
    ):
        await manager.add_git_template("remote", git_template_url)

        result = await manager.update_template("remote")

        assert result.success, result.error
        assert (manager.templates_dir / "remote" / "README.md").exists()


# =============================================================================
# Validate / Cleanup
# =============================================================================

class TestValidateAndCleanup:
    """Templates whose files have gone missing."""

    @pytest.mark.asyncio
    async def test_validate(self, manager: ScaffoldManager, template_source: Path):
        await manager.add_template("basic", str(template_source))

        assert manager.validate_template("basic").success
        shutil.rmtree(manager.templates_dir / "basic")
        assert not manager.validate_template("basic").success
        assert not manager.validate_template("unknown").success

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_missing(
        self, manager: ScaffoldManager, make_template, tmp_path: Path
    ):
        for name in ("keep", "gone"):
            await manager.add_template(name, str(make_template(tmp_path / "src" / name)))
        shutil.rmtree(manager.templates_dir / "gone")

        result = manager.cleanup_invalid_templates()

        assert result.success
        assert result.data["cleanedCount"] == 1
        names = [t["name"] for t in manager.list_templates().data["templates"]]
        assert names == ["keep"]

    def test_cleanup_nothing_to_do(self, manager: ScaffoldManager):
        result = manager.cleanup_invalid_templates()

        assert result.success
        assert result.data["cleanedCount"] == 0


# =============================================================================
# Export / Import
# =============================================================================

class TestExportImport:
    """Registry documents."""

    @pytest.mark.asyncio
    async def test_export_contains_templates(
        self, manager: ScaffoldManager, template_source: Path
    ):
        await manager.add_template("basic", str(template_source))

        document = manager.export_config().data["config"]

        assert list(document["templates"]) == ["basic"]
        assert document["lastUpdated"]
        json.dumps(document)

    @pytest.mark.asyncio
    async def test_import_merges(
        self, manager: ScaffoldManager, make_template, tmp_path: Path
    ):
        """Imported entries win; others are preserved; paths stay managed."""
        for name in ("a", "b"):
            await manager.add_template(
                name, str(make_template(tmp_path / "src" / name)), f"{name} original"
            )

        result = manager.import_config(
            {
                "templates": {
                    "b": {
                        "type": "git",
                        "sourceLocation": "https://example.com/b.git",
                        "localPath": "/somewhere/else",
                        "description": "b imported",
                        "addedAt": "2024-01-01T00:00:00",
                    },
                    "c": {
                        "type": "git",
                        "gitUrl": "https://example.com/c.git",
                        "localPath": "/tmp/c",
                        "description": "c imported",
                    },
                }
            }
        )

        assert result.success, result.error
        assert result.data["importedCount"] == 2
        templates = {t["name"]: t for t in manager.list_templates().data["templates"]}
        assert set(templates) == {"a", "b", "c"}
        assert templates["a"]["description"] == "a original"
        assert templates["b"]["description"] == "b imported"
        info = manager.get_template_info("c").data["template"]
        assert info["localPath"] == str(manager.templates_dir / "c")

    def test_import_records_without_type(self, manager: ScaffoldManager):
        """Records exported by older versions carry gitUrl and no type."""
        result = manager.import_config(
            {
                "templates": {
                    "legacy": {
                        "gitUrl": "https://example.com/legacy.git",
                        "localPath": "/old/home/templates/legacy",
                        "description": "legacy",
                        "addedAt": "2024-01-01T00:00:00.000Z",
                        "config": None,
                    }
                },
                "lastUpdated": "2024-01-01T00:00:00.000Z",
            }
        )

        assert result.success, result.error
        info = manager.get_template_info("legacy").data["template"]
        assert info["type"] == "git"
        assert info["sourceLocation"] == "https://example.com/legacy.git"

    def test_import_rejects_bad_document(self, manager: ScaffoldManager):
        assert not manager.import_config({"nope": 1}).success
        assert not manager.import_config({"templates": {"x": {"type": "svn"}}}).success
        assert not manager.import_config(
            {"templates": {"../evil": {"type": "git", "sourceLocation": "x", "localPath": "y"}}}
        ).success
        assert manager.list_templates().data["count"] == 0


# =============================================================================
# Summary / Statistics / Messages
# =============================================================================

class TestSummaries:
    """Registry summary and statistics."""

    @pytest.mark.asyncio
    async def test_registry_summary(self, manager: ScaffoldManager, template_source: Path):
        await manager.add_template("basic", str(template_source))

        summary = manager.get_registry_summary()

        assert summary["templateCount"] == 1
        assert summary["templates"] == ["basic"]
        assert summary["configPath"] == str(manager.config_dir / "templates.json")

    @pytest.mark.asyncio
    async def test_statistics(
        self,
        manager: ScaffoldManager,
        template_source: Path,
        configured_template_source: Path,
    ):
        await manager.add_template("basic", str(template_source))
        await manager.add_template("web", str(configured_template_source))
        await manager.update_template("web")

        stats = manager.get_statistics()

        assert stats["totalTemplates"] == 2
        assert stats["templatesByTags"] == {"web": 1, "starter": 1}
        assert [t["name"] for t in stats["recentlyAdded"]] == ["web", "basic"]
        assert [t["name"] for t in stats["recentlyUpdated"]] == ["web"]

    @pytest.mark.asyncio
    async def test_statistics_with_imported_timestamps(
        self, manager: ScaffoldManager, template_source: Path
    ):
        """Imported UTC timestamps sort together with locally created ones."""
        manager.import_config(
            {
                "templates": {
                    "imported": {
                        "type": "git",
                        "gitUrl": "https://example.com/imported.git",
                        "localPath": "/x",
                        "addedAt": "2024-01-01T00:00:00.000Z",
                        "updatedAt": "2024-02-01T00:00:00.000Z",
                    }
                }
            }
        )
        await manager.add_template("local", str(template_source))
        await manager.update_template("local")

        stats = manager.get_statistics()

        assert [t["name"] for t in stats["recentlyAdded"]] == ["local", "imported"]
        assert [t["name"] for t in stats["recentlyUpdated"]] == ["local", "imported"]


class TestMessages:
    """Messages follow the translator language."""

    def test_chinese_messages(self, config_dir: Path):
        manager = ScaffoldManager(Settings(config_dir=config_dir), Translator("zh"))

        result = manager.remove_template("nope")

        assert result.error == "未找到模板 'nope'"
