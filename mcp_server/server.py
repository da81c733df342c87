"""MCP server exposing the template registry to AI assistants.

Tools wrap the ScaffoldManager operations, resources expose the registry
summary and statistics as JSON, and prompts give assistants usage guides.
"""

import asyncio
import json
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    GetPromptResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    Resource,
    TextContent,
    Tool,
)

from scaffolding import __version__
from scaffolding.config import load_settings
from scaffolding.manager import ScaffoldManager
from scaffolding.result import OperationResult

logger = logging.getLogger(__name__)

SERVER_NAME = "flexible-scaffold"

CONFIG_RESOURCE = "scaffold://config"
STATS_RESOURCE = "scaffold://stats"

_NAME_ONLY = {
    "type": "object",
    "properties": {"name": {"type": "string", "description": "Template name"}},
    "required": ["name"],
}
_NO_ARGS = {"type": "object", "properties": {}}

TOOLS = [
    Tool(
        name="add_scaffold_template",
        description="Register a project template from a Git repository",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Unique template name"},
                "gitUrl": {"type": "string", "description": "Git repository URL"},
                "description": {"type": "string", "description": "Template description"},
            },
            "required": ["name", "gitUrl"],
        },
    ),
    Tool(
        name="remove_scaffold_template",
        description="Remove a registered template and its files",
        inputSchema=_NAME_ONLY,
    ),
    Tool(
        name="update_scaffold_template",
        description="Re-fetch a template from its source",
        inputSchema=_NAME_ONLY,
    ),
    Tool(
        name="update_all_scaffold_templates",
        description="Re-fetch every registered template",
        inputSchema=_NO_ARGS,
    ),
    Tool(
        name="list_scaffold_templates",
        description="List registered templates",
        inputSchema=_NO_ARGS,
    ),
    Tool(
        name="create_project_from_scaffold",
        description="Create a new project from a registered template",
        inputSchema={
            "type": "object",
            "properties": {
                "templateName": {"type": "string", "description": "Registered template"},
                "projectName": {
                    "type": "string",
                    "description": "Project directory name (letters, digits, - and _)",
                },
                "targetDir": {
                    "type": "string",
                    "description": "Parent directory (default: server working directory)",
                },
                "variables": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                    "description": "Values for {{KEY}} placeholders",
                },
            },
            "required": ["templateName", "projectName"],
        },
    ),
    Tool(
        name="get_scaffold_template_info",
        description="Show the registry record of a template",
        inputSchema=_NAME_ONLY,
    ),
    Tool(
        name="validate_scaffold_template",
        description="Check that a template's files are present",
        inputSchema=_NAME_ONLY,
    ),
    Tool(
        name="cleanup_invalid_templates",
        description="Drop templates whose files no longer exist",
        inputSchema=_NO_ARGS,
    ),
]

RESOURCES = [
    Resource(
        uri=CONFIG_RESOURCE,
        name="Scaffold configuration",
        description="Registry paths, template names and last update time",
        mimeType="application/json",
    ),
    Resource(
        uri=STATS_RESOURCE,
        name="Scaffold statistics",
        description="Template counts by tag and recent activity",
        mimeType="application/json",
    ),
]

PROMPTS = [
    Prompt(
        name="scaffold-usage-help",
        description="How to use the scaffold tools",
        arguments=[
            PromptArgument(
                name="action",
                description="Topic: setup, create, manage or general",
                required=False,
            )
        ],
    ),
    Prompt(
        name="project-creation-guide",
        description="Step by step guide for creating a project of a given type",
        arguments=[
            PromptArgument(name="projectType", description="Kind of project, e.g. react", required=True),
            PromptArgument(name="features", description="Comma separated features", required=False),
        ],
    ),
    Prompt(
        name="template-development-guide",
        description="How to build a template that works well with Flexible Scaffold",
        arguments=[
            PromptArgument(name="templateName", description="Name of the new template", required=True),
            PromptArgument(name="baseFramework", description="Framework the template uses", required=True),
            PromptArgument(name="features", description="Comma separated features", required=False),
        ],
    ),
]


class ScaffoldTools:
    """Handlers behind the MCP endpoints, independent of the transport."""

    def __init__(self, manager: ScaffoldManager):
        self.manager = manager

    async def call(self, name: str, arguments: dict[str, Any] | None) -> str:
        """Run a tool and format its result as text.

        Raises:
            ValueError: If the tool name is unknown
        """
        args = arguments or {}
        manager = self.manager

        if name == "add_scaffold_template":
            result = await manager.add_git_template(
                args.get("name", ""), args.get("gitUrl", ""), args.get("description") or ""
            )
        elif name == "remove_scaffold_template":
            result = manager.remove_template(args.get("name", ""))
        elif name == "update_scaffold_template":
            result = await manager.update_template(args.get("name", ""))
        elif name == "update_all_scaffold_templates":
            result = await manager.update_all_templates()
            return self._format_update_all(result)
        elif name == "list_scaffold_templates":
            return self._format_list(manager.list_templates())
        elif name == "create_project_from_scaffold":
            result = await manager.create_project(
                args.get("templateName", ""),
                args.get("projectName", ""),
                args.get("targetDir") or None,
                {str(k): str(v) for k, v in (args.get("variables") or {}).items()},
            )
            return self._format_created(result)
        elif name == "get_scaffold_template_info":
            result = manager.get_template_info(args.get("name", ""))
            if result.success:
                return json.dumps(result.data["template"], indent=2, ensure_ascii=False)
        elif name == "validate_scaffold_template":
            result = manager.validate_template(args.get("name", ""))
        elif name == "cleanup_invalid_templates":
            result = manager.cleanup_invalid_templates()
        else:
            raise ValueError(f"Unknown tool: {name}")

        return self._format(result)

    def read_resource(self, uri: str) -> str:
        """JSON body of a resource.

        Raises:
            ValueError: If the resource is unknown
        """
        if uri == CONFIG_RESOURCE:
            data = self.manager.get_registry_summary()
        elif uri == STATS_RESOURCE:
            data = self.manager.get_statistics()
        else:
            raise ValueError(f"Unknown resource: {uri}")
        return json.dumps(data, indent=2, ensure_ascii=False)

    def get_prompt(self, name: str, arguments: dict[str, str] | None) -> GetPromptResult:
        """Render a prompt.

        Raises:
            ValueError: If the prompt is unknown or a required argument is missing
        """
        args = arguments or {}

        if name == "scaffold-usage-help":
            action = args.get("action") or "general"
            text = _usage_help(action)
            description = f"Scaffold usage help: {action}"
        elif name == "project-creation-guide":
            project_type = _required(args, "projectType")
            text = self._creation_guide(project_type, _split(args.get("features")))
            description = f"Creating a {project_type} project"
        elif name == "template-development-guide":
            template_name = _required(args, "templateName")
            framework = _required(args, "baseFramework")
            text = _template_guide(template_name, framework, _split(args.get("features")))
            description = f"Developing the {template_name} template"
        else:
            raise ValueError(f"Unknown prompt: {name}")

        return GetPromptResult(
            description=description,
            messages=[PromptMessage(role="user", content=TextContent(type="text", text=text))],
        )

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def _format(result: OperationResult) -> str:
        if result.success:
            return result.message
        return f"Error: {result.error or result.message}"

    @staticmethod
    def _format_list(result: OperationResult) -> str:
        if not result.success:
            return f"Error: {result.error}"
        templates = result.data["templates"]
        if not templates:
            return "No templates registered. Use add_scaffold_template to add one."

        lines = [result.message, ""]
        for tpl in templates:
            lines.append(f"- {tpl['name']} ({tpl['type']})")
            if tpl["description"]:
                lines.append(f"  {tpl['description']}")
            lines.append(f"  Source: {tpl['sourceLocation']}")
            if tpl["tags"]:
                lines.append(f"  Tags: {', '.join(tpl['tags'])}")
        return "\n".join(lines)

    @staticmethod
    def _format_update_all(result: OperationResult) -> str:
        text = ScaffoldTools._format(result)
        failures = result.data.get("failures") or {}
        if failures:
            text += "\n" + "\n".join(f"- {name}: {error}" for name, error in failures.items())
        return text

    @staticmethod
    def _format_created(result: OperationResult) -> str:
        if not result.success:
            return ScaffoldTools._format(result)
        lines = [result.message]
        warnings = result.data.get("warnings") or []
        if warnings:
            lines += ["", "Warnings:"] + [f"- {w}" for w in warnings]
        lines += ["", "Next steps:"] + [f"  {step}" for step in result.data["instructions"]]
        return "\n".join(lines)

    def _creation_guide(self, project_type: str, features: list[str]) -> str:
        templates = self.manager.list_templates().data.get("templates", [])
        needle = project_type.lower()
        matches = [
            tpl["name"]
            for tpl in templates
            if needle in tpl["name"].lower()
            or needle in (tpl["description"] or "").lower()
            or needle in [tag.lower() for tag in tpl["tags"]]
        ]

        lines = [f"Help me create a new {project_type} project."]
        if features:
            lines.append(f"It should include: {', '.join(features)}.")
        lines.append("")
        if matches:
            lines.append(f"Registered templates that look relevant: {', '.join(matches)}.")
            lines.append(
                "Pick one, then call create_project_from_scaffold with templateName, "
                "projectName and optionally targetDir and variables."
            )
        else:
            lines.append(f"No registered template matches '{project_type}'.")
            lines.append(
                "Suggest a public Git repository to use as a template and register it "
                "with add_scaffold_template before creating the project."
            )
        lines += [
            "",
            "Project names may only contain letters, digits, hyphens and underscores.",
            "After creation, follow the returned next steps.",
        ]
        return "\n".join(lines)


def _required(args: dict[str, str], key: str) -> str:
    value = (args.get(key) or "").strip()
    if not value:
        raise ValueError(f"Missing required argument: {key}")
    return value


def _split(value: str | None) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _usage_help(action: str) -> str:
    sections = {
        "setup": [
            "Setting up Flexible Scaffold templates:",
            "1. Register a template: add_scaffold_template(name, gitUrl, description)",
            "2. Check it: validate_scaffold_template(name)",
            "3. Review what is registered: list_scaffold_templates()",
            "Templates are stored under ~/.flexible-scaffold/templates/<name>.",
        ],
        "create": [
            "Creating a project:",
            "1. Find a template with list_scaffold_templates()",
            "2. Inspect it with get_scaffold_template_info(name)",
            "3. Call create_project_from_scaffold(templateName, projectName, targetDir, variables)",
            "Placeholders such as {{PROJECT_NAME}}, {{CURRENT_YEAR}} and {{CREATION_DATE}} "
            "are filled automatically; pass variables to set others.",
        ],
        "manage": [
            "Managing templates:",
            "- update_scaffold_template(name) re-fetches one template",
            "- update_all_scaffold_templates() re-fetches all of them",
            "- remove_scaffold_template(name) deletes a template",
            "- cleanup_invalid_templates() drops entries whose files are gone",
        ],
    }
    if action in sections:
        return "\n".join(sections[action])

    lines = ["Flexible Scaffold manages project templates and creates projects from them.", ""]
    for key in ("setup", "create", "manage"):
        lines += sections[key] + [""]
    lines.append(f"Resources: {CONFIG_RESOURCE} (registry summary), {STATS_RESOURCE} (statistics).")
    return "\n".join(lines)


def _template_guide(template_name: str, framework: str, features: list[str]) -> str:
    lines = [
        f"Help me build a Flexible Scaffold template named '{template_name}' based on {framework}.",
    ]
    if features:
        lines.append(f"It should include: {', '.join(features)}.")
    lines += [
        "",
        "Guidelines:",
        "- Put {{PROJECT_NAME}} wherever the project name appears (package files, README, titles).",
        "- {{CURRENT_YEAR}} and {{CREATION_DATE}} are available for license headers and changelogs.",
        "- Add a scaffold.config.json (or .yaml) at the template root with optional keys:",
        "  description, version, author, tags, variables (default values),",
        "  postProcess (shell commands run in the new project),",
        "  postCreateInstructions (next steps, may use {{PROJECT_NAME}}),",
        "  ignore (glob patterns not copied), prompts (questions for interactive creation).",
        "- The config file and the .git directory are removed from generated projects.",
        "- Keep binary assets as they are; only UTF-8 text files are rewritten.",
        "",
        "Example scaffold.config.json:",
        json.dumps(
            {
                "description": f"{framework} starter",
                "tags": [framework.lower()],
                "variables": {"AUTHOR": "Your Name"},
                "postProcess": ["git init"],
                "postCreateInstructions": ["cd {{PROJECT_NAME}}", "read README.md"],
            },
            indent=2,
        ),
    ]
    return "\n".join(lines)


def create_server(manager: ScaffoldManager) -> Server:
    """Build an MCP server bound to ``manager``."""
    server = Server(SERVER_NAME, version=__version__)
    tools = ScaffoldTools(manager)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        logger.info("Tool call: %s", name)
        text = await tools.call(name, arguments)
        return [TextContent(type="text", text=text)]

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        return RESOURCES

    @server.read_resource()
    async def read_resource(uri: Any) -> str:
        return tools.read_resource(str(uri).rstrip("/"))

    @server.list_prompts()
    async def list_prompts() -> list[Prompt]:
        return PROMPTS

    @server.get_prompt()
    async def get_prompt(name: str, arguments: dict[str, str] | None) -> GetPromptResult:
        return tools.get_prompt(name, arguments)

    return server


async def run_stdio(manager: ScaffoldManager) -> None:
    """Serve MCP over stdin/stdout until the client disconnects."""
    server = create_server(manager)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """Entry point for the standalone MCP server."""
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_stdio(ScaffoldManager(settings)))


if __name__ == "__main__":
    main()
