"""User facing messages in English and Chinese.

A ``Translator`` is built once from the resolved language and handed to the
components that produce messages. Missing Chinese strings fall back to
English; missing keys fall back to the key itself.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"en": "English", "zh": "中文"}

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        # Registry operations
        "template.added": "Template '{name}' added",
        "template.exists": "Template '{name}' already exists. Use --force to overwrite.",
        "template.not_found": "Template '{name}' not found",
        "template.removed": "Template '{name}' removed",
        "template.updated": "Template '{name}' updated",
        "template.listed": "Found {count} templates",
        "template.info": "Template '{name}'",
        "template.valid": "Template '{name}' is valid",
        "template.missing_files": "Template '{name}' files are missing: {path}",
        "template.invalid_git_url": "Invalid Git URL: {url}",
        "update_all.empty": "No templates to update",
        "update_all.done": "Successfully updated {count} templates",
        "update_all.partial": "Some templates failed to update: {succeeded}/{total} succeeded",
        "cleanup.done": "Removed {count} invalid templates",
        "cleanup.none": "No invalid templates found",
        "config.exported": "Configuration exported",
        "config.imported": "Imported {count} templates",
        "config.invalid": "Invalid configuration document: {error}",
        "project.created": "Project '{name}' created at {path}",
        "project.exists": "Directory already exists: {path}",
        # CLI and shell
        "cli.no_templates": "No templates registered. Add one with: flexible-scaffold add <name> <source>",
        "cli.templates_title": "Templates",
        "cli.col_name": "Name",
        "cli.col_type": "Type",
        "cli.col_source": "Source",
        "cli.col_description": "Description",
        "cli.col_added": "Added",
        "cli.col_updated": "Updated",
        "cli.next_steps": "Next steps:",
        "cli.warnings": "Warnings:",
        "cli.config_dir": "Config directory",
        "cli.templates_dir": "Templates directory",
        "cli.registry_file": "Registry file",
        "cli.language": "Language",
        "cli.template_count": "Templates",
        "cli.last_updated": "Last updated",
        "cli.invalid_var": "Invalid --var value '{value}', expected KEY=VALUE",
        "cli.config_written": "Configuration written to {path}",
        "cli.config_read_error": "Cannot read {path}: {error}",
        "cli.confirm_remove": "Remove template '{name}'?",
        "cli.cancelled": "Cancelled",
        "cli.working": "Working...",
        "cli.mcp_starting": "Starting MCP server on stdio",
        "shell.title": "Flexible Scaffold",
        "shell.choose": "What would you like to do?",
        "shell.menu.list": "List templates",
        "shell.menu.add": "Add a template",
        "shell.menu.create": "Create a project",
        "shell.menu.update": "Update a template",
        "shell.menu.update_all": "Update all templates",
        "shell.menu.remove": "Remove a template",
        "shell.menu.info": "Show template details",
        "shell.menu.cleanup": "Clean up invalid templates",
        "shell.menu.config": "Show configuration",
        "shell.menu.exit": "Exit",
        "shell.ask_template_name": "Template name",
        "shell.ask_source": "Git URL or local path",
        "shell.ask_description": "Description",
        "shell.ask_project_name": "Project name",
        "shell.ask_target_dir": "Target directory",
        "shell.ask_choice": "Choice",
        "shell.ask_template": "Template",
        "shell.invalid_choice": "Please pick one of the listed options",
        "shell.value_required": "A value is required",
        "shell.goodbye": "Goodbye!",
    },
    "zh": {
        "template.added": "模板 '{name}' 已添加",
        "template.exists": "模板 '{name}' 已存在。使用 --force 覆盖。",
        "template.not_found": "未找到模板 '{name}'",
        "template.removed": "模板 '{name}' 已删除",
        "template.updated": "模板 '{name}' 已更新",
        "template.listed": "找到 {count} 个模板",
        "template.info": "模板 '{name}'",
        "template.valid": "模板 '{name}' 有效",
        "template.missing_files": "模板 '{name}' 的文件缺失: {path}",
        "template.invalid_git_url": "无效的 Git URL: {url}",
        "update_all.empty": "没有需要更新的模板",
        "update_all.done": "成功更新 {count} 个模板",
        "update_all.partial": "部分模板更新失败: {succeeded}/{total} 成功",
        "cleanup.done": "已清理 {count} 个无效模板",
        "cleanup.none": "没有发现无效模板",
        "config.exported": "配置已导出",
        "config.imported": "已导入 {count} 个模板",
        "config.invalid": "无效的配置文档: {error}",
        "project.created": "项目 '{name}' 已创建于 {path}",
        "project.exists": "目录已存在: {path}",
        "cli.no_templates": "尚未注册模板。使用 flexible-scaffold add <名称> <来源> 添加",
        "cli.templates_title": "模板列表",
        "cli.col_name": "名称",
        "cli.col_type": "类型",
        "cli.col_source": "来源",
        "cli.col_description": "描述",
        "cli.col_added": "添加时间",
        "cli.col_updated": "更新时间",
        "cli.next_steps": "后续步骤:",
        "cli.warnings": "警告:",
        "cli.config_dir": "配置目录",
        "cli.templates_dir": "模板目录",
        "cli.registry_file": "注册表文件",
        "cli.language": "语言",
        "cli.template_count": "模板数量",
        "cli.last_updated": "最后更新",
        "cli.invalid_var": "无效的 --var 值 '{value}'，应为 KEY=VALUE",
        "cli.config_written": "配置已写入 {path}",
        "cli.config_read_error": "无法读取 {path}: {error}",
        "cli.confirm_remove": "确定删除模板 '{name}' 吗？",
        "cli.cancelled": "已取消",
        "cli.working": "处理中...",
        "cli.mcp_starting": "正在通过 stdio 启动 MCP 服务器",
        "shell.title": "Flexible Scaffold 脚手架",
        "shell.choose": "请选择操作",
        "shell.menu.list": "查看模板",
        "shell.menu.add": "添加模板",
        "shell.menu.create": "创建项目",
        "shell.menu.update": "更新单个模板",
        "shell.menu.update_all": "更新全部模板",
        "shell.menu.remove": "删除模板",
        "shell.menu.info": "模板详情",
        "shell.menu.cleanup": "清理无效模板",
        "shell.menu.config": "查看配置",
        "shell.menu.exit": "退出",
        "shell.ask_template_name": "模板名称",
        "shell.ask_source": "Git URL 或本地路径",
        "shell.ask_description": "描述",
        "shell.ask_project_name": "项目名称",
        "shell.ask_target_dir": "目标目录",
        "shell.ask_choice": "选项",
        "shell.ask_template": "模板",
        "shell.invalid_choice": "请选择列表中的选项",
        "shell.value_required": "此项不能为空",
        "shell.goodbye": "再见！",
    },
}


class Translator:
    """Looks up messages for one language."""

    fallback = "en"

    def __init__(self, language: str = "en"):
        if language not in MESSAGES:
            logger.debug("Unsupported language %r, using English", language)
            language = self.fallback
        self.language = language

    @property
    def display_name(self) -> str:
        return LANGUAGE_NAMES[self.language]

    def t(self, key: str, **params: Any) -> str:
        """Translate ``key`` and fill ``{param}`` fields."""
        text = MESSAGES[self.language].get(key) or MESSAGES[self.fallback].get(key)
        if text is None:
            return key
        try:
            return text.format(**params)
        except (KeyError, IndexError):
            return text

    __call__ = t
