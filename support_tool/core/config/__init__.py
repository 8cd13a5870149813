from support_tool.core.config.manager import load_config, resolve_config_path, write_default_config
from support_tool.core.config.models import SupportToolConfig
from support_tool.core.config.paths import ToolPaths

__all__ = ["SupportToolConfig", "ToolPaths", "load_config", "resolve_config_path", "write_default_config"]
