from __future__ import annotations

import os
from typing import Optional

from pydantic import ValidationError

from support_tool.core.config.io import atomic_write_json, read_json_file
from support_tool.core.config.models import SupportToolConfig
from support_tool.core.config.paths import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH
from support_tool.core.errors import ConfigError


def resolve_config_path(path: Optional[str] = None) -> str:
    if path:
        return str(path)
    env = os.environ.get(CONFIG_ENV_VAR, "").strip()
    return env or DEFAULT_CONFIG_PATH


def load_config(path: Optional[str] = None) -> SupportToolConfig:
    """
    Missing file -> defaults. Corrupt JSON or schema violations raise ConfigError.
    """
    cfg_path = resolve_config_path(path)
    rr = read_json_file(cfg_path)
    if not rr.ok:
        if rr.error == "missing":
            return SupportToolConfig()
        raise ConfigError("Configuration file is unreadable.", path=cfg_path, error=rr.error)
    try:
        return SupportToolConfig.model_validate(rr.data)
    except ValidationError as e:
        raise ConfigError("Configuration file is invalid.", path=cfg_path, error=str(e)) from e


def write_default_config(path: Optional[str] = None, *, overwrite: bool = False) -> str:
    cfg_path = resolve_config_path(path)
    if os.path.exists(cfg_path) and not overwrite:
        raise ConfigError("Configuration file already exists.", path=cfg_path)
    atomic_write_json(cfg_path, SupportToolConfig().model_dump(), mode=0o600)
    return cfg_path
