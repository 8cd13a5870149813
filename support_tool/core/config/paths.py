from __future__ import annotations

import os
from dataclasses import dataclass

from support_tool.core.config.models import SupportToolConfig


DEFAULT_CONFIG_PATH = "/etc/support-tool/config.json"
CONFIG_ENV_VAR = "SUPPORT_TOOL_CONFIG"


@dataclass(frozen=True)
class ToolPaths:
    state_dir: str
    registry_file: str = "active_support_users.state"
    lock_file: str = "active_support_users.lock"
    log_dir: str = "logs"

    @classmethod
    def from_config(cls, cfg: SupportToolConfig) -> "ToolPaths":
        p = cfg.paths
        return cls(state_dir=p.state_dir, registry_file=p.registry_file, lock_file=p.lock_file, log_dir=p.log_dir)

    @property
    def registry_path(self) -> str:
        return os.path.join(self.state_dir, self.registry_file)

    @property
    def lock_path(self) -> str:
        return os.path.join(self.state_dir, self.lock_file)

    @property
    def audit_log_path(self) -> str:
        return os.path.join(self.log_dir, "audit.jsonl")
