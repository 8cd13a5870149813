from __future__ import annotations

import os
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


WEBHOOK_URL_PREFIX = "https://discord.com/api/webhooks/"
_PREFIX_RE = re.compile(r"^[a-z][a-z0-9]{0,15}$")


class MonitorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    pending_login_timeout: int = Field(default=3600, ge=0)
    max_session_duration: int = Field(default=28800, ge=0)
    logout_grace_period: int = Field(default=120, ge=0)


class AccountsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    prefix: str = "support"
    shell: str = "/bin/bash"
    sudoers_dir: str = "/etc/sudoers.d"
    grant_file_prefix: str = "99-support-"
    validate_grants: bool = True
    command_timeout_seconds: int = Field(default=60, ge=1, le=3600)

    @field_validator("prefix")
    @classmethod
    def _prefix_is_username_safe(cls, v: str) -> str:
        if not _PREFIX_RE.match(v):
            raise ValueError("prefix must be lowercase letters/digits, start with a letter, max 16 chars")
        return v

    @field_validator("grant_file_prefix")
    @classmethod
    def _grant_prefix_has_no_dot(cls, v: str) -> str:
        # sudo skips files in sudoers.d whose name contains a dot
        if not v or "." in v or "/" in v:
            raise ValueError("grant_file_prefix must be non-empty and contain no '.' or '/'")
        return v


class PathsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    state_dir: str = "/var/lib/support-tool"
    registry_file: str = "active_support_users.state"
    lock_file: str = "active_support_users.lock"
    log_dir: str = "/var/log/support-tool"

    @model_validator(mode="after")
    def _lock_is_not_the_registry(self) -> "PathsConfig":
        if os.path.normpath(self.registry_file) == os.path.normpath(self.lock_file):
            raise ValueError("lock_file must differ from registry_file")
        return self


class SessionsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    backend: Literal["psutil", "who"] = "psutil"


class NotifyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    webhook_url: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    bot_name: str = "Support Bot"

    @field_validator("webhook_url")
    @classmethod
    def _webhook_url_shape(cls, v: str) -> str:
        v = (v or "").strip()
        if v and not v.startswith(WEBHOOK_URL_PREFIX):
            raise ValueError(f"webhook_url must start with {WEBHOOK_URL_PREFIX}")
        return v


class SupportToolConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    config_version: int = Field(default=1, ge=1)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    accounts: AccountsConfig = Field(default_factory=AccountsConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    sessions: SessionsConfig = Field(default_factory=SessionsConfig)
    notify: NotifyConfig = Field(default_factory=NotifyConfig)
