from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from support_tool.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class SupportToolError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Setup ----
class ConfigError(SupportToolError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


# ---- Registry ----
class CorruptRecordError(SupportToolError):
    def __init__(self, user_message: str = "Registry line could not be parsed.", **ctx: Any):
        super().__init__("corrupt_record", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


class LockUnavailableError(SupportToolError):
    def __init__(self, user_message: str = "Registry lock is held by another process.", **ctx: Any):
        super().__init__("lock_unavailable", user_message, severity=Severity.INFO, recoverable=True, context=ctx)


class PersistError(SupportToolError):
    def __init__(self, user_message: str = "Registry could not be written.", **ctx: Any):
        super().__init__("persist_failed", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class RegistryReadError(SupportToolError):
    def __init__(self, user_message: str = "Registry could not be read.", **ctx: Any):
        super().__init__("registry_read_failed", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class DuplicateAccountError(SupportToolError):
    def __init__(self, user_message: str = "Account is already registered.", **ctx: Any):
        super().__init__("duplicate_account", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


# ---- Sessions ----
class SessionQueryError(SupportToolError):
    def __init__(self, user_message: str = "Could not determine logged-in users.", **ctx: Any):
        super().__init__("session_query_failed", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


# ---- Accounts ----
class AccountCommandError(SupportToolError):
    def __init__(self, user_message: str = "Account command failed.", **ctx: Any):
        super().__init__("account_command_failed", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class DeprovisionError(SupportToolError):
    GRANT_REMOVAL_FAILED = "grant_removal_failed"
    ACCOUNT_DELETION_FAILED = "account_deletion_failed"

    def __init__(self, kind: str, user_message: str = "Deprovisioning step failed.", **ctx: Any):
        super().__init__(str(kind), user_message, severity=Severity.ERROR, recoverable=True, context=ctx)

    @property
    def kind(self) -> str:
        return self.code


class ProvisionError(SupportToolError):
    def __init__(self, user_message: str = "Support account could not be created.", **ctx: Any):
        super().__init__("provision_failed", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


class NotificationError(SupportToolError):
    def __init__(self, user_message: str = "Notification could not be delivered.", **ctx: Any):
        super().__init__("notification_failed", user_message, severity=Severity.WARN, recoverable=True, context=ctx)
