"""
Account registry: durable lifecycle records for ephemeral support accounts.

One record per line, rewritten atomically, guarded by a dedicated lock file.
"""

from support_tool.core.registry.interface import Registry
from support_tool.core.registry.models import AccountRecord, AccountState, RegistrySnapshot
from support_tool.core.registry.store import FileRegistry

__all__ = ["AccountRecord", "AccountState", "FileRegistry", "Registry", "RegistrySnapshot"]
