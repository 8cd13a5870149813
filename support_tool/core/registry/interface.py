from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ContextManager, List, Sequence

from support_tool.core.errors import DuplicateAccountError
from support_tool.core.registry.models import AccountRecord, RegistrySnapshot


class Registry(ABC):
    """
    Durable store of lifecycle records. The Reconciler only talks to this
    interface, so a flat file can be swapped for another backend.
    """

    @abstractmethod
    def read(self) -> RegistrySnapshot:
        raise NotImplementedError

    def load(self) -> List[AccountRecord]:
        return list(self.read().records)

    @abstractmethod
    def atomically_replace(self, records: Sequence[AccountRecord]) -> None:
        raise NotImplementedError

    @abstractmethod
    def append(self, record: AccountRecord) -> None:
        """Caller must hold exclusive_lock()."""
        raise NotImplementedError

    @abstractmethod
    def exclusive_lock(self, *, blocking: bool = True) -> ContextManager[None]:
        raise NotImplementedError

    def register(self, record: AccountRecord) -> None:
        """Creator path: blocking lock, duplicate check, append."""
        with self.exclusive_lock(blocking=True):
            if record.id in self.read().ids:
                raise DuplicateAccountError(account_id=record.id)
            self.append(record)
