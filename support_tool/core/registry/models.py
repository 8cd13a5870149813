from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from support_tool.core.errors import CorruptRecordError


class AccountState(str, Enum):
    PENDING_LOGIN = "pending_login"
    LOGGED_IN = "logged_in"
    PENDING_DELETE = "pending_delete"


def _field_token(v: str, name: str) -> str:
    if not v:
        raise ValueError(f"{name} must not be empty")
    if ":" in v or any(ch.isspace() for ch in v):
        raise ValueError(f"{name} must not contain ':' or whitespace")
    return v


class AccountRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    state: str  # AccountState value, or an unrecognised token kept verbatim
    created_at: int = Field(ge=0)
    first_login_at: int = Field(default=0, ge=0)
    last_active_at: int = Field(default=0, ge=0)

    @field_validator("id")
    @classmethod
    def _id_token(cls, v: str) -> str:
        return _field_token(v, "id")

    @field_validator("state", mode="before")
    @classmethod
    def _state_token(cls, v: object) -> str:
        if isinstance(v, AccountState):
            return v.value
        return _field_token(str(v), "state")

    @property
    def known_state(self) -> Optional[AccountState]:
        try:
            return AccountState(self.state)
        except ValueError:
            return None

    @classmethod
    def pending(cls, account_id: str, *, created_at: int) -> "AccountRecord":
        return cls(id=account_id, state=AccountState.PENDING_LOGIN.value, created_at=int(created_at))


@dataclass
class RegistrySnapshot:
    exists: bool = False
    records: List[AccountRecord] = field(default_factory=list)
    corrupt: List[CorruptRecordError] = field(default_factory=list)

    @property
    def ids(self) -> List[str]:
        return [r.id for r in self.records]
