"""
One trace id per monitor pass or account creation, shared by every log line and
audit event it produces (including corrupt-record reports from the registry).
"""

from __future__ import annotations

import contextlib
import contextvars
import uuid
from typing import Iterator, Optional

_ACTIVE: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("support_tool.trace_id", default=None)


def new_trace_id() -> str:
    return uuid.uuid4().hex


def resolve_trace_id(trace_id: Optional[str] = None) -> str:
    """Explicit id, else the enclosing pass's id, else a fresh one."""
    return str(trace_id or _ACTIVE.get() or new_trace_id())


@contextlib.contextmanager
def trace_context(trace_id: Optional[str] = None) -> Iterator[str]:
    token = _ACTIVE.set(resolve_trace_id(trace_id))
    try:
        yield _ACTIVE.get()
    finally:
        _ACTIVE.reset(token)
