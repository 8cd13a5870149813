from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from typing import Callable, FrozenSet, List, Optional

from support_tool.core.errors import ConfigError, SessionQueryError


class SessionOracle(ABC):
    """Source of truth for which accounts hold a login session right now."""

    @abstractmethod
    def active_ids(self) -> FrozenSet[str]:
        raise NotImplementedError


class PsutilSessionOracle(SessionOracle):
    """Reads utmp through psutil.users()."""

    def __init__(self, *, users: Optional[Callable[[], list]] = None):
        self._users = users

    def active_ids(self) -> FrozenSet[str]:
        users = self._users
        if users is None:
            import psutil

            users = psutil.users
        try:
            return frozenset(str(u.name) for u in users() if getattr(u, "name", None))
        except Exception as e:  # noqa: BLE001
            raise SessionQueryError(backend="psutil", error=str(e)) from e


class WhoSessionOracle(SessionOracle):
    """Parses the first column of `who`."""

    def __init__(self, *, argv: Optional[List[str]] = None, timeout_seconds: float = 10.0, run: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.argv = list(argv or ["who"])
        self.timeout_seconds = float(timeout_seconds)
        self._run = run

    def active_ids(self) -> FrozenSet[str]:
        try:
            res = self._run(self.argv, capture_output=True, text=True, check=False, timeout=self.timeout_seconds)
        except (OSError, UnicodeDecodeError, subprocess.TimeoutExpired) as e:
            raise SessionQueryError(backend="who", error=str(e)) from e
        if res.returncode != 0:
            raise SessionQueryError(backend="who", returncode=res.returncode, stderr=(res.stderr or "").strip()[:300])
        names = set()
        for line in (res.stdout or "").splitlines():
            parts = line.split()
            if parts:
                names.add(parts[0])
        return frozenset(names)


def build_session_oracle(backend: str) -> SessionOracle:
    if backend == "psutil":
        return PsutilSessionOracle()
    if backend == "who":
        return WhoSessionOracle()
    raise ConfigError("Unknown session backend.", backend=backend)
