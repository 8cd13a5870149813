from __future__ import annotations

import pwd
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from support_tool.core.errors import AccountCommandError


@dataclass(frozen=True)
class CommandResult:
    argv: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """subprocess.run wrapper: never raises for a non-zero exit, raises AccountCommandError when the command cannot run."""

    def __init__(self, *, timeout_seconds: float = 60.0, run: Callable[..., Any] = subprocess.run):
        self.timeout_seconds = float(timeout_seconds)
        self._run = run

    def __call__(self, argv: Sequence[str], *, input: Optional[str] = None) -> CommandResult:
        argv = tuple(str(a) for a in argv)
        try:
            p = self._run(list(argv), input=input, capture_output=True, text=True, check=False, timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired as e:
            raise AccountCommandError("Command timed out.", argv=list(argv), timeout=self.timeout_seconds) from e
        except OSError as e:
            raise AccountCommandError("Command could not be started.", argv=list(argv), error=str(e)) from e
        return CommandResult(argv=argv, returncode=int(p.returncode), stdout=p.stdout or "", stderr=p.stderr or "")


class SystemAccounts:
    """Local OS accounts via the passwd database and shadow-utils."""

    def __init__(
        self,
        *,
        runner: Optional[CommandRunner] = None,
        getpwnam: Callable[[str], Any] = pwd.getpwnam,
        getpwall: Callable[[], List[Any]] = pwd.getpwall,
        useradd: str = "useradd",
        userdel: str = "userdel",
    ):
        self.runner = runner or CommandRunner()
        self._getpwnam = getpwnam
        self._getpwall = getpwall
        self.useradd = useradd
        self.userdel = userdel

    def exists(self, name: str) -> bool:
        try:
            self._getpwnam(name)
            return True
        except KeyError:
            return False

    def home_dir(self, name: str) -> str:
        return str(self._getpwnam(name).pw_dir)

    def uid_gid(self, name: str) -> Tuple[int, int]:
        entry = self._getpwnam(name)
        return int(entry.pw_uid), int(entry.pw_gid)

    def list_names(self, prefix: str) -> List[str]:
        return sorted(str(e.pw_name) for e in self._getpwall() if str(e.pw_name).startswith(prefix))

    def create(self, name: str, *, shell: str = "/bin/bash") -> None:
        res = self.runner([self.useradd, "-m", "-s", shell, name])
        if not res.ok:
            raise AccountCommandError("useradd failed.", account_id=name, returncode=res.returncode, stderr=res.stderr.strip()[:300])

    def delete(self, name: str) -> None:
        # -r removes the home directory, -f proceeds even if the user still has processes
        res = self.runner([self.userdel, "-r", "-f", name])
        if not res.ok:
            raise AccountCommandError("userdel failed.", account_id=name, returncode=res.returncode, stderr=res.stderr.strip()[:300])
