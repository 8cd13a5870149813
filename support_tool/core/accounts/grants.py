from __future__ import annotations

import os
import stat
import tempfile
from typing import List, Optional

from support_tool.core.accounts.system import CommandRunner
from support_tool.core.errors import AccountCommandError


class SudoersGrantStore:
    """
    One sudoers.d drop-in per account, named <file_prefix><account_id>.
    """

    def __init__(
        self,
        *,
        sudoers_dir: str = "/etc/sudoers.d",
        file_prefix: str = "99-support-",
        validate: bool = True,
        runner: Optional[CommandRunner] = None,
        visudo: str = "visudo",
    ):
        self.sudoers_dir = sudoers_dir
        self.file_prefix = file_prefix
        self.validate = bool(validate)
        self.runner = runner or CommandRunner()
        self.visudo = visudo

    def path_for(self, account_id: str) -> str:
        if not account_id or "/" in account_id or account_id in (".", ".."):
            raise ValueError(f"invalid account id for grant file: {account_id!r}")
        return os.path.join(self.sudoers_dir, f"{self.file_prefix}{account_id}")

    def exists(self, account_id: str) -> bool:
        return os.path.lexists(self.path_for(account_id))

    def render(self, account_id: str) -> str:
        return f"{account_id} ALL=(ALL:ALL) NOPASSWD:ALL\n"

    def grant(self, account_id: str) -> str:
        path = self.path_for(account_id)
        os.makedirs(self.sudoers_dir, mode=0o750, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".tmp-grant-", dir=self.sudoers_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.render(account_id))
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o440)
            if self.validate:
                res = self.runner([self.visudo, "-cf", tmp])
                if not res.ok:
                    raise AccountCommandError("visudo rejected the grant file.", account_id=account_id, stderr=res.stderr.strip()[:300])
            _refuse_symlink(path)
            os.replace(tmp, path)
        finally:
            try:
                if os.path.exists(tmp):
                    os.remove(tmp)
            except OSError:
                pass
        return path

    def revoke(self, account_id: str) -> bool:
        """True if a grant file was removed, False if there was none. OSError propagates."""
        path = self.path_for(account_id)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        return True

    def list_ids(self) -> List[str]:
        try:
            names = os.listdir(self.sudoers_dir)
        except FileNotFoundError:
            return []
        return sorted(n[len(self.file_prefix):] for n in names if n.startswith(self.file_prefix) and len(n) > len(self.file_prefix))


def _refuse_symlink(path: str) -> None:
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        return
    if stat.S_ISLNK(st.st_mode):
        raise AccountCommandError("Refusing to overwrite a symlinked grant file.", path=path)
