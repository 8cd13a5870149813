from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Optional

from support_tool.core.accounts.system import CommandRunner
from support_tool.core.errors import AccountCommandError


@dataclass(frozen=True)
class KeyPair:
    private_key: str
    public_key: str


class SshKeyGenerator:
    """ed25519 key pair via ssh-keygen; key material only ever touches a private temp dir."""

    def __init__(self, *, runner: Optional[CommandRunner] = None, ssh_keygen: str = "ssh-keygen"):
        self.runner = runner or CommandRunner()
        self.ssh_keygen = ssh_keygen

    def generate(self, *, comment: str) -> KeyPair:
        tmp_dir = tempfile.mkdtemp(prefix="support-key-")
        try:
            key_path = os.path.join(tmp_dir, "id_ed25519")
            res = self.runner([self.ssh_keygen, "-t", "ed25519", "-f", key_path, "-N", "", "-C", comment, "-q"])
            if not res.ok or not os.path.exists(key_path) or not os.path.exists(key_path + ".pub"):
                raise AccountCommandError("ssh-keygen failed.", account_id=comment, returncode=res.returncode, stderr=res.stderr.strip()[:300])
            with open(key_path, "r", encoding="utf-8") as f:
                private_key = f.read()
            with open(key_path + ".pub", "r", encoding="utf-8") as f:
                public_key = f.read().strip()
            return KeyPair(private_key=private_key, public_key=public_key)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)


def install_authorized_key(home_dir: str, public_key: str, *, uid: int, gid: int, chown=os.chown) -> str:
    ssh_dir = os.path.join(home_dir, ".ssh")
    os.makedirs(ssh_dir, mode=0o700, exist_ok=True)
    os.chmod(ssh_dir, 0o700)
    path = os.path.join(ssh_dir, "authorized_keys")
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(public_key.strip() + "\n")
    os.chmod(path, 0o600)
    chown(ssh_dir, uid, gid)
    chown(path, uid, gid)
    chown(home_dir, uid, gid)
    return path
