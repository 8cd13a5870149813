from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from support_tool.core.accounts.grants import SudoersGrantStore
from support_tool.core.accounts.host import HostInfo, detect_host
from support_tool.core.accounts.keys import SshKeyGenerator, install_authorized_key
from support_tool.core.accounts.system import SystemAccounts
from support_tool.core.errors import ProvisionError, SupportToolError
from support_tool.core.events import AuditLogger, emit
from support_tool.core.registry.interface import Registry
from support_tool.core.registry.models import AccountRecord
from support_tool.core.trace import resolve_trace_id


SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SUFFIX_LENGTH = 6


def generate_account_id(prefix: str, now: int, *, choice: Callable[[str], str] = secrets.choice) -> str:
    suffix = "".join(choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}_{int(now)}_{suffix}"


@dataclass(frozen=True)
class ProvisionedAccount:
    account_id: str
    private_key: str
    public_key: str
    hostname: str
    server_ip: str
    created_at: int


class AccountCreator:
    """
    Creates a support account end to end and registers it as pending_login.
    Any failure after useradd rolls back: grant revoked, account deleted.
    """

    def __init__(
        self,
        *,
        registry: Registry,
        accounts: SystemAccounts,
        grants: SudoersGrantStore,
        keygen: SshKeyGenerator,
        prefix: str = "support",
        shell: str = "/bin/bash",
        clock: Callable[[], float] = time.time,
        host: Callable[[], HostInfo] = detect_host,
        install_key: Callable[..., Any] = install_authorized_key,
        logger=None,
        audit: Optional[AuditLogger] = None,
    ):
        self.registry = registry
        self.accounts = accounts
        self.grants = grants
        self.keygen = keygen
        self.prefix = prefix
        self.shell = shell
        self._clock = clock
        self._host = host
        self._install_key = install_key
        self.logger = logger
        self.audit = audit

    def create(self, *, requested_by: str = "root", trace_id: Optional[str] = None) -> ProvisionedAccount:
        trace_id = resolve_trace_id(trace_id)
        now = int(self._clock())
        account_id = generate_account_id(self.prefix, now)

        if self.accounts.exists(account_id):
            raise ProvisionError("Generated account name already exists.", account_id=account_id)

        try:
            self.accounts.create(account_id, shell=self.shell)
        except SupportToolError as e:
            self._audit_failure(trace_id, account_id, "useradd", e)
            raise ProvisionError("Failed to create the OS account.", account_id=account_id, error=str(e)) from e

        step = "ssh_key"
        try:
            keys = self.keygen.generate(comment=account_id)
            uid, gid = self.accounts.uid_gid(account_id)
            self._install_key(self.accounts.home_dir(account_id), keys.public_key, uid=uid, gid=gid)
            step = "grant"
            self.grants.grant(account_id)
            step = "register"
            self.registry.register(AccountRecord.pending(account_id, created_at=now))
        except Exception as e:  # noqa: BLE001
            self._rollback(account_id)
            self._audit_failure(trace_id, account_id, step, e)
            raise ProvisionError(f"Account setup failed at step '{step}'; account removed.", account_id=account_id, step=step, error=str(e)) from e

        host = self._host()
        if self.logger is not None:
            self.logger.info("Created support user %s (requested by %s); registered for monitoring.", account_id, requested_by)
        emit(
            self.audit,
            trace_id=trace_id,
            event="account.created",
            outcome="ok",
            account_id=account_id,
            details={"requested_by": requested_by, "hostname": host.hostname},
        )
        return ProvisionedAccount(
            account_id=account_id,
            private_key=keys.private_key,
            public_key=keys.public_key,
            hostname=host.hostname,
            server_ip=host.server_ip,
            created_at=now,
        )

    # ---- internals ----
    def _rollback(self, account_id: str) -> None:
        try:
            self.grants.revoke(account_id)
        except Exception as e:  # noqa: BLE001
            if self.logger is not None:
                self.logger.error("Rollback: failed to remove grant for %s: %s", account_id, e)
        try:
            if self.accounts.exists(account_id):
                self.accounts.delete(account_id)
        except Exception as e:  # noqa: BLE001
            if self.logger is not None:
                self.logger.error("Rollback: failed to delete user %s: %s; manual cleanup required.", account_id, e)

    def _audit_failure(self, trace_id: str, account_id: str, step: str, err: Exception) -> None:
        if self.logger is not None:
            self.logger.error("Creating %s failed at %s: %s", account_id, step, err)
        emit(self.audit, trace_id=trace_id, event="account.created", outcome="failed", account_id=account_id, details={"step": step, "error": str(err)})
