from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from support_tool.core.accounts.grants import SudoersGrantStore
from support_tool.core.accounts.system import SystemAccounts
from support_tool.core.errors import DeprovisionError
from support_tool.core.events import AuditLogger, emit
from support_tool.core.trace import resolve_trace_id


class GrantOutcome:
    REMOVED = "removed"
    ABSENT = "absent"
    FAILED = "failed"


class AccountOutcome:
    DELETED = "deleted"
    ABSENT = "absent"
    FAILED = "failed"
    REFUSED = "refused"


@dataclass
class DeprovisionOutcome:
    account_id: str
    grant: str = GrantOutcome.ABSENT
    account: str = AccountOutcome.ABSENT
    errors: List[DeprovisionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Deprovisioner:
    """
    Revoke the sudo grant, then delete the OS account and home directory.
    Both steps always run; failures are logged and returned, never raised.
    """

    def __init__(
        self,
        *,
        accounts: SystemAccounts,
        grants: SudoersGrantStore,
        account_prefix: str = "support",
        logger=None,
        audit: Optional[AuditLogger] = None,
    ):
        self.accounts = accounts
        self.grants = grants
        self.account_prefix = account_prefix
        self.logger = logger
        self.audit = audit

    def deprovision(self, account_id: str, *, trace_id: Optional[str] = None) -> DeprovisionOutcome:
        trace_id = resolve_trace_id(trace_id)
        out = DeprovisionOutcome(account_id=account_id)
        self._info("Deprovisioning %s.", account_id)
        self._revoke_grant(out)
        self._delete_account(out)
        emit(
            self.audit,
            trace_id=trace_id,
            event="account.deprovision",
            outcome="ok" if out.ok else "failed",
            account_id=account_id,
            details={"grant": out.grant, "account": out.account, "errors": [e.to_dict() for e in out.errors]},
        )
        return out

    # ---- steps ----
    def _revoke_grant(self, out: DeprovisionOutcome) -> None:
        account_id = out.account_id
        try:
            removed = self.grants.revoke(account_id)
        except Exception as e:  # noqa: BLE001
            out.grant = GrantOutcome.FAILED
            out.errors.append(DeprovisionError(DeprovisionError.GRANT_REMOVAL_FAILED, "Grant file could not be removed.", account_id=account_id, error=str(e)))
            self._error("ERROR: failed to remove grant file for %s: %s", account_id, e)
            return
        if removed:
            out.grant = GrantOutcome.REMOVED
            self._info("Removed grant file for %s.", account_id)
        else:
            out.grant = GrantOutcome.ABSENT
            self._info("No grant file for %s.", account_id)

    def _delete_account(self, out: DeprovisionOutcome) -> None:
        account_id = out.account_id
        if not account_id.startswith(f"{self.account_prefix}_"):
            out.account = AccountOutcome.REFUSED
            out.errors.append(
                DeprovisionError(
                    DeprovisionError.ACCOUNT_DELETION_FAILED,
                    "Account id lacks the support prefix; not deleting.",
                    account_id=account_id,
                    prefix=self.account_prefix,
                )
            )
            self._error("ERROR: refusing to delete %s: missing prefix %r.", account_id, self.account_prefix)
            return
        try:
            if not self.accounts.exists(account_id):
                out.account = AccountOutcome.ABSENT
                self._info("User %s not found (already deleted or never fully created).", account_id)
                return
            self.accounts.delete(account_id)
        except Exception as e:  # noqa: BLE001
            out.account = AccountOutcome.FAILED
            out.errors.append(DeprovisionError(DeprovisionError.ACCOUNT_DELETION_FAILED, "Account could not be deleted.", account_id=account_id, error=str(e)))
            self._error("ERROR: failed to delete user %s: %s", account_id, e)
            return
        out.account = AccountOutcome.DELETED
        self._info("Deleted user %s and home directory.", account_id)

    def _info(self, msg: str, *args: object) -> None:
        if self.logger is not None:
            self.logger.info(msg, *args)

    def _error(self, msg: str, *args: object) -> None:
        if self.logger is not None:
            self.logger.error(msg, *args)
