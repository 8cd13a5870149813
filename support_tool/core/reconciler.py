from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Protocol

from support_tool.core.config.models import MonitorConfig
from support_tool.core.errors import LockUnavailableError, PersistError
from support_tool.core.events import AuditLogger, emit
from support_tool.core.registry.interface import Registry
from support_tool.core.registry.models import AccountRecord, AccountState
from support_tool.core.sessions import SessionOracle
from support_tool.core.trace import new_trace_id, trace_context


class Reason:
    FIRST_LOGIN = "first_login"
    LOGIN_TIMEOUT = "pending_login_timeout"
    AWAITING_LOGIN = "awaiting_login"
    SESSION_EXPIRED = "max_session_duration"
    STILL_ACTIVE = "still_active"
    LOGOUT_DETECTED = "logout_detected"
    RELOGIN = "relogin_during_grace"
    GRACE_EXPIRED = "logout_grace_expired"
    IN_GRACE = "in_grace_period"
    UNKNOWN_STATE = "unknown_state"


class Deprovisioning(Protocol):
    def deprovision(self, account_id: str, *, trace_id: Optional[str] = None) -> Any: ...


@dataclass(frozen=True)
class Transition:
    before: AccountRecord
    after: Optional[AccountRecord]  # None: record dropped
    reason: str

    @property
    def dropped(self) -> bool:
        return self.after is None

    @property
    def deprovision(self) -> bool:
        return self.after is None

    @property
    def changed(self) -> bool:
        return self.after is None or self.after != self.before

    @property
    def state_to(self) -> str:
        return "deleted" if self.after is None else self.after.state


def evaluate(record: AccountRecord, *, logged_in: bool, now: int, cfg: MonitorConfig) -> Transition:
    """Pure transition function for a single record."""
    state = record.known_state

    if state is AccountState.PENDING_LOGIN:
        if logged_in:
            return Transition(
                record,
                record.model_copy(update={"state": AccountState.LOGGED_IN.value, "first_login_at": now, "last_active_at": now}),
                Reason.FIRST_LOGIN,
            )
        if now - record.created_at > cfg.pending_login_timeout:
            return Transition(record, None, Reason.LOGIN_TIMEOUT)
        return Transition(record, record, Reason.AWAITING_LOGIN)

    if state is AccountState.LOGGED_IN:
        if logged_in:
            if now - record.first_login_at > cfg.max_session_duration:
                return Transition(record, None, Reason.SESSION_EXPIRED)
            return Transition(record, record.model_copy(update={"last_active_at": now}), Reason.STILL_ACTIVE)
        # last_active_at becomes the logout-detection time
        return Transition(
            record,
            record.model_copy(update={"state": AccountState.PENDING_DELETE.value, "last_active_at": now}),
            Reason.LOGOUT_DETECTED,
        )

    if state is AccountState.PENDING_DELETE:
        if logged_in:
            return Transition(
                record,
                record.model_copy(update={"state": AccountState.LOGGED_IN.value, "last_active_at": now}),
                Reason.RELOGIN,
            )
        if now - record.last_active_at > cfg.logout_grace_period:
            return Transition(record, None, Reason.GRACE_EXPIRED)
        return Transition(record, record, Reason.IN_GRACE)

    return Transition(record, record, Reason.UNKNOWN_STATE)


@dataclass
class PassReport:
    trace_id: str
    now: int = 0
    registry_found: bool = False
    transitions: List[Transition] = field(default_factory=list)
    corrupt_records: int = 0
    persisted: bool = False
    persist_error: Optional[str] = None

    @property
    def deleted_ids(self) -> List[str]:
        return [t.before.id for t in self.transitions if t.dropped]

    @property
    def changed(self) -> bool:
        return any(t.changed for t in self.transitions)

    def summary(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "now": self.now,
            "registry_found": self.registry_found,
            "records": len(self.transitions),
            "changed": sum(1 for t in self.transitions if t.changed),
            "deleted": self.deleted_ids,
            "corrupt_records": self.corrupt_records,
            "persisted": self.persisted,
            "persist_error": self.persist_error,
        }


class Reconciler:
    """
    One invocation = one pass over every registry record.

    The non-blocking registry lock is held for the whole pass; the session
    snapshot is taken once and shared by every record.
    """

    def __init__(
        self,
        *,
        registry: Registry,
        oracle: SessionOracle,
        deprovisioner: Deprovisioning,
        cfg: Optional[MonitorConfig] = None,
        clock: Callable[[], float] = time.time,
        logger=None,
        audit: Optional[AuditLogger] = None,
    ):
        self.registry = registry
        self.oracle = oracle
        self.deprovisioner = deprovisioner
        self.cfg = cfg or MonitorConfig()
        self._clock = clock
        self.logger = logger
        self.audit = audit

    def run_pass(self, *, trace_id: Optional[str] = None) -> PassReport:
        """
        Raises LockUnavailableError, RegistryReadError or SessionQueryError
        before anything is mutated; every later failure is logged and absorbed.
        """
        report = PassReport(trace_id=trace_id or new_trace_id())
        with trace_context(report.trace_id):
            try:
                with self.registry.exclusive_lock(blocking=False):
                    self._run_locked(report)
            except LockUnavailableError:
                self._log("warning", "Monitor already running (registry lock held). Exiting.")
                emit(self.audit, trace_id=report.trace_id, event="monitor.lock_unavailable", outcome="skipped")
                raise
        return report

    # ---- internals ----
    def _run_locked(self, report: PassReport) -> None:
        snapshot = self.registry.read()
        report.registry_found = snapshot.exists
        report.corrupt_records = len(snapshot.corrupt)
        if not snapshot.exists:
            return

        active: FrozenSet[str] = frozenset(self.oracle.active_ids())
        now = int(self._clock())
        report.now = now

        kept: List[AccountRecord] = []
        for record in snapshot.records:
            t = evaluate(record, logged_in=record.id in active, now=now, cfg=self.cfg)
            report.transitions.append(t)
            self._record_transition(t, report.trace_id, now)
            if t.deprovision:
                self._deprovision(record.id, report.trace_id)
            if t.after is not None:
                kept.append(t.after)

        if not report.changed:
            return
        try:
            self.registry.atomically_replace(kept)
            report.persisted = True
        except PersistError as e:
            report.persist_error = str(e)
            self._log("error", "ERROR: failed to persist registry; changes will be recomputed next pass: %s", e)
            emit(self.audit, trace_id=report.trace_id, event="registry.persist_failed", outcome="failed", details=e.to_dict())

    def _deprovision(self, account_id: str, trace_id: str) -> None:
        try:
            self.deprovisioner.deprovision(account_id, trace_id=trace_id)
        except Exception as e:  # noqa: BLE001
            self._log("error", "ERROR: deprovisioning %s raised unexpectedly: %s", account_id, e)

    def _record_transition(self, t: Transition, trace_id: str, now: int) -> None:
        rec = t.before
        if t.reason == Reason.UNKNOWN_STATE:
            self._log("warning", "WARNING: unknown state %r for user %s. Keeping entry.", rec.state, rec.id)
            emit(self.audit, trace_id=trace_id, event="account.unknown_state", outcome="kept", account_id=rec.id, details={"state": rec.state})
            return
        if not t.changed or t.state_to == rec.state:
            # timestamp-only refresh
            return
        if t.dropped:
            self._log("info", "User %s (%s): %s. Deleting.", rec.id, rec.state, t.reason)
        else:
            self._log("info", "User %s: %s -> %s (%s).", rec.id, rec.state, t.state_to, t.reason)
        emit(
            self.audit,
            trace_id=trace_id,
            event="account.transition",
            outcome=t.state_to,
            account_id=rec.id,
            details={"from": rec.state, "to": t.state_to, "reason": t.reason, "now": now},
        )

    def _log(self, level: str, msg: str, *args: object) -> None:
        if self.logger is not None:
            getattr(self.logger, level)(msg, *args)
