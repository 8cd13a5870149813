from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from support_tool.core.accounts.deprovisioner import Deprovisioner
from support_tool.core.accounts.grants import SudoersGrantStore
from support_tool.core.accounts.system import SystemAccounts
from support_tool.core.registry.interface import Registry
from support_tool.core.trace import resolve_trace_id


DEFAULT_MIN_AGE_SECONDS = 300


@dataclass
class OrphanReport:
    registered: List[str] = field(default_factory=list)
    orphan_accounts: List[str] = field(default_factory=list)
    orphan_grants: List[str] = field(default_factory=list)
    too_new: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.orphan_accounts and not self.orphan_grants

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registered": list(self.registered),
            "orphan_accounts": list(self.orphan_accounts),
            "orphan_grants": list(self.orphan_grants),
            "too_new": list(self.too_new),
            "removed": list(self.removed),
        }


def id_timestamp(account_id: str, prefix: str) -> Optional[int]:
    """<prefix>_<unix>_<suffix> -> unix, or None for names not minted by the creator."""
    head = f"{prefix}_"
    if not account_id.startswith(head):
        return None
    parts = account_id[len(head):].split("_")
    if len(parts) != 2 or not parts[0].isdigit():
        return None
    return int(parts[0])


def find_orphans(
    *,
    registry: Registry,
    accounts: SystemAccounts,
    grants: SudoersGrantStore,
    prefix: str,
    deprovisioner: Optional[Deprovisioner] = None,
    remove: bool = False,
    min_age_seconds: int = DEFAULT_MIN_AGE_SECONDS,
    clock: Callable[[], float] = time.time,
    trace_id: Optional[str] = None,
) -> OrphanReport:
    """
    Prefixed OS accounts and grant files without a registry record.

    The creator only takes the registry lock for its final append, so names
    minted less than min_age_seconds ago are reported as too_new, never as orphans.
    """
    trace_id = resolve_trace_id(trace_id)
    now = int(clock())
    with registry.exclusive_lock(blocking=True):
        registered = set(registry.read().ids)
        report = OrphanReport(registered=sorted(registered))
        candidates = sorted(set(accounts.list_names(f"{prefix}_")) | set(grants.list_ids()))
        for account_id in candidates:
            if account_id in registered:
                continue
            ts = id_timestamp(account_id, prefix)
            if ts is not None and now - ts < min_age_seconds:
                report.too_new.append(account_id)
                continue
            if accounts.exists(account_id):
                report.orphan_accounts.append(account_id)
            if grants.exists(account_id):
                report.orphan_grants.append(account_id)
        if remove and deprovisioner is not None:
            for account_id in sorted(set(report.orphan_accounts) | set(report.orphan_grants)):
                deprovisioner.deprovision(account_id, trace_id=trace_id)
                report.removed.append(account_id)
    return report
