from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


REDACT_KEYS = {
    "password",
    "secret",
    "token",
    "private_key",
    "webhook_url",
    "authorization",
}


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if str(k).lower() in REDACT_KEYS:
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


def redact(obj: Any) -> Any:
    return _redact(obj)


@dataclass(frozen=True)
class AuditLogger:
    """
    Append-only audit trail (JSONL): one line per transition, deletion attempt,
    corrupt record and account creation.
    """

    path: str = os.path.join("logs", "audit.jsonl")
    _lock: threading.Lock = threading.Lock()

    def log(
        self,
        *,
        trace_id: str,
        event: str,
        outcome: str,
        account_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "trace_id": trace_id,
            "event": event,
            "account_id": account_id,
            "outcome": outcome,
            "details": redact(details or {}),
        }
        line = json.dumps(payload, ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
                try:
                    f.flush()
                    os.fsync(f.fileno())
                except OSError:
                    pass


def emit(audit: Optional[AuditLogger], **kwargs: Any) -> None:
    """Best-effort audit write; a broken audit file never stops a pass."""
    if audit is None:
        return
    try:
        audit.log(**kwargs)
    except Exception:  # noqa: BLE001
        pass
