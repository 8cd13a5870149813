from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterable, List


def read_jsonl(path: str) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    if not os.path.exists(path):
        return out
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            out.append(json.loads(line))
    return out


def events_named(path: str, event: str) -> List[Dict[str, Any]]:
    return [e for e in read_jsonl(path) if e.get("event") == event]


def assert_no_secret_leak(objs: Iterable[Dict[str, Any]], secret: str) -> None:
    blob = json.dumps(list(objs), ensure_ascii=False)
    assert secret not in blob
    assert "***REDACTED***" in blob
