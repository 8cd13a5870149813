from __future__ import annotations

import json
import os
import stat

import pytest

from support_tool.core.errors import DuplicateAccountError, LockUnavailableError, PersistError, RegistryReadError
from support_tool.core.registry.codec import parse_line
from support_tool.core.registry.models import AccountRecord
import support_tool.core.registry.store as store_mod
from support_tool.core.registry.store import TMP_PREFIX, FileRegistry
from tests.helpers.fakes import RecordingLogger
from tests.helpers.log_assertions import read_jsonl


def _write(registry: FileRegistry, text: str) -> None:
    os.makedirs(os.path.dirname(registry.path), exist_ok=True)
    with open(registry.path, "w", encoding="utf-8") as f:
        f.write(text)


def test_missing_registry_reads_as_absent(registry):
    snap = registry.read()
    assert snap.exists is False
    assert snap.records == []
    assert registry.load() == []


def test_lock_file_must_differ_from_registry(tmp_path):
    p = str(tmp_path / "same")
    with pytest.raises(ValueError):
        FileRegistry(path=p, lock_path=p)


def test_corrupt_lines_are_skipped_and_audited(tmp_path, audit):
    logger = RecordingLogger()
    reg = FileRegistry(path=str(tmp_path / "s" / "r.state"), lock_path=str(tmp_path / "s" / "r.lock"), logger=logger, audit=audit)
    _write(
        reg,
        "support_1_a:pending_login:1:0:0\n"
        "this is not a record\n"
        "\n"
        "support_2_b:logged_in:2:3:4\n",
    )
    snap = reg.read()
    assert snap.exists is True
    assert snap.ids == ["support_1_a", "support_2_b"]
    assert len(snap.corrupt) == 1
    assert snap.corrupt[0].context["line_no"] == 2
    assert any("corrupt registry line 2" in m for m in logger.messages("warning"))

    events = read_jsonl(audit.path)
    assert [e["event"] for e in events] == ["registry.corrupt_record"]
    assert events[0]["details"]["line"] == "this is not a record"


def test_duplicate_ids_keep_the_first_record(registry):
    _write(registry, "support_1_a:pending_login:1:0:0\nsupport_1_a:logged_in:1:5:5\n")
    snap = registry.read()
    assert len(snap.records) == 1
    assert snap.records[0].state == "pending_login"
    assert snap.corrupt[0].context["account_id"] == "support_1_a"


def test_invalid_utf8_line_is_skipped_as_corrupt(registry, audit):
    os.makedirs(os.path.dirname(registry.path), exist_ok=True)
    with open(registry.path, "wb") as f:
        f.write(b"support_1_a:pending_login:1:0:0\nsupport_\xff_zz:pending_login:1:0:0\r\nsupport_2_b:logged_in:2:3:4\n")
    snap = registry.read()
    assert snap.ids == ["support_1_a", "support_2_b"]
    assert len(snap.corrupt) == 1
    assert snap.corrupt[0].context["line_no"] == 2
    assert snap.corrupt[0].user_message == "Line is not valid UTF-8."
    assert "�" in snap.corrupt[0].context["line"]
    assert [e["event"] for e in read_jsonl(audit.path)] == ["registry.corrupt_record"]


def test_unreadable_registry_raises(registry, monkeypatch):
    os.makedirs(os.path.dirname(registry.path), exist_ok=True)
    with open(registry.path, "w", encoding="utf-8") as f:
        f.write("support_1_a:pending_login:1:0:0\n")

    def deny(*_a, **_k):
        raise PermissionError("denied")

    monkeypatch.setattr(store_mod, "open", deny, raising=False)
    with pytest.raises(RegistryReadError):
        registry.read()


def test_atomically_replace_writes_in_order_with_private_mode(registry):
    recs = [
        AccountRecord(id="support_2_b", state="logged_in", created_at=2, first_login_at=3, last_active_at=4),
        AccountRecord.pending("support_1_a", created_at=1),
    ]
    registry.atomically_replace(recs)
    with open(registry.path, "r", encoding="utf-8") as f:
        assert f.read() == "support_2_b:logged_in:2:3:4\nsupport_1_a:pending_login:1:0:0\n"
    assert stat.S_IMODE(os.stat(registry.path).st_mode) == 0o600
    assert not [n for n in os.listdir(registry.directory) if n.startswith(TMP_PREFIX)]


def test_atomically_replace_with_empty_list_truncates(registry):
    _write(registry, "support_1_a:pending_login:1:0:0\n")
    registry.atomically_replace([])
    assert registry.read().exists is True
    assert registry.load() == []


def test_failed_rename_leaves_previous_contents(registry, monkeypatch):
    original = "support_1_a:pending_login:1:0:0\n"
    _write(registry, original)

    def boom(src, dst):  # noqa: ANN001
        raise OSError("disk on fire")

    monkeypatch.setattr(os, "replace", boom)
    with pytest.raises(PersistError):
        registry.atomically_replace([])
    monkeypatch.undo()

    with open(registry.path, "r", encoding="utf-8") as f:
        assert f.read() == original
    assert not [n for n in os.listdir(registry.directory) if n.startswith(TMP_PREFIX)]


def test_stray_temp_file_is_never_read(registry):
    _write(registry, "support_1_a:pending_login:1:0:0\n")
    with open(os.path.join(registry.directory, TMP_PREFIX + "abc"), "w", encoding="utf-8") as f:
        f.write("support_9_z:pending_login:9:0:0\n")
    assert registry.read().ids == ["support_1_a"]


def test_non_blocking_lock_fails_while_held(registry):
    with registry.exclusive_lock(blocking=True):
        with pytest.raises(LockUnavailableError):
            with registry.exclusive_lock(blocking=False):
                pass
    with registry.exclusive_lock(blocking=False):
        pass


def test_lock_file_is_separate_and_survives(registry):
    with registry.exclusive_lock():
        pass
    assert os.path.exists(registry.lock_path)
    assert not os.path.exists(registry.path)


def test_register_appends_and_rejects_duplicates(registry):
    registry.register(AccountRecord.pending("support_1_a", created_at=1))
    registry.register(AccountRecord.pending("support_2_b", created_at=2))
    assert registry.read().ids == ["support_1_a", "support_2_b"]
    with pytest.raises(DuplicateAccountError):
        registry.register(AccountRecord.pending("support_1_a", created_at=3))
    assert len(registry.load()) == 2


def test_append_produces_parseable_lines(registry):
    with registry.exclusive_lock():
        registry.append(AccountRecord.pending("support_7_q", created_at=7))
    with open(registry.path, "r", encoding="utf-8") as f:
        lines = f.readlines()
    assert parse_line(lines[0]).id == "support_7_q"


def test_audit_lines_are_json(registry, audit):
    _write(registry, "nope\n")
    registry.read()
    with open(audit.path, "r", encoding="utf-8") as f:
        obj = json.loads(f.readline())
    assert obj["outcome"] == "skipped"
    assert obj["trace_id"]
