from __future__ import annotations

import os
import re

import pytest

from support_tool.core.accounts.creator import AccountCreator, generate_account_id
from support_tool.core.accounts.host import HostInfo
from support_tool.core.accounts.keys import SshKeyGenerator, install_authorized_key
from support_tool.core.errors import PersistError, ProvisionError
from tests.helpers.fakes import FakeClock
from tests.helpers.log_assertions import read_jsonl


def _no_chown(*_a, **_k):
    return None


def _creator(registry, accounts, grants, host, audit, **kw):
    def install(home_dir, public_key, *, uid, gid):  # noqa: ANN001
        return install_authorized_key(home_dir, public_key, uid=uid, gid=gid, chown=_no_chown)

    return AccountCreator(
        registry=registry,
        accounts=accounts,
        grants=grants,
        keygen=SshKeyGenerator(runner=host.runner),
        prefix="support",
        clock=FakeClock(1_700_000_000).time,
        host=lambda: HostInfo(hostname="box.example", server_ip="10.0.0.5"),
        install_key=install,
        audit=audit,
        **kw,
    )


def test_generate_account_id_shape():
    account_id = generate_account_id("support", 1700000000)
    assert re.fullmatch(r"support_1700000000_[a-z0-9]{6}", account_id)
    assert generate_account_id("support", 5, choice=lambda _s: "x") == "support_5_xxxxxx"


def test_create_provisions_and_registers_pending(registry, accounts, grants, host, audit):
    acct = _creator(registry, accounts, grants, host, audit).create(requested_by="admin")

    assert acct.account_id.startswith("support_1700000000_")
    assert acct.hostname == "box.example"
    assert acct.server_ip == "10.0.0.5"
    assert "PRIVATE KEY" in acct.private_key
    assert accounts.exists(acct.account_id)
    assert grants.exists(acct.account_id)

    [rec] = registry.load()
    assert rec.id == acct.account_id
    assert rec.state == "pending_login"
    assert (rec.created_at, rec.first_login_at, rec.last_active_at) == (1_700_000_000, 0, 0)

    authorized = os.path.join(accounts.home_dir(acct.account_id), ".ssh", "authorized_keys")
    with open(authorized, "r", encoding="utf-8") as f:
        assert f.read() == acct.public_key + "\n"

    ev = read_jsonl(audit.path)[-1]
    assert ev["event"] == "account.created"
    assert ev["outcome"] == "ok"
    assert "PRIVATE KEY" not in str(ev)


def test_useradd_failure_creates_nothing(registry, accounts, grants, host, audit):
    host.fail["useradd"] = 9
    with pytest.raises(ProvisionError):
        _creator(registry, accounts, grants, host, audit).create()
    assert registry.read().exists is False
    assert grants.list_ids() == []
    assert "userdel" not in host.programs()


def test_grant_failure_rolls_back_account(registry, accounts, grants, host, audit):
    host.fail["visudo"] = 1
    with pytest.raises(ProvisionError) as ei:
        _creator(registry, accounts, grants, host, audit).create()
    assert ei.value.context["step"] == "grant"
    assert accounts.list_names("support_") == []
    assert grants.list_ids() == []
    assert registry.read().exists is False
    assert read_jsonl(audit.path)[-1]["outcome"] == "failed"


def test_registry_failure_rolls_back_account_and_grant(registry, accounts, grants, host, audit, monkeypatch):
    def broken(_record):
        raise PersistError(path=registry.path, error="disk full")

    monkeypatch.setattr(registry, "register", broken)
    with pytest.raises(ProvisionError) as ei:
        _creator(registry, accounts, grants, host, audit).create()
    assert ei.value.context["step"] == "register"
    assert accounts.list_names("support_") == []
    assert grants.list_ids() == []


def test_keygen_failure_rolls_back(registry, accounts, grants, host, audit):
    host.fail["ssh-keygen"] = 1
    with pytest.raises(ProvisionError) as ei:
        _creator(registry, accounts, grants, host, audit).create()
    assert ei.value.context["step"] == "ssh_key"
    assert accounts.list_names("support_") == []


def test_name_collision_is_refused(registry, accounts, grants, host, audit, monkeypatch):
    import support_tool.core.accounts.creator as creator_mod

    monkeypatch.setattr(creator_mod, "generate_account_id", lambda prefix, now: f"{prefix}_{now}_aaaaaa")
    host.add_user("support_1700000000_aaaaaa")
    with pytest.raises(ProvisionError):
        _creator(registry, accounts, grants, host, audit).create()
    assert accounts.exists("support_1700000000_aaaaaa")
    assert "useradd" not in host.programs()
