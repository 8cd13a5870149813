from __future__ import annotations

import logging

import pytest

from support_tool.core.accounts.deprovisioner import Deprovisioner
from support_tool.core.accounts.grants import SudoersGrantStore
from support_tool.core.accounts.system import SystemAccounts
from support_tool.core.events import AuditLogger
from support_tool.core.registry.store import FileRegistry
from tests.helpers.fakes import FakeHost


@pytest.fixture(autouse=True)
def _reset_support_logger():
    yield
    logger = logging.getLogger("support_tool")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = True


@pytest.fixture
def audit(tmp_path):
    return AuditLogger(path=str(tmp_path / "logs" / "audit.jsonl"))


@pytest.fixture
def registry(tmp_path, audit):
    """
    Registry under tmp_path/state with its lock file beside it.
    """
    state = tmp_path / "state"
    return FileRegistry(path=str(state / "active.state"), lock_path=str(state / "active.lock"), audit=audit)


@pytest.fixture
def host(tmp_path):
    return FakeHost(str(tmp_path / "home"))


@pytest.fixture
def accounts(host):
    return SystemAccounts(runner=host.runner, getpwnam=host.getpwnam, getpwall=host.getpwall)


@pytest.fixture
def grants(tmp_path, host):
    return SudoersGrantStore(sudoers_dir=str(tmp_path / "sudoers.d"), file_prefix="99-support-", runner=host.runner)


@pytest.fixture
def deprovisioner(accounts, grants, audit):
    return Deprovisioner(accounts=accounts, grants=grants, account_prefix="support", audit=audit)
