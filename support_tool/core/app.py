from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from support_tool.core.accounts.creator import AccountCreator
from support_tool.core.accounts.deprovisioner import Deprovisioner
from support_tool.core.accounts.grants import SudoersGrantStore
from support_tool.core.accounts.keys import SshKeyGenerator
from support_tool.core.accounts.system import CommandRunner, SystemAccounts
from support_tool.core.config.models import SupportToolConfig
from support_tool.core.config.paths import ToolPaths
from support_tool.core.events import AuditLogger
from support_tool.core.reconciler import Reconciler
from support_tool.core.registry.store import FileRegistry
from support_tool.core.sessions import SessionOracle, build_session_oracle


@dataclass
class SupportTool:
    cfg: SupportToolConfig
    paths: ToolPaths
    registry: FileRegistry
    accounts: SystemAccounts
    grants: SudoersGrantStore
    deprovisioner: Deprovisioner
    audit: AuditLogger
    logger: object = None

    def reconciler(self, *, oracle: Optional[SessionOracle] = None) -> Reconciler:
        return Reconciler(
            registry=self.registry,
            oracle=oracle or build_session_oracle(self.cfg.sessions.backend),
            deprovisioner=self.deprovisioner,
            cfg=self.cfg.monitor,
            logger=self.logger,
            audit=self.audit,
        )

    def creator(self) -> AccountCreator:
        return AccountCreator(
            registry=self.registry,
            accounts=self.accounts,
            grants=self.grants,
            keygen=SshKeyGenerator(runner=self.accounts.runner),
            prefix=self.cfg.accounts.prefix,
            shell=self.cfg.accounts.shell,
            logger=self.logger,
            audit=self.audit,
        )


def build_app(cfg: SupportToolConfig, *, logger=None, runner: Optional[CommandRunner] = None) -> SupportTool:
    paths = ToolPaths.from_config(cfg)
    audit = AuditLogger(path=paths.audit_log_path)
    runner = runner or CommandRunner(timeout_seconds=cfg.accounts.command_timeout_seconds)
    accounts = SystemAccounts(runner=runner)
    grants = SudoersGrantStore(
        sudoers_dir=cfg.accounts.sudoers_dir,
        file_prefix=cfg.accounts.grant_file_prefix,
        validate=cfg.accounts.validate_grants,
        runner=runner,
    )
    registry = FileRegistry(path=paths.registry_path, lock_path=paths.lock_path, logger=logger, audit=audit)
    deprovisioner = Deprovisioner(accounts=accounts, grants=grants, account_prefix=cfg.accounts.prefix, logger=logger, audit=audit)
    return SupportTool(
        cfg=cfg,
        paths=paths,
        registry=registry,
        accounts=accounts,
        grants=grants,
        deprovisioner=deprovisioner,
        audit=audit,
        logger=logger,
    )
