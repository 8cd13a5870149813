"""
OS-facing account operations: create, grant, deprovision.
"""

from support_tool.core.accounts.deprovisioner import DeprovisionOutcome, Deprovisioner
from support_tool.core.accounts.grants import SudoersGrantStore
from support_tool.core.accounts.system import CommandResult, CommandRunner, SystemAccounts

__all__ = ["CommandResult", "CommandRunner", "DeprovisionOutcome", "Deprovisioner", "SudoersGrantStore", "SystemAccounts"]
