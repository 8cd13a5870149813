"""
Command-line entry points.

support          create a temporary support account (interactive)
support-monitor  one reconciliation pass; meant for cron, once a minute
support-audit    list (or remove) prefixed accounts/grants with no registry record
support-config   print or initialise the configuration file
"""

from __future__ import annotations

import argparse
import getpass
import json
import os
import sys
from typing import Callable, List, Optional

from support_tool.core.app import SupportTool, build_app
from support_tool.core.audit_sweep import DEFAULT_MIN_AGE_SECONDS, find_orphans
from support_tool.core.config.manager import load_config, write_default_config
from support_tool.core.config.models import WEBHOOK_URL_PREFIX, SupportToolConfig
from support_tool.core.config.paths import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH
from support_tool.core.errors import (
    ConfigError,
    LockUnavailableError,
    ProvisionError,
    RegistryReadError,
    SessionQueryError,
)
from support_tool.core.logger import setup_logging
from support_tool.core.notify import notifier_for_url


EXIT_OK = 0
EXIT_NOT_RUN = 1
EXIT_ORPHANS = 3


def _is_root() -> bool:
    return os.geteuid() == 0


def _bootstrap(config_path: Optional[str], *, console: bool, log_file: str) -> SupportTool:
    cfg = load_config(config_path)
    logger = setup_logging(cfg.paths.log_dir, console=console, filename=log_file)
    return build_app(cfg, logger=logger)


# ---- support-monitor ----
def monitor_main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="support-monitor", description="Reconcile temporary support accounts (run from cron).")
    ap.add_argument("--config", default=None, help=f"config file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})")
    args = ap.parse_args(argv)

    try:
        tool = _bootstrap(args.config, console=False, log_file="monitor.log")
    except (ConfigError, OSError) as e:
        print(f"CRITICAL: cannot initialise support-monitor: {e}", file=sys.stderr)
        return EXIT_NOT_RUN

    try:
        report = tool.reconciler().run_pass()
    except LockUnavailableError:
        return EXIT_NOT_RUN
    except (RegistryReadError, SessionQueryError) as e:
        tool.logger.error("ERROR: pass aborted before any change: %s", e)
        return EXIT_NOT_RUN
    if report.changed:
        tool.logger.info("Pass %s: %s", report.trace_id, json.dumps(report.summary(), sort_keys=True))
    return EXIT_OK


# ---- support (create) ----
def prompt_webhook_url(input_fn: Callable[[str], str] = input, out: Callable[[str], None] = print) -> str:
    out("The support team should provide you with a one-time webhook URL.")
    while True:
        url = input_fn("Enter the webhook URL (or press Enter to skip notification): ").strip()
        if not url:
            out("Skipping notification.")
            return ""
        if url.startswith(WEBHOOK_URL_PREFIX):
            return url
        out(f"Invalid webhook URL. It should start with '{WEBHOOK_URL_PREFIX}'.")
        out("Please try again or press Enter to skip.")


def render_account_details(account, *, out: Callable[[str], None] = print) -> None:  # noqa: ANN001
    out("--------------------------------------------------")
    out("Temporary Support Account Details (SSH key access):")
    out(f"Hostname:   {account.hostname}")
    out(f"Server IP:  {account.server_ip}")
    out(f"Username:   {account.account_id}")
    out("")
    out("SSH private key (provide this ENTIRE block to the support agent):")
    out("vvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvv")
    out(account.private_key.rstrip("\n"))
    out("^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^")
    out("")
    out("Example SSH command for the agent:")
    out(f"  ssh -i /path/to/saved_private_key {account.account_id}@{account.server_ip}")
    out("--------------------------------------------------")
    out("This account is deleted automatically after logout, or if unused/overused for too long.")
    out("IMPORTANT: the private key above grants root-level access. Handle it securely.")


def create_main(argv: Optional[List[str]] = None, *, input_fn: Callable[[str], str] = input) -> int:
    ap = argparse.ArgumentParser(prog="support", description="Create a temporary support account with SSH key access.")
    ap.add_argument("--config", default=None)
    ap.add_argument("--webhook-url", default=None, help="notify this webhook instead of prompting")
    ap.add_argument("--no-notify", action="store_true", help="skip the webhook prompt and notification")
    args = ap.parse_args(argv)

    if not _is_root():
        print("This command must be run as root or with sudo.", file=sys.stderr)
        return EXIT_NOT_RUN

    try:
        tool = _bootstrap(args.config, console=False, log_file="support.log")
    except (ConfigError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_NOT_RUN

    webhook_url: Optional[str] = None
    if args.no_notify:
        webhook_url = ""
    elif args.webhook_url is not None:
        webhook_url = args.webhook_url.strip()
    elif not tool.cfg.notify.webhook_url:
        webhook_url = prompt_webhook_url(input_fn)

    try:
        notifier = notifier_for_url(tool.cfg.notify, webhook_url, logger=tool.logger)
    except ValueError as e:
        print(f"ERROR: invalid webhook URL: {e}", file=sys.stderr)
        return EXIT_NOT_RUN

    requested_by = os.environ.get("SUDO_USER") or getpass.getuser()
    try:
        account = tool.creator().create(requested_by=requested_by)
    except ProvisionError as e:
        print(f"ERROR: {e.user_message}", file=sys.stderr)
        return EXIT_NOT_RUN

    print(f"User {account.account_id} created and registered for monitoring.")
    render_account_details(account)
    if notifier.enabled:
        if notifier.notify_created(account, requested_by=requested_by):
            print("Notification sent.")
        else:
            print("WARNING: failed to send notification.")
    return EXIT_OK


# ---- support-audit ----
def audit_main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="support-audit", description="Report support accounts or grant files with no registry record.")
    ap.add_argument("--config", default=None)
    ap.add_argument("--remove", action="store_true", help="deprovision the orphans found")
    ap.add_argument("--min-age", type=int, default=DEFAULT_MIN_AGE_SECONDS, help="ignore names minted less than this many seconds ago")
    args = ap.parse_args(argv)

    try:
        tool = _bootstrap(args.config, console=False, log_file="audit.log")
    except (ConfigError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_NOT_RUN

    report = find_orphans(
        registry=tool.registry,
        accounts=tool.accounts,
        grants=tool.grants,
        prefix=tool.cfg.accounts.prefix,
        deprovisioner=tool.deprovisioner,
        remove=bool(args.remove),
        min_age_seconds=int(args.min_age),
    )
    print(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    if report.clean or args.remove:
        return EXIT_OK
    return EXIT_ORPHANS


# ---- support-config ----
def config_main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="support-config", description="Print or initialise the support-tool configuration.")
    ap.add_argument("--config", default=None)
    ap.add_argument("--write-defaults", action="store_true", help="write a default config file")
    ap.add_argument("--force", action="store_true", help="overwrite an existing file with --write-defaults")
    args = ap.parse_args(argv)

    try:
        if args.write_defaults:
            path = write_default_config(args.config, overwrite=bool(args.force))
            print(f"Wrote default configuration to {path}")
            return EXIT_OK
        cfg: SupportToolConfig = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e.user_message} {json.dumps(e.to_dict()['context'], sort_keys=True)}", file=sys.stderr)
        return EXIT_NOT_RUN
    print(json.dumps(cfg.model_dump(), indent=2, sort_keys=True))
    return EXIT_OK
