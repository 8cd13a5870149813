from __future__ import annotations

import time
from typing import Any, Dict, Optional

import requests

from support_tool.core.accounts.creator import ProvisionedAccount
from support_tool.core.config.models import NotifyConfig
from support_tool.core.errors import NotificationError


EMBED_COLOR = 16705372


class DiscordNotifier:
    """Posts an account-created embed to a Discord webhook. Never carries key material."""

    def __init__(self, *, cfg: NotifyConfig, session: Any = None, logger=None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.logger = logger

    @property
    def enabled(self) -> bool:
        return bool(self.cfg.webhook_url)

    def build_payload(self, account: ProvisionedAccount, *, requested_by: str) -> Dict[str, Any]:
        return {
            "username": self.cfg.bot_name,
            "embeds": [
                {
                    "title": "New temporary support account created",
                    "color": EMBED_COLOR,
                    "fields": [
                        {"name": "Hostname", "value": account.hostname, "inline": True},
                        {"name": "Server IP", "value": account.server_ip, "inline": True},
                        {"name": "Username", "value": f"`{account.account_id}`", "inline": False},
                        {"name": "Access Method", "value": "SSH key (private key shown to the admin only)", "inline": False},
                        {"name": "Requested By", "value": f"`{requested_by}`", "inline": True},
                        {"name": "Status", "value": "Pending login; removed after logout or timeout", "inline": True},
                    ],
                    "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S.000Z", time.gmtime(account.created_at)),
                }
            ],
        }

    def send(self, payload: Dict[str, Any]) -> None:
        if not self.enabled:
            raise NotificationError("No webhook URL configured.")
        try:
            r = self.session.post(self.cfg.webhook_url, json=payload, timeout=self.cfg.timeout_seconds)
        except requests.RequestException as e:
            raise NotificationError("Webhook request failed.", error=str(e)) from e
        if not 200 <= int(r.status_code) < 300:
            raise NotificationError("Webhook rejected the notification.", status_code=int(r.status_code))

    def notify_created(self, account: ProvisionedAccount, *, requested_by: str) -> bool:
        if not self.enabled:
            return False
        try:
            self.send(self.build_payload(account, requested_by=requested_by))
        except NotificationError as e:
            if self.logger is not None:
                self.logger.warning("WARNING: failed to send notification for %s: %s", account.account_id, e)
            return False
        if self.logger is not None:
            self.logger.info("Notification sent for %s.", account.account_id)
        return True


def notifier_for_url(cfg: NotifyConfig, webhook_url: Optional[str], *, logger=None) -> DiscordNotifier:
    if webhook_url is not None:
        cfg = NotifyConfig.model_validate({**cfg.model_dump(), "webhook_url": webhook_url})
    return DiscordNotifier(cfg=cfg, logger=logger)
