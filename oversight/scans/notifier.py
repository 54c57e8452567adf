"""Scan alert delivery.

The only concrete sink is a Slack incoming webhook. Delivery is
best-effort: a notifier returns False on any failure and never raises, so
a broken webhook cannot affect the stored scan result.
"""

import logging
from typing import Optional, Protocol

import httpx

from oversight.core.credentials import ScanContext
from oversight.scans.alerts import ScanAlert
from oversight.tools.types import SeverityCounts

logger = logging.getLogger(__name__)

SLACK_TIMEOUT = 10


class Notifier(Protocol):
    async def notify(self, alert: ScanAlert) -> bool:
        ...


class NullNotifier:
    """Used when no webhook is configured. Drops every alert."""

    async def notify(self, alert: ScanAlert) -> bool:
        logger.info("No notification sink configured; alert for %s dropped", alert.repo_name)
        return False


def _counts_text(counts: SeverityCounts) -> str:
    return (
        f"{counts.critical} critical, {counts.high} high, "
        f"{counts.medium} medium, {counts.low} low"
    )


def build_blocks(alert: ScanAlert) -> list[dict]:
    """Render *alert* as Slack Block Kit blocks."""
    summary = alert.summary
    if summary.critical_count > 0:
        title = "\U0001f6a8 Security Scan: Critical Issues Found"
    else:
        title = "⚠️ Security Scan: Issues Found"

    fields: list[dict] = []
    if summary.vulnerabilities.total > 0:
        fields.append({
            "type": "mrkdwn",
            "text": f"*Dependencies (Trivy):*\n{_counts_text(summary.vulnerabilities)}",
        })
    if summary.secrets > 0:
        fields.append({
            "type": "mrkdwn",
            "text": f"*Secrets (Gitleaks):*\n{summary.secrets} found",
        })
    if summary.code_issues.total > 0:
        fields.append({
            "type": "mrkdwn",
            "text": f"*Code Issues (Semgrep):*\n{_counts_text(summary.code_issues)}",
        })

    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": title, "emoji": True},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"Repository: *{alert.repo_name}*"},
        },
    ]
    if fields:
        blocks.append({"type": "section", "fields": fields})
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"_Scanned at {alert.scanned_at}_"}],
    })
    return blocks


class SlackNotifier:
    def __init__(self, webhook_url: str, timeout: float = SLACK_TIMEOUT) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def notify(self, alert: ScanAlert) -> bool:
        payload = {
            "text": f"Security scan findings for {alert.repo_name}",
            "blocks": build_blocks(alert),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
        except Exception as exc:
            logger.error("Slack webhook request failed: %s", type(exc).__name__)
            return False

        if response.status_code >= 400:
            logger.error("Slack webhook rejected alert: HTTP %d", response.status_code)
            return False
        return True


def notifier_for(context: Optional[ScanContext]) -> Notifier:
    """SlackNotifier when the context carries a webhook URL, else NullNotifier."""
    if context is not None and context.slack_webhook_url:
        return SlackNotifier(context.slack_webhook_url)
    return NullNotifier()
