"""Reduce a finished scan to the numbers an alert needs, and hand it off.

Severities are re-normalized here even though the runners already
normalized them: stored results may come from an older worker and
normalization is idempotent, so doing it twice is harmless.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from oversight.scans.models import ScanResults, utc_now_iso
from oversight.tools.severity import normalize_severity
from oversight.tools.types import ScanTool, SeverityCounts

logger = logging.getLogger(__name__)


@dataclass
class AlertSummary:
    vulnerabilities: SeverityCounts = field(default_factory=SeverityCounts)
    code_issues: SeverityCounts = field(default_factory=SeverityCounts)
    secrets: int = 0

    @property
    def total_findings(self) -> int:
        return self.vulnerabilities.total + self.code_issues.total + self.secrets

    @property
    def critical_count(self) -> int:
        # Every exposed secret is critical.
        return self.vulnerabilities.critical + self.code_issues.critical + self.secrets

    def to_dict(self) -> dict:
        return {
            "vulnerabilities": self.vulnerabilities.to_dict(),
            "code_issues": self.code_issues.to_dict(),
            "secrets": self.secrets,
            "total_findings": self.total_findings,
            "critical_count": self.critical_count,
        }


@dataclass
class ScanAlert:
    repo_name: str
    summary: AlertSummary
    scanned_at: str = field(default_factory=utc_now_iso)
    scan_id: Optional[str] = None


def _findings(results: ScanResults, tool: ScanTool) -> list[dict[str, Any]]:
    result = results.by_tool.get(str(tool)) or {}
    return result.get("findings") or []


def summarize_results(results: Optional[ScanResults]) -> AlertSummary:
    """Count findings per category and severity."""
    summary = AlertSummary()
    if results is None:
        return summary

    for finding in _findings(results, ScanTool.DEPENDENCY_SCAN):
        summary.vulnerabilities.add(normalize_severity(finding.get("severity")))
    for finding in _findings(results, ScanTool.STATIC_ANALYSIS):
        summary.code_issues.add(normalize_severity(finding.get("severity")))
    summary.secrets = len(_findings(results, ScanTool.SECRET_SCAN))

    return summary


async def send_scan_alert(
    repo_name: str,
    summary: AlertSummary,
    notifier,
    scan_id: Optional[str] = None,
) -> bool:
    """Deliver an alert for *summary*. Returns the delivery result.

    A scan with no findings is not worth a message: returns True without
    calling the notifier.
    """
    if summary.total_findings == 0:
        logger.info("No findings for %s; alert skipped", repo_name)
        return True

    alert = ScanAlert(repo_name=repo_name, summary=summary, scan_id=scan_id)
    delivered = await notifier.notify(alert)
    logger.info(
        "Scan alert for %s: findings=%d critical=%d delivered=%s",
        repo_name, summary.total_findings, summary.critical_count, delivered,
    )
    return delivered
