"""Tests for alert summarization and the zero-finding rule."""

from unittest.mock import AsyncMock

from oversight.scans.alerts import AlertSummary, ScanAlert, send_scan_alert, summarize_results
from oversight.scans.models import ScanResults


def _results() -> ScanResults:
    return ScanResults(
        by_tool={
            "dependency-scan": {
                "findings": [
                    {"id": "CVE-1", "severity": "critical"},
                    {"id": "CVE-2", "severity": "HIGH"},
                    {"id": "CVE-3", "severity": "moderate"},
                ]
            },
            "secret-scan": {
                "findings": [{"rule_id": "aws-access-token"}, {"rule_id": "generic-api-key"}]
            },
            "static-analysis": {
                "findings": [{"rule_id": "x", "severity": "WARNING"}, {"rule_id": "y", "severity": "bogus"}]
            },
        },
        tool_errors={},
    )


class TestSummarizeResults:
    def test_counts_by_category_and_severity(self) -> None:
        summary = summarize_results(_results())

        assert summary.vulnerabilities.to_dict() == {
            "critical": 1, "high": 1, "medium": 1, "low": 0, "unknown": 0,
        }
        assert summary.code_issues.medium == 1
        assert summary.code_issues.unknown == 1
        assert summary.secrets == 2
        assert summary.total_findings == 7

    def test_secrets_always_critical(self) -> None:
        summary = summarize_results(_results())
        # 1 critical vulnerability + 2 secrets
        assert summary.critical_count == 3

    def test_missing_tools_and_none(self) -> None:
        assert summarize_results(None).total_findings == 0
        assert summarize_results(ScanResults(tool_errors={"secret-scan": "boom"})).total_findings == 0

    def test_to_dict(self) -> None:
        data = summarize_results(_results()).to_dict()
        assert data["total_findings"] == 7
        assert data["critical_count"] == 3


class TestSendScanAlert:
    async def test_zero_findings_skips_notifier(self) -> None:
        notifier = AsyncMock()
        delivered = await send_scan_alert("api", AlertSummary(), notifier)

        assert delivered is True
        notifier.notify.assert_not_called()

    async def test_findings_are_delivered(self) -> None:
        notifier = AsyncMock()
        notifier.notify.return_value = True
        summary = summarize_results(_results())

        delivered = await send_scan_alert("api", summary, notifier, scan_id="abc")

        assert delivered is True
        alert = notifier.notify.call_args[0][0]
        assert isinstance(alert, ScanAlert)
        assert alert.repo_name == "api"
        assert alert.scan_id == "abc"
        assert alert.summary is summary
        assert alert.scanned_at

    async def test_returns_notifier_failure(self) -> None:
        notifier = AsyncMock()
        notifier.notify.return_value = False
        summary = AlertSummary(secrets=1)
        assert await send_scan_alert("api", summary, notifier) is False
