"""Dependency vulnerability scanning with Trivy.

Runs `trivy fs` in vuln-only mode and normalizes every entry of
Results[].Vulnerabilities[] into a Vulnerability.
"""

from pathlib import Path
from typing import Any

from oversight.tools.process import ScannerRunner
from oversight.tools.severity import normalize_severity
from oversight.tools.types import ScanTool, ToolResult, Vulnerability


class TrivyRunner(ScannerRunner):
    tool = ScanTool.DEPENDENCY_SCAN
    executable = "trivy"
    install_hint = "Trivy is not installed. Install with: brew install trivy"
    default_timeout = 300

    def build_command(self, repo_dir: Path, report_path: Path) -> list[str]:
        return [
            self.executable,
            "fs",
            "--format", "json",
            "--scanners", "vuln",
            "--severity", "CRITICAL,HIGH,MEDIUM,LOW",
            "--output", str(report_path),
            str(repo_dir),
        ]

    def parse(self, report: Any, repo_dir: Path) -> ToolResult:
        result = ToolResult(tool=self.tool)

        for target in report.get("Results") or []:
            target_name = target.get("Target")
            for vuln in target.get("Vulnerabilities") or []:
                vuln_id = vuln.get("VulnerabilityID") or "unknown"
                finding = Vulnerability(
                    id=vuln_id,
                    pkg_name=vuln.get("PkgName", ""),
                    installed_version=vuln.get("InstalledVersion", ""),
                    fixed_version=vuln.get("FixedVersion") or None,
                    severity=normalize_severity(vuln.get("Severity")),
                    title=vuln.get("Title") or vuln_id,
                    description=vuln.get("Description") or "",
                    primary_url=vuln.get("PrimaryURL"),
                    target=target_name,
                )
                result.add(finding, group=finding.pkg_name or None)

        return result
