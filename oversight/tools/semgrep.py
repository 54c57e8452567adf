"""Static analysis with Semgrep.

Uses the public `p/default` and `p/security-audit` rule packs. Telemetry
is switched off through SEMGREP_SEND_METRICS. General-purpose rule
evaluation is slow on large repositories, hence the longer timeout.
"""

import os
from pathlib import Path
from typing import Any, Optional

from oversight.tools.process import ScannerRunner, relative_to_repo
from oversight.tools.severity import normalize_severity
from oversight.tools.types import CodeFinding, ScanTool, ToolResult

RULE_CONFIGS = ("p/default", "p/security-audit")


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


class SemgrepRunner(ScannerRunner):
    tool = ScanTool.STATIC_ANALYSIS
    executable = "semgrep"
    install_hint = "Semgrep is not installed. Install with: pip install semgrep"
    default_timeout = 600

    def build_command(self, repo_dir: Path, report_path: Path) -> list[str]:
        cmd = [self.executable, "scan"]
        for config in RULE_CONFIGS:
            cmd += ["--config", config]
        cmd += ["--json", "--output", str(report_path), str(repo_dir)]
        return cmd

    def build_env(self) -> Optional[dict[str, str]]:
        return {**os.environ, "SEMGREP_SEND_METRICS": "off"}

    def parse(self, report: Any, repo_dir: Path) -> ToolResult:
        result = ToolResult(tool=self.tool)

        for hit in report.get("results") or []:
            extra = hit.get("extra") or {}
            metadata = extra.get("metadata") or {}
            start = hit.get("start") or {}
            end = hit.get("end") or {}
            category = metadata.get("category") or "other"

            finding = CodeFinding(
                rule_id=hit["check_id"],
                message=extra.get("message") or "",
                severity=normalize_severity(extra.get("severity")),
                path=relative_to_repo(hit.get("path") or "", repo_dir),
                start_line=start.get("line"),
                end_line=end.get("line"),
                start_col=start.get("col"),
                end_col=end.get("col"),
                category=category,
                cwe=_as_list(metadata.get("cwe")),
                owasp=_as_list(metadata.get("owasp")),
            )
            result.add(finding, group=category)

        return result
