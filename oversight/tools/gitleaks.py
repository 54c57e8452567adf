"""Secret scanning with Gitleaks.

Scans the working tree only (`--no-git`); history is not available in a
depth-1 clone anyway. `--exit-code 0` keeps the exit status meaningless so
that the report is the only signal.

This is the one place raw secret values are read. Every value is passed
through `redact_secret` before it is stored on a finding, and the report
file holding the raw values is deleted as soon as it has been read.
"""

from pathlib import Path
from typing import Any, Optional

from oversight.tools.process import ScannerRunner, relative_to_repo
from oversight.tools.types import ScanTool, SecretFinding, ToolResult

REDACTED_PLACEHOLDER = "***redacted***"

# Secrets this short or shorter would be mostly revealed by a 4+4 preview.
MIN_REDACTABLE_LENGTH = 12


def redact_secret(secret: Optional[str]) -> str:
    """Keep the first and last 4 characters of *secret*, hide the rest.

    Values of 12 characters or fewer are replaced entirely.
    """
    if not secret or len(secret) <= MIN_REDACTABLE_LENGTH:
        return REDACTED_PLACEHOLDER
    return f"{secret[:4]}...{secret[-4:]}"


class GitleaksRunner(ScannerRunner):
    tool = ScanTool.SECRET_SCAN
    executable = "gitleaks"
    install_hint = "Gitleaks is not installed. Install with: brew install gitleaks"
    default_timeout = 300

    def build_command(self, repo_dir: Path, report_path: Path) -> list[str]:
        return [
            self.executable,
            "detect",
            "--source", str(repo_dir),
            "--report-format", "json",
            "--report-path", str(report_path),
            "--no-git",
            "--exit-code", "0",
        ]

    def parse(self, report: Any, repo_dir: Path) -> ToolResult:
        result = ToolResult(tool=self.tool)

        for leak in report or []:
            rule_id = leak.get("RuleID") or "unknown"
            finding = SecretFinding(
                rule_id=rule_id,
                description=leak.get("Description") or "",
                file=relative_to_repo(leak.get("File") or "", repo_dir),
                start_line=leak.get("StartLine"),
                end_line=leak.get("EndLine"),
                match=redact_secret(leak.get("Secret")),
                commit=leak.get("Commit") or None,
                author=leak.get("Author") or None,
                date=leak.get("Date") or None,
            )
            result.add(finding, group=rule_id)

        return result
