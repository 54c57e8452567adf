"""Types shared by the scanner tool runners.

Every runner reduces its tool's native JSON to a ToolResult: a list of
findings (each with a normalized severity) plus severity counts and a
tool-specific breakdown. Runners never raise; they return a ToolOutcome
whose status is one of a closed set, so the orchestrator only has to
decide "store the result" or "record the error and move on".
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional, Protocol, Union

from oversight.tools.severity import CRITICAL, SEVERITY_LEVELS, normalize_severity


class ScanTool(StrEnum):
    """Identifiers of the scanners a job can request."""

    DEPENDENCY_SCAN = "dependency-scan"
    SECRET_SCAN = "secret-scan"
    STATIC_ANALYSIS = "static-analysis"


class ToolStatus(StrEnum):
    """Outcome of one tool invocation."""

    SUCCESS = "success"
    EMPTY = "empty"  # tool ran, produced no output: zero findings
    PARSE_ERROR = "parse_error"
    NOT_INSTALLED = "not_installed"
    TIMEOUT = "timeout"
    CRASHED = "crashed"


SUCCESS_STATUSES = {ToolStatus.SUCCESS, ToolStatus.EMPTY}


@dataclass
class SeverityCounts:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0

    def add(self, severity: Optional[str], count: int = 1) -> None:
        level = normalize_severity(severity)
        setattr(self, level, getattr(self, level) + count)

    def merge(self, other: "SeverityCounts") -> None:
        for level in SEVERITY_LEVELS:
            setattr(self, level, getattr(self, level) + getattr(other, level))

    @property
    def total(self) -> int:
        return sum(getattr(self, level) for level in SEVERITY_LEVELS)

    def to_dict(self) -> dict:
        return {level: getattr(self, level) for level in SEVERITY_LEVELS}


@dataclass
class Vulnerability:
    """A vulnerable dependency reported by the dependency scanner."""

    id: str
    pkg_name: str
    installed_version: str
    severity: str
    title: str
    fixed_version: Optional[str] = None
    description: str = ""
    primary_url: Optional[str] = None
    target: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pkg_name": self.pkg_name,
            "installed_version": self.installed_version,
            "fixed_version": self.fixed_version,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "primary_url": self.primary_url,
            "target": self.target,
        }


@dataclass
class SecretFinding:
    """An exposed secret. `match` is always redacted; severity is always critical."""

    rule_id: str
    description: str
    file: str
    start_line: Optional[int]
    end_line: Optional[int]
    match: str
    commit: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None
    severity: str = CRITICAL

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "description": self.description,
            "file": self.file,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "commit": self.commit,
            "author": self.author,
            "date": self.date,
            "match": self.match,
            "severity": self.severity,
        }


@dataclass
class CodeFinding:
    """A static-analysis rule hit."""

    rule_id: str
    message: str
    severity: str
    path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    start_col: Optional[int] = None
    end_col: Optional[int] = None
    category: str = "other"
    cwe: list[str] = field(default_factory=list)
    owasp: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "message": self.message,
            "severity": self.severity,
            "path": self.path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "start_col": self.start_col,
            "end_col": self.end_col,
            "category": self.category,
            "cwe": self.cwe,
            "owasp": self.owasp,
        }


Finding = Union[Vulnerability, SecretFinding, CodeFinding]


@dataclass
class ToolResult:
    """Normalized output of one scanner.

    groups: tool-specific breakdown (by package, rule id or category).
    debug: process diagnostics kept for the dashboard's troubleshooting view.
    """

    tool: ScanTool
    findings: list[Finding] = field(default_factory=list)
    severity_counts: SeverityCounts = field(default_factory=SeverityCounts)
    groups: dict[str, int] = field(default_factory=dict)
    debug: Optional[dict[str, Any]] = None

    def add(self, finding: Finding, group: Optional[str] = None) -> None:
        self.findings.append(finding)
        self.severity_counts.add(finding.severity)
        if group:
            self.groups[group] = self.groups.get(group, 0) + 1

    @property
    def finding_count(self) -> int:
        return len(self.findings)

    def to_dict(self) -> dict:
        data = {
            "tool": str(self.tool),
            "findings": [f.to_dict() for f in self.findings],
            "summary": {
                "total": self.finding_count,
                "by_severity": self.severity_counts.to_dict(),
                "groups": dict(self.groups),
            },
        }
        if self.debug is not None:
            data["debug"] = self.debug
        return data


@dataclass
class ToolOutcome:
    """Result of running one tool: a ToolResult on success, an error otherwise."""

    tool: ScanTool
    status: ToolStatus
    result: Optional[ToolResult] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @classmethod
    def failed(
        cls,
        tool: ScanTool,
        status: ToolStatus,
        error: str,
        duration_seconds: float = 0.0,
    ) -> "ToolOutcome":
        return cls(tool=tool, status=status, error=error, duration_seconds=duration_seconds)


class ToolRunner(Protocol):
    """One external scanner behind the shared contract."""

    tool: ScanTool

    async def run(self, repo_dir: Any) -> ToolOutcome:
        ...
