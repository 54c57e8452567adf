"""Severity normalization shared by every scanner and by alerting.

Scanners report severity in their own vocabularies:
  - Trivy / CVSS: CRITICAL, HIGH, MEDIUM, LOW
  - Semgrep / SARIF: ERROR, WARNING, INFO (and note)
  - Some advisories: severe, moderate, minor

`normalize_severity` maps all of them onto one five-value scale. The
dashboard and the Slack alert both go through it, so the severities they
show can never disagree.
"""

from typing import Optional

CRITICAL = "critical"
HIGH = "high"
MEDIUM = "medium"
LOW = "low"
UNKNOWN = "unknown"

SEVERITY_LEVELS = (CRITICAL, HIGH, MEDIUM, LOW, UNKNOWN)

_SEVERITY_MAP: dict[str, str] = {
    "critical": CRITICAL,
    "error": CRITICAL,
    "severe": CRITICAL,
    "high": HIGH,
    "medium": MEDIUM,
    "warning": MEDIUM,
    "moderate": MEDIUM,
    "low": LOW,
    "note": LOW,
    "minor": LOW,
    "info": LOW,
    "informational": LOW,
}


def normalize_severity(severity: Optional[str]) -> str:
    """Map a free-form severity string to critical/high/medium/low/unknown.

    Case-insensitive and whitespace-tolerant. None, empty, non-string and
    unrecognised values all map to "unknown".
    """
    if not isinstance(severity, str):
        return UNKNOWN
    return _SEVERITY_MAP.get(severity.strip().lower(), UNKNOWN)


def severity_rank(severity: Optional[str]) -> int:
    """Sort key: 0 for critical through 4 for unknown."""
    return SEVERITY_LEVELS.index(normalize_severity(severity))
