"""Scanner tool runners.

Public API:
    build_runners(settings) -> {ScanTool: runner}
    normalize_severity(value) -> "critical" | "high" | "medium" | "low" | "unknown"
"""

from oversight.tools.registry import build_runners, check_tools
from oversight.tools.severity import normalize_severity
from oversight.tools.types import ScanTool, ToolOutcome, ToolResult, ToolStatus

__all__ = [
    "build_runners",
    "check_tools",
    "normalize_severity",
    "ScanTool",
    "ToolOutcome",
    "ToolResult",
    "ToolStatus",
]
