"""Scan job record and its state machine.

A job moves strictly forward:

    pending -> cloning -> scanning -> completed
    any non-terminal state -> failed

`completed` and `failed` are terminal. A completed job may still carry
per-tool errors in `results.tool_errors`; only a clone failure or an
unexpected error outside the per-tool boundary fails the whole job.
"""

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from oversight.tools.types import ScanTool


class ScanStatus(StrEnum):
    PENDING = "pending"
    CLONING = "cloning"
    SCANNING = "scanning"
    COMPLETED = "completed"
    FAILED = "failed"


VALID_TRANSITIONS: dict[ScanStatus, set[ScanStatus]] = {
    ScanStatus.PENDING: {ScanStatus.CLONING, ScanStatus.FAILED},
    ScanStatus.CLONING: {ScanStatus.SCANNING, ScanStatus.FAILED},
    ScanStatus.SCANNING: {ScanStatus.COMPLETED, ScanStatus.FAILED},
}

TERMINAL_STATUSES = {ScanStatus.COMPLETED, ScanStatus.FAILED}
ACTIVE_STATUSES = {ScanStatus.PENDING, ScanStatus.CLONING, ScanStatus.SCANNING}

ALL_TOOLS: list[ScanTool] = [
    ScanTool.DEPENDENCY_SCAN,
    ScanTool.SECRET_SCAN,
    ScanTool.STATIC_ANALYSIS,
]


def validate_transition(current: str, target: str) -> None:
    """Raise ValueError if current -> target is not a valid transition."""
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValueError(
            f"Invalid scan status transition: {current} -> {target}. "
            f"Allowed from {current}: {sorted(str(s) for s in allowed) or 'none (terminal)'}"
        )


def generate_scan_id() -> str:
    return uuid.uuid4().hex[:12]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_tools(tools: Optional[list[str]]) -> list[ScanTool]:
    """Return the known tools from *tools*, de-duplicated, order kept.

    None selects every tool. Unknown ids are dropped; an empty result is
    the caller's error to report.
    """
    if tools is None:
        return list(ALL_TOOLS)

    selected: list[ScanTool] = []
    for name in tools:
        try:
            tool = ScanTool(name)
        except ValueError:
            continue
        if tool not in selected:
            selected.append(tool)
    return selected


class ScanResults(BaseModel):
    """Per-tool output of a scan.

    by_tool holds only tools that ran successfully; tool_errors holds the
    message of every tool that failed.
    """

    by_tool: dict[str, dict[str, Any]] = Field(default_factory=dict)
    tool_errors: dict[str, str] = Field(default_factory=dict)


class ScanJob(BaseModel):
    id: str = Field(default_factory=generate_scan_id)
    repo_name: str
    repo_full_name: str
    status: ScanStatus = ScanStatus.PENDING
    tools: list[ScanTool]
    current_tool: Optional[ScanTool] = None
    progress: int = Field(default=0, ge=0, le=100)
    started_at: str = Field(default_factory=utc_now_iso)
    completed_at: Optional[str] = None
    error: Optional[str] = None
    results: Optional[ScanResults] = None

    @field_validator("tools")
    @classmethod
    def tools_not_empty(cls, v: list[ScanTool]) -> list[ScanTool]:
        if not v:
            raise ValueError("A scan needs at least one tool")
        deduped: list[ScanTool] = []
        for tool in v:
            if tool not in deduped:
                deduped.append(tool)
        return deduped

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
