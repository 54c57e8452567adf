"""Pydantic schemas for scan endpoints."""

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from oversight.scans.models import ScanJob, ScanStatus

# GitHub repository name, optionally prefixed with its owner.
_REPO_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+(/[A-Za-z0-9_.-]+)?$")


class ScanCreateRequest(BaseModel):
    """Payload for starting a scan."""

    repo_name: str = Field(
        description="Repository name, or owner/name. The configured owner is used when omitted.",
    )
    tools: Optional[list[str]] = Field(
        default=None,
        description="Tool ids to run. Defaults to every tool.",
    )

    @field_validator("repo_name")
    @classmethod
    def valid_repo_name(cls, v: str) -> str:
        v = v.strip()
        if not _REPO_NAME_RE.match(v) or ".." in v:
            raise ValueError("repo_name must look like 'name' or 'owner/name'")
        return v


class ScanCreateResponse(BaseModel):
    scan_id: str
    status: ScanStatus


class ScanListResponse(BaseModel):
    scans: list[ScanJob]
    count: int


class ToolAvailability(BaseModel):
    available: bool
    version: Optional[str] = None


class ToolsResponse(BaseModel):
    all_available: bool
    tools: dict[str, ToolAvailability]
