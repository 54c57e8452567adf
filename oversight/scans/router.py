"""Security scan endpoints.

POST /security/scans records a pending job and hands it to the worker.
Clients then poll GET /security/scans/{scan_id} until the job reaches
`completed` or `failed`.
"""

import logging
from functools import lru_cache
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status

from oversight.core.config import Settings, get_settings
from oversight.core.credentials import CredentialStore, EnvCredentialStore, ScanContext
from oversight.core.middleware import get_request_id
from oversight.scans.models import ScanJob, ScanStatus, normalize_tools, utc_now_iso
from oversight.scans.schemas import (
    ScanCreateRequest,
    ScanCreateResponse,
    ScanListResponse,
    ToolsResponse,
)
from oversight.scans.service import enqueue_scan
from oversight.scans.store import JobStore, StoreUnavailable
from oversight.tools.registry import check_tools

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/security", tags=["security"])

RECENT_SCANS_LIMIT = 20


@lru_cache
def get_job_store() -> JobStore:
    return JobStore.from_settings(get_settings())


def get_credential_store(settings: Settings = Depends(get_settings)) -> CredentialStore:
    return EnvCredentialStore(settings)


@router.post(
    "/scans",
    response_model=ScanCreateResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_scan(
    body: ScanCreateRequest,
    settings: Settings = Depends(get_settings),
    store: JobStore = Depends(get_job_store),
    credentials: CredentialStore = Depends(get_credential_store),
) -> ScanCreateResponse:
    """Record a pending scan and enqueue it for the worker."""
    tools = normalize_tools(body.tools)
    if not tools:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid scan tools requested",
        )

    context = ScanContext.from_store(credentials, settings)
    if not context.github_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="GitHub token not configured",
        )

    if not await store.ping():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable",
        )

    repo_full_name = context.repo_full_name(body.repo_name)
    active = await store.active_for_repo(repo_full_name)
    if active is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": "A scan is already running for this repository", "scan_id": active.id},
        )

    job = ScanJob(repo_name=body.repo_name, repo_full_name=repo_full_name, tools=tools)
    try:
        await store.create(job)
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable",
        )

    try:
        enqueue_scan(job, trace_id=get_request_id())
    except Exception as exc:
        logger.error("Failed to enqueue scan %s: %s", job.id, exc, exc_info=True)
        await store.update(
            job.id,
            status=ScanStatus.FAILED,
            error="Failed to enqueue scan",
            completed_at=utc_now_iso(),
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scan queue unavailable",
        )

    return ScanCreateResponse(scan_id=job.id, status=job.status)


@router.get("/scans/{scan_id}", response_model=ScanJob)
async def get_scan(
    scan_id: str,
    store: JobStore = Depends(get_job_store),
) -> ScanJob:
    job = await store.get(scan_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")
    return job


@router.get("/scans", response_model=Union[ScanJob, ScanListResponse])
async def list_scans(
    repo: Optional[str] = Query(default=None, description="Return only the latest scan of this repository"),
    settings: Settings = Depends(get_settings),
    store: JobStore = Depends(get_job_store),
) -> Union[ScanJob, ScanListResponse]:
    """Latest scan of *repo*, or the most recent scans across repositories."""
    if repo:
        context = ScanContext(github_owner=settings.github_owner, github_token=None, slack_webhook_url=None)
        job = await store.latest_for_repo(context.repo_full_name(repo))
        if job is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No scans found for repository")
        return job

    scans = await store.list_recent(limit=RECENT_SCANS_LIMIT)
    return ScanListResponse(scans=scans, count=len(scans))


@router.get("/tools", response_model=ToolsResponse)
async def get_tools() -> ToolsResponse:
    """Report which scanners are installed on this host."""
    return ToolsResponse.model_validate(await check_tools())
