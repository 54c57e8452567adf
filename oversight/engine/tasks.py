"""Celery task definitions for scan execution.

The API records the pending job and enqueues `execute_scan` with the
serialized job. The worker resolves credentials itself, so the clone token
is never written to the broker, then drives the job to a terminal state
with the orchestrator.
"""

import asyncio
import logging

from oversight.core.config import get_settings
from oversight.core.credentials import EnvCredentialStore, ScanContext
from oversight.core.logging import bind_scan_id
from oversight.engine.queue import SCAN_SOFT_TIME_LIMIT, SCAN_TIME_LIMIT, celery_app
from oversight.scans.models import ScanJob
from oversight.scans.service import build_orchestrator

logger = logging.getLogger(__name__)


@celery_app.task(
    name="oversight.execute_scan",
    bind=True,
    max_retries=0,
    soft_time_limit=SCAN_SOFT_TIME_LIMIT,
    time_limit=SCAN_TIME_LIMIT,
)
def execute_scan(self, job_payload: dict, trace_id: str = "") -> dict:
    """Run one scan job to completion.

    The task is synchronous; the orchestrator runs inside asyncio.run().
    Failures are recorded on the job itself, so the task only raises for
    a payload that is not a valid job.
    """
    job = ScanJob.model_validate(job_payload)
    with bind_scan_id(job.id, trace_id=trace_id or None):
        logger.info("Starting scan execution: scan_id=%s repo=%s", job.id, job.repo_full_name)

        settings = get_settings()
        context = ScanContext.from_store(EnvCredentialStore(settings), settings)
        orchestrator = build_orchestrator(settings, context)

        job = asyncio.run(_execute(orchestrator, job, context.github_token))

        logger.info("Scan %s finished with status %s", job.id, job.status)
    return {"scan_id": job.id, "status": str(job.status)}


async def _execute(orchestrator, job: ScanJob, token) -> ScanJob:
    try:
        return await orchestrator.execute(job, token)
    finally:
        await orchestrator.store.close()
