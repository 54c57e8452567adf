"""Wiring between the API, the worker and the orchestrator.

The API records the pending job and enqueues it; the worker rebuilds the
collaborators from settings and drives the job. The clone credential is
resolved on each side from the credential store and never put on the
broker.
"""

import logging
from typing import Optional

from oversight.core.config import Settings
from oversight.core.credentials import ScanContext
from oversight.scans.models import ScanJob
from oversight.scans.notifier import notifier_for
from oversight.scans.orchestrator import ScanOrchestrator
from oversight.scans.store import JobStore
from oversight.tools.registry import build_runners

logger = logging.getLogger(__name__)


def build_orchestrator(
    settings: Settings,
    context: Optional[ScanContext] = None,
    store: Optional[JobStore] = None,
) -> ScanOrchestrator:
    return ScanOrchestrator(
        store=store or JobStore.from_settings(settings),
        notifier=notifier_for(context),
        runners=build_runners(settings),
        workspace_root=settings.workspace_root,
        clone_timeout=settings.clone_timeout_seconds,
    )


def enqueue_scan(job: ScanJob, trace_id: str = "") -> str:
    """Dispatch *job* to the Celery worker. Returns the task id."""
    from oversight.engine.tasks import execute_scan

    task = execute_scan.delay(job.model_dump(mode="json"), trace_id=trace_id)
    logger.info("Enqueued scan %s as task %s", job.id, task.id)
    return task.id
