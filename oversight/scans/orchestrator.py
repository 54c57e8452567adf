"""Scan orchestrator: clone once, run each requested tool, record progress.

The pipeline for one job:
  1. pending -> cloning, then shallow-clone into the job workspace
  2. cloning -> failed if the clone fails (no tool runs)
  3. cloning -> scanning with progress 0
  4. for each tool, in request order: publish current_tool and progress,
     run it, store its result or its error, carry on
  5. scanning -> completed with progress 100 and the full results
  6. any unexpected error outside a tool, or cancellation -> failed
  7. after completed only: summarize findings and notify

The workspace is removed when the job leaves step 1-6, whatever the
outcome. A terminal job receives no further store writes.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from oversight.core.logging import bind_scan_id
from oversight.sandbox.checkout import CLONE_TIMEOUT, CloneFailed, build_clone_url, clone_repo, scan_workspace
from oversight.scans.alerts import send_scan_alert, summarize_results
from oversight.scans.models import (
    ScanJob,
    ScanResults,
    ScanStatus,
    generate_scan_id,
    normalize_tools,
    utc_now_iso,
    validate_transition,
)
from oversight.scans.notifier import Notifier
from oversight.scans.store import JobStore
from oversight.tools.types import ScanTool, ToolOutcome, ToolRunner, ToolStatus

logger = logging.getLogger(__name__)

CloneFn = Callable[..., Awaitable[Path]]


class ScanOrchestrator:
    def __init__(
        self,
        store: JobStore,
        notifier: Notifier,
        runners: dict[ScanTool, ToolRunner],
        workspace_root: Path | str,
        clone: CloneFn = clone_repo,
        clone_timeout: float = CLONE_TIMEOUT,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.runners = runners
        self.workspace_root = Path(workspace_root)
        self._clone = clone
        self.clone_timeout = clone_timeout

    def new_job(
        self,
        repo_name: str,
        repo_full_name: str,
        tools: Optional[list[str]] = None,
        job_id: Optional[str] = None,
    ) -> ScanJob:
        """Build a pending job.

        Raises:
            ValueError: If no requested tool is known.
        """
        selected = normalize_tools(tools)
        if not selected:
            raise ValueError("No valid scan tools requested")
        return ScanJob(
            id=job_id or generate_scan_id(),
            repo_name=repo_name,
            repo_full_name=repo_full_name,
            tools=selected,
        )

    async def start(self, job: ScanJob) -> None:
        """Persist the pending record. Raises StoreUnavailable on outage."""
        await self.store.create(job)
        logger.info("Scan %s created for %s (tools=%s)", job.id, job.repo_full_name, job.tools)

    async def run(self, job: ScanJob, credential: Optional[str]) -> ScanJob:
        await self.start(job)
        return await self.execute(job, credential)

    async def execute(self, job: ScanJob, credential: Optional[str]) -> ScanJob:
        """Drive *job* to a terminal state.

        Never raises, except that cancellation is re-raised once the job
        has been recorded as failed.

        *credential* is the clone token; it is embedded in the clone URL
        and nowhere else.
        """
        if job.is_terminal:
            logger.warning("Scan %s is already %s; not executing", job.id, job.status)
            return job

        with bind_scan_id(job.id):
            try:
                with scan_workspace(self.workspace_root, job.id) as workspace:
                    await self._run_stages(job, credential, workspace)
            except asyncio.CancelledError:
                # worker time limit or shutdown
                logger.warning("Scan %s cancelled while %s", job.id, job.status)
                if not job.is_terminal:
                    await self._transition(
                        job,
                        ScanStatus.FAILED,
                        error="Scan cancelled",
                        completed_at=utc_now_iso(),
                    )
                raise
            except Exception as exc:
                logger.error(
                    "Scan %s failed unexpectedly: %s: %s",
                    job.id, type(exc).__name__, exc, exc_info=True,
                )
                if not job.is_terminal:
                    await self._transition(
                        job,
                        ScanStatus.FAILED,
                        error=str(exc) or type(exc).__name__,
                        completed_at=utc_now_iso(),
                    )

            if job.status == ScanStatus.COMPLETED:
                await self._notify(job)

        return job

    async def _run_stages(self, job: ScanJob, credential: Optional[str], workspace: Path) -> None:
        await self._transition(job, ScanStatus.CLONING)

        repo_dir = workspace / "repo"
        clone_url = build_clone_url(job.repo_full_name, credential)
        try:
            await self._clone(clone_url, repo_dir, timeout=self.clone_timeout)
        except CloneFailed as exc:
            logger.warning("Scan %s: clone failed: %s", job.id, exc)
            await self._transition(
                job,
                ScanStatus.FAILED,
                error=str(exc),
                completed_at=utc_now_iso(),
            )
            return

        await self._transition(job, ScanStatus.SCANNING, progress=0)

        results = ScanResults()
        count = len(job.tools)
        for done, tool in enumerate(job.tools):
            await self._set(job, current_tool=tool, progress=round(100 * done / count))

            outcome = await self._run_tool(tool, repo_dir)
            if outcome.is_success and outcome.result is not None:
                results.by_tool[str(tool)] = outcome.result.to_dict()
            else:
                results.tool_errors[str(tool)] = outcome.error or str(outcome.status)
            await self._set(job, results=results.model_copy(deep=True))

        await self._transition(
            job,
            ScanStatus.COMPLETED,
            current_tool=None,
            progress=100,
            completed_at=utc_now_iso(),
            results=results,
        )
        logger.info(
            "Scan %s completed: %d tool(s) ok, %d failed",
            job.id, len(results.by_tool), len(results.tool_errors),
        )

    async def _run_tool(self, tool: ScanTool, repo_dir: Path) -> ToolOutcome:
        runner = self.runners.get(tool)
        if runner is None:
            return ToolOutcome.failed(tool, ToolStatus.NOT_INSTALLED, f"No runner registered for {tool}")
        try:
            return await runner.run(repo_dir)
        except Exception as exc:
            logger.error("Runner for %s raised: %s", tool, exc, exc_info=True)
            return ToolOutcome.failed(tool, ToolStatus.CRASHED, str(exc) or type(exc).__name__)

    async def _transition(self, job: ScanJob, target: ScanStatus, **fields: Any) -> None:
        validate_transition(job.status, target)
        logger.info("Scan %s: %s -> %s", job.id, job.status, target)
        await self._set(job, status=target, **fields)

    async def _set(self, job: ScanJob, **fields: Any) -> None:
        if "progress" in fields and fields["progress"] < job.progress:
            raise ValueError(f"Progress may not decrease ({job.progress} -> {fields['progress']})")
        for name, value in fields.items():
            setattr(job, name, value)
        await self.store.update(job.id, **fields)

    async def _notify(self, job: ScanJob) -> None:
        summary = summarize_results(job.results)
        try:
            await send_scan_alert(job.repo_name, summary, self.notifier, scan_id=job.id)
        except Exception:
            logger.error("Scan %s: alert delivery raised", job.id, exc_info=True)
