"""Redis-backed store for scan job records.

Record key:   oversight:scan:{scan_id}   (JSON, TTL refreshed on every write)
Recent list:  oversight:scans:list       (newest first, trimmed)

The store is a progress side channel, not the source of truth for the
scan itself. `update` therefore never raises: an outage mid-scan costs the
client some progress updates, never the scan. `create` is the exception;
the API must know whether the job was recorded before it enqueues it.

Writes are plain read-merge-write with no compare-and-swap. Each record
has a single writer (the worker running that job), so there is nothing to
race with.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from oversight.core.config import Settings
from oversight.scans.models import ACTIVE_STATUSES, ScanJob

logger = logging.getLogger(__name__)

JOB_TTL_SECONDS = 86400
RECENT_LIST_MAX_LEN = 100

# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def scan_key(scan_id: str) -> str:
    return f"oversight:scan:{scan_id}"


RECENT_SCANS_KEY = "oversight:scans:list"


class StoreUnavailable(Exception):
    """Raised by JobStore.create when the record could not be written."""


class JobStore:
    def __init__(
        self,
        redis: Any,
        ttl_seconds: int = JOB_TTL_SECONDS,
        timeout: float = 5.0,
    ) -> None:
        self._redis = redis
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "JobStore":
        import redis.asyncio as aioredis

        client = aioredis.from_url(settings.redis_url, decode_responses=True)
        return cls(
            client,
            ttl_seconds=settings.job_ttl_seconds,
            timeout=settings.store_timeout_seconds,
        )

    async def _call(self, awaitable):
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    async def _write(self, scan_id: str, record: dict) -> None:
        await self._call(
            self._redis.set(scan_key(scan_id), json.dumps(record), ex=self.ttl_seconds)
        )

    async def close(self) -> None:
        await self._redis.aclose()

    async def ping(self) -> bool:
        try:
            return bool(await self._call(self._redis.ping()))
        except Exception:
            logger.warning("Job store ping failed", exc_info=True)
            return False

    async def create(self, job: ScanJob) -> None:
        """Write the full record and push it onto the recent-scans list.

        Raises:
            StoreUnavailable: if the store could not be reached.
        """
        try:
            await self._write(job.id, job.model_dump(mode="json"))
            await self._call(self._redis.lpush(RECENT_SCANS_KEY, job.id))
            await self._call(self._redis.ltrim(RECENT_SCANS_KEY, 0, RECENT_LIST_MAX_LEN - 1))
        except Exception as exc:
            logger.error("Failed to create scan record %s: %s", job.id, exc)
            raise StoreUnavailable(str(exc)) from exc

    async def _read(self, scan_id: str) -> Optional[dict]:
        raw = await self._call(self._redis.get(scan_key(scan_id)))
        if raw is None:
            return None
        return json.loads(raw)

    async def get(self, scan_id: str) -> Optional[ScanJob]:
        """Return the job, or None on miss, undecodable record or outage."""
        try:
            record = await self._read(scan_id)
        except Exception:
            logger.warning("Failed to read scan record %s", scan_id, exc_info=True)
            return None
        if record is None:
            return None
        try:
            return ScanJob.model_validate(record)
        except ValidationError:
            logger.warning("Discarding malformed scan record %s", scan_id)
            return None

    async def update(self, scan_id: str, **fields: Any) -> None:
        """Overlay *fields* onto the stored record and refresh its TTL.

        Best-effort: failures are logged and swallowed.
        """
        try:
            record = await self._read(scan_id)
            if record is None:
                logger.warning("Scan record %s missing; update dropped", scan_id)
                return
            record.update(to_jsonable_python(fields))
            await self._write(scan_id, record)
        except Exception:
            logger.warning(
                "Failed to update scan record %s (fields=%s)",
                scan_id, sorted(fields), exc_info=True,
            )

    async def list_recent(self, limit: int = 20) -> list[ScanJob]:
        """Newest-first jobs still in the store. Empty on outage."""
        try:
            ids = await self._call(self._redis.lrange(RECENT_SCANS_KEY, 0, RECENT_LIST_MAX_LEN - 1))
        except Exception:
            logger.warning("Failed to list recent scans", exc_info=True)
            return []

        jobs: list[ScanJob] = []
        seen: set[str] = set()
        for scan_id in ids:
            if scan_id in seen:
                continue
            seen.add(scan_id)
            job = await self.get(scan_id)
            if job is not None:
                jobs.append(job)
            if len(jobs) >= limit:
                break
        return jobs

    async def latest_for_repo(self, repo_name: str) -> Optional[ScanJob]:
        for job in await self.list_recent(limit=RECENT_LIST_MAX_LEN):
            if repo_name in (job.repo_name, job.repo_full_name):
                return job
        return None

    async def active_for_repo(self, repo_name: str) -> Optional[ScanJob]:
        """Return a pending, cloning or scanning job for the repo, if any."""
        for job in await self.list_recent(limit=RECENT_LIST_MAX_LEN):
            if repo_name not in (job.repo_name, job.repo_full_name):
                continue
            if job.status in ACTIVE_STATUSES:
                return job
        return None
