"""Persisted scrape job queue with atomic claims.

PENDING -> PROCESSING -> DONE | FAILED. Every transition is a conditional
UPDATE on the expected current status, so two workers can never both claim
a job and a terminal job is never moved by the worker.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from catalog_sync import metrics
from catalog_sync.db.models import ScrapeJob, ScrapeJobStatus, utcnow
from catalog_sync.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


class ScrapeJobQueue:
    """Job table operations used by the worker and the job API."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or AsyncSessionLocal

    async def enqueue(self, url: str) -> ScrapeJob:
        """Insert a PENDING job for a URL."""
        async with self.session_factory() as db:
            async with db.begin():
                job = ScrapeJob(url=url, status=ScrapeJobStatus.PENDING.value)
                db.add(job)
            await db.refresh(job)
        logger.info(f"Enqueued scrape job {job.id} for {url}")
        return job

    async def claim_next(self) -> Optional[ScrapeJob]:
        """
        Claim the oldest PENDING job.

        Returns:
            The job, now PROCESSING, or None if nothing was claimable
        """
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    select(ScrapeJob.id)
                    .where(ScrapeJob.status == ScrapeJobStatus.PENDING.value)
                    .order_by(ScrapeJob.created_at, ScrapeJob.id)
                    .limit(1)
                )
                job_id = result.scalar_one_or_none()
                if job_id is None:
                    return None

                now = utcnow()
                claimed = await db.execute(
                    update(ScrapeJob)
                    .where(
                        ScrapeJob.id == job_id,
                        ScrapeJob.status == ScrapeJobStatus.PENDING.value,
                    )
                    .values(
                        status=ScrapeJobStatus.PROCESSING.value,
                        started_at=now,
                        updated_at=now,
                        attempts=ScrapeJob.attempts + 1,
                    )
                )
                if claimed.rowcount != 1:
                    logger.info(f"Job {job_id} was claimed by another worker")
                    return None

            return await db.get(ScrapeJob, job_id, populate_existing=True)

    async def _transition(
        self,
        job_id: int,
        expected: ScrapeJobStatus,
        target: ScrapeJobStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        now = utcnow()
        values = {"status": target.value, "updated_at": now, "error_message": error_message}
        if target in (ScrapeJobStatus.DONE, ScrapeJobStatus.FAILED):
            values["completed_at"] = now
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(ScrapeJob)
                    .where(ScrapeJob.id == job_id, ScrapeJob.status == expected.value)
                    .values(**values)
                )
        if result.rowcount != 1:
            logger.warning(f"Job {job_id}: {expected.value} -> {target.value} rejected, status changed")
            return False
        metrics.record_job_status(target.value)
        return True

    async def mark_done(self, job_id: int, note: Optional[str] = None) -> bool:
        """PROCESSING -> DONE."""
        return await self._transition(
            job_id, ScrapeJobStatus.PROCESSING, ScrapeJobStatus.DONE, note
        )

    async def mark_failed(self, job_id: int, error: str) -> bool:
        """PROCESSING -> FAILED."""
        return await self._transition(
            job_id, ScrapeJobStatus.PROCESSING, ScrapeJobStatus.FAILED, error[:MAX_ERROR_LENGTH]
        )

    async def release(self, job_id: int, error: str) -> bool:
        """PROCESSING -> PENDING, for automatic retries."""
        return await self._transition(
            job_id, ScrapeJobStatus.PROCESSING, ScrapeJobStatus.PENDING, error[:MAX_ERROR_LENGTH]
        )

    async def retry_failed(self, job_id: int) -> bool:
        """FAILED -> PENDING. Operator action only; the worker never calls this."""
        return await self._transition(job_id, ScrapeJobStatus.FAILED, ScrapeJobStatus.PENDING)

    async def get(self, job_id: int) -> Optional[ScrapeJob]:
        async with self.session_factory() as db:
            return await db.get(ScrapeJob, job_id)

    async def list_jobs(self, status: Optional[str] = None, limit: int = 50) -> list[ScrapeJob]:
        async with self.session_factory() as db:
            query = select(ScrapeJob).order_by(ScrapeJob.created_at.desc(), ScrapeJob.id.desc()).limit(limit)
            if status:
                query = query.where(ScrapeJob.status == status.upper())
            result = await db.execute(query)
            return list(result.scalars().all())
