"""Scrape job administration."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, HttpUrl

from catalog_sync.api.deps import require_admin_api_key
from catalog_sync.db.models import ScrapeJobStatus
from catalog_sync.worker.job_queue import ScrapeJobQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


class JobCreate(BaseModel):
    """Request model for enqueueing a URL."""
    url: HttpUrl


class JobResponse(BaseModel):
    """Response model for a scrape job."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    status: str
    attempts: int
    error_message: Optional[str]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


def get_job_queue() -> ScrapeJobQueue:
    return ScrapeJobQueue()


@router.post(
    "",
    response_model=JobResponse,
    status_code=201,
    dependencies=[Depends(require_admin_api_key)],
)
async def enqueue_job(request: JobCreate, queue: ScrapeJobQueue = Depends(get_job_queue)):
    """Queue a product or category page for the browser worker."""
    return await queue.enqueue(str(request.url))


@router.get("", response_model=List[JobResponse])
async def list_jobs(
    status: Optional[str] = None,
    limit: int = 50,
    queue: ScrapeJobQueue = Depends(get_job_queue),
):
    """List recent jobs, newest first, optionally filtered by status."""
    if status and status.upper() not in ScrapeJobStatus.__members__:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    return await queue.list_jobs(status=status, limit=min(max(limit, 1), 500))


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: int, queue: ScrapeJobQueue = Depends(get_job_queue)):
    """Get a single job."""
    job = await queue.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post(
    "/{job_id}/retry",
    response_model=JobResponse,
    dependencies=[Depends(require_admin_api_key)],
)
async def retry_job(job_id: int, queue: ScrapeJobQueue = Depends(get_job_queue)):
    """Put a FAILED job back to PENDING."""
    job = await queue.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if not await queue.retry_failed(job_id):
        raise HTTPException(status_code=409, detail=f"Job is {job.status}, only FAILED jobs can be retried")
    logger.info(f"Job {job_id} re-queued by operator")
    return await queue.get(job_id)
