"""
API Schemas
===========
Pydantic models for request / response validation on API endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from db.models import Job, JobState
from schemas.records import ProcessingFailure, SummaryStats

PROGRESS_BY_STATE = {
    JobState.PENDING: 0.0,
    JobState.PROCESSING: 50.0,
    JobState.COMPLETED: 100.0,
    JobState.ERROR: 100.0,
}


# ── Upload ────────────────────────────────────────────────
class UploadResponse(BaseModel):
    """Response returned after a successful PDF upload."""

    job_id: str
    filenames: list[str]
    message: str = "Files uploaded and processing started"


# ── Job Status ────────────────────────────────────────────
class JobStatusResponse(BaseModel):
    """Current status of a batch analysis job."""

    job_id: str
    status: JobState
    progress_pct: float = 0.0
    output_file: Optional[str] = None
    error: Optional[str] = None
    summary_stats: Optional[SummaryStats] = None
    failures: list[ProcessingFailure] = []
    poll_interval_seconds: float = 2.0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: Job, poll_interval_seconds: float) -> "JobStatusResponse":
        return cls(
            job_id=job.job_id,
            status=job.status,
            progress_pct=PROGRESS_BY_STATE[job.status],
            output_file=job.output_file,
            error=job.error,
            summary_stats=job.summary_stats,
            failures=job.failures,
            poll_interval_seconds=poll_interval_seconds,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )
