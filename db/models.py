"""
Database Models
===============
Pydantic models representing rows in the job ledger and document store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.records import ProcessingFailure, SummaryStats


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    """Lifecycle of a batch analysis job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.ERROR)


class InputDocument(BaseModel):
    """A single uploaded PDF, as accepted by the submission endpoint."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    filename: str
    path: str
    content_type: str = "application/pdf"
    size: int = 0


class Job(BaseModel):
    """One batch analysis job as stored in the ledger."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    status: JobState = JobState.PENDING
    input_files: list[InputDocument] = []
    output_file: Optional[str] = None
    error: Optional[str] = None
    summary_stats: Optional[SummaryStats] = None
    failures: list[ProcessingFailure] = []
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
