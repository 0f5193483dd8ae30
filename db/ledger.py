"""
Job Ledger
==========
Persistent record of batch analysis jobs.

``update`` is a compare-and-set on the job's current status: every field of
the new state is written in one step, and only if the job is still in the
expected state. Pollers therefore never see a half-written terminal job.
"""

from __future__ import annotations

import json
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any

import snowflake.connector

from db.models import InputDocument, Job, JobState, utcnow
from db.snowflake_client import get_connection
from schemas.records import ProcessingFailure, SummaryStats
from utils.exceptions import InvalidTransitionError, JobNotFoundError, LedgerError
from utils.helpers import get_logger

logger = get_logger("ledger")

# Columns that callers may change through ``update``.
UPDATABLE_FIELDS = ("output_file", "error", "summary_stats", "failures")


class JobLedger(ABC):
    """Storage contract for jobs."""

    @abstractmethod
    def create(self, input_files: list[InputDocument], status: JobState = JobState.PENDING) -> str:
        """Insert a new job in ``status`` and return its id."""

    @abstractmethod
    def update(self, job_id: str, expected: JobState, status: JobState, **fields: Any) -> Job:
        """Atomically move ``job_id`` from ``expected`` to ``status``."""

    @abstractmethod
    def get(self, job_id: str) -> Job:
        """Return the job or raise ``JobNotFoundError``."""


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise LedgerError(f"Cannot update job fields: {sorted(unknown)}")


# ── In-memory ─────────────────────────────────────────────
class InMemoryJobLedger(JobLedger):
    """Process-local ledger; the default backend and the one used in tests."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, input_files: list[InputDocument], status: JobState = JobState.PENDING) -> str:
        job = Job(job_id=str(uuid.uuid4()), status=status, input_files=list(input_files))
        with self._lock:
            self._jobs[job.job_id] = job
        return job.job_id

    def update(self, job_id: str, expected: JobState, status: JobState, **fields: Any) -> Job:
        _check_fields(fields)
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFoundError(f"Job {job_id} not found.")
            if current.status != expected:
                raise InvalidTransitionError(
                    f"Job {job_id} is '{current.status.value}', expected '{expected.value}'."
                )
            # Jobs are frozen; swapping the whole object keeps readers consistent.
            updated = current.model_copy(update={**fields, "status": status, "updated_at": utcnow()})
            self._jobs[job_id] = updated
        return updated

    def get(self, job_id: str) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found.")
        return job


# ── Snowflake ─────────────────────────────────────────────
def _dump(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        return json.dumps([item.model_dump(mode="json") for item in value])
    return json.dumps(value.model_dump(mode="json"))


def _load(value: Any) -> Any:
    # VARIANT columns come back as JSON text.
    if value is None or not isinstance(value, str):
        return value
    return json.loads(value)


class SnowflakeJobLedger(JobLedger):
    """Ledger backed by the ``analysis_jobs`` table."""

    def create(self, input_files: list[InputDocument], status: JobState = JobState.PENDING) -> str:
        job_id = str(uuid.uuid4())
        conn = None
        try:
            conn = get_connection()
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO analysis_jobs (job_id, status, input_files, failures)
                SELECT %s, %s, PARSE_JSON(%s), PARSE_JSON('[]')
                """,
                (job_id, status.value, _dump(list(input_files))),
            )
        except snowflake.connector.errors.Error as exc:
            logger.error("Job insert failed: %s", exc)
            raise LedgerError(f"Failed to create job: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()
        return job_id

    def update(self, job_id: str, expected: JobState, status: JobState, **fields: Any) -> Job:
        _check_fields(fields)
        conn = None
        try:
            conn = get_connection()
            cur = conn.cursor()
            # Single statement: status and payload change together.
            cur.execute(
                """
                UPDATE analysis_jobs
                SET status = %s,
                    output_file = %s,
                    error = %s,
                    summary_stats = PARSE_JSON(%s),
                    failures = PARSE_JSON(%s),
                    updated_at = CURRENT_TIMESTAMP()
                WHERE job_id = %s AND status = %s
                """,
                (
                    status.value,
                    fields.get("output_file"),
                    fields.get("error"),
                    _dump(fields.get("summary_stats")),
                    _dump(fields.get("failures", [])),
                    job_id,
                    expected.value,
                ),
            )
            changed = cur.rowcount
        except snowflake.connector.errors.Error as exc:
            logger.error("Job %s update to %s failed: %s", job_id, status.value, exc)
            raise LedgerError(f"Failed to update job {job_id}: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()

        job = self.get(job_id)
        if not changed:
            raise InvalidTransitionError(
                f"Job {job_id} is '{job.status.value}', expected '{expected.value}'."
            )
        return job

    def get(self, job_id: str) -> Job:
        conn = None
        try:
            conn = get_connection()
            cur = conn.cursor()
            cur.execute(
                """
                SELECT job_id, status, input_files, output_file, error,
                       summary_stats, failures, created_at, updated_at
                FROM analysis_jobs WHERE job_id = %s
                """,
                (job_id,),
            )
            row = cur.fetchone()
        except snowflake.connector.errors.Error as exc:
            logger.error("Job %s read failed: %s", job_id, exc)
            raise LedgerError(f"Failed to read job {job_id}: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()

        if row is None:
            raise JobNotFoundError(f"Job {job_id} not found.")
        stats = _load(row[5])
        return Job(
            job_id=row[0],
            status=JobState(row[1]),
            input_files=[InputDocument(**item) for item in _load(row[2]) or []],
            output_file=row[3],
            error=row[4],
            summary_stats=SummaryStats(**stats) if stats else None,
            failures=[ProcessingFailure(**item) for item in _load(row[6]) or []],
            created_at=row[7],
            updated_at=row[8],
        )
