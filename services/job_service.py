"""
Job Service
===========
State machine for batch analysis jobs:

  pending → processing → completed | error

Every transition goes through the ledger's compare-and-set, so two
concurrent attempts to finish the same job cannot both succeed and a
terminal job never changes again.
"""

from __future__ import annotations

from db.ledger import JobLedger
from db.models import InputDocument, Job, JobState
from schemas.records import ProcessingFailure, SummaryStats
from utils.exceptions import InvalidTransitionError, LedgerError
from utils.helpers import get_logger

logger = get_logger("jobs")

ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.PROCESSING}),
    JobState.PROCESSING: frozenset({JobState.COMPLETED, JobState.ERROR}),
    JobState.COMPLETED: frozenset(),
    JobState.ERROR: frozenset(),
}


def check_transition(current: JobState, target: JobState) -> None:
    """Raise InvalidTransitionError unless ``current → target`` is allowed."""
    if current.is_terminal:
        raise InvalidTransitionError(f"Job is already '{current.value}'.")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move job from '{current.value}' to '{target.value}'."
        )


class JobStateMachine:
    """Drives jobs through their lifecycle on top of an explicit ledger."""

    def __init__(self, ledger: JobLedger) -> None:
        self.ledger = ledger

    def _transition(self, job_id: str, current: JobState, target: JobState, **fields) -> Job:
        check_transition(current, target)
        job = self.ledger.update(job_id, current, target, **fields)
        logger.info("Job %s: %s -> %s", job_id, current.value, target.value)
        return job

    def start(self, input_files: list[InputDocument]) -> Job:
        """
        Create a job for ``input_files`` already marked as processing.

        The pending → processing step is folded into the insert so a ledger
        failure cannot strand a job in ``pending``.
        """
        check_transition(JobState.PENDING, JobState.PROCESSING)
        job_id = self.ledger.create(input_files, status=JobState.PROCESSING)
        logger.info("Job %s: created as %s", job_id, JobState.PROCESSING.value)
        try:
            return self.ledger.get(job_id)
        except LedgerError:
            self._abandon(job_id)
            raise

    def _abandon(self, job_id: str) -> None:
        """Best-effort terminal write for a job whose caller gave up on it."""
        try:
            self.ledger.update(job_id, JobState.PROCESSING, JobState.ERROR,
                               error="Job could not be started")
        except LedgerError as exc:
            logger.error("Could not mark job %s as failed: %s", job_id, exc)

    def complete(self, job_id: str, output_file: str, summary_stats: SummaryStats,
                 failures: list[ProcessingFailure] | None = None) -> Job:
        """Attach the report and statistics in one terminal write."""
        return self._transition(
            job_id,
            JobState.PROCESSING,
            JobState.COMPLETED,
            output_file=output_file,
            summary_stats=summary_stats,
            failures=list(failures or []),
        )

    def fail(self, job_id: str, error: str,
             failures: list[ProcessingFailure] | None = None) -> Job:
        """Record the error detail in one terminal write."""
        return self._transition(
            job_id,
            JobState.PROCESSING,
            JobState.ERROR,
            error=error,
            failures=list(failures or []),
        )

    def get(self, job_id: str) -> Job:
        """Read-only view for pollers."""
        return self.ledger.get(job_id)
