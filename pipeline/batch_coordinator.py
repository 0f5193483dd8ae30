"""
Batch Coordinator
=================
Fans a batch of uploaded bills out to one extraction task each, joins
them, and turns the successes into summary statistics and a CSV report.

A batch succeeds as long as one document yields a record; documents that
fail are kept as diagnostics on the job.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from pydantic import BaseModel

from config.settings import settings
from db.models import InputDocument, Job
from pipeline.document_processor import DocumentProcessor, failure_from_error
from pipeline.report_writer import REPORT_CONTENT_TYPE, build_csv
from schemas.records import (
    DateRange,
    DocumentResult,
    ExtractedRecord,
    ProcessingFailure,
    SummaryStats,
)
from services.job_service import JobStateMachine
from services.pdf_service import DocumentStore
from utils.exceptions import NoValidDataError
from utils.helpers import get_logger

logger = get_logger("batch")


class BatchOutcome(BaseModel):
    """Every document's result, split by arm."""

    records: list[ExtractedRecord] = []
    failures: list[ProcessingFailure] = []

    @classmethod
    def from_results(cls, results: list[DocumentResult]) -> "BatchOutcome":
        outcome = cls()
        for result in results:
            if isinstance(result, ExtractedRecord):
                outcome.records.append(result)
            elif isinstance(result, ProcessingFailure):
                outcome.failures.append(result)
            else:
                raise TypeError(f"Unexpected document result: {type(result).__name__}")
        return outcome


def summarize(records: list[ExtractedRecord], failed_files: int = 0) -> SummaryStats:
    """
    Aggregate statistics over successful records only.

    Dates are compared as strings; records without a value are ignored.
    Raises NoValidDataError for an empty list, since the average is undefined.
    """
    if not records:
        raise NoValidDataError()

    total_amount = sum(r.total_amount for r in records)
    starts = [r.billing_start_date for r in records if r.billing_start_date]
    ends = [r.billing_end_date for r in records if r.billing_end_date]

    return SummaryStats(
        total_files_processed=len(records),
        total_consumption_p1=sum(r.consumption_p1 for r in records),
        total_amount=total_amount,
        average_monthly_cost=total_amount / len(records),
        date_range=DateRange(start=min(starts, default=""), end=max(ends, default="")),
        failed_files=failed_files,
    )


class BatchCoordinator:
    """Runs the extraction pipeline over a batch and settles its job."""

    def __init__(
        self,
        processor: DocumentProcessor,
        output_store: DocumentStore,
        jobs: JobStateMachine,
        timeout: Optional[float] = None,
        max_files: Optional[int] = None,
        report_filename: Optional[str] = None,
    ) -> None:
        self.processor = processor
        self.output_store = output_store
        self.jobs = jobs
        self.timeout = timeout if timeout is not None else settings.DOCUMENT_TIMEOUT_SECONDS
        self.max_files = max_files or settings.MAX_FILES
        self.report_filename = report_filename or settings.REPORT_FILENAME

    async def process_one(self, document: InputDocument) -> DocumentResult:
        """Process one document; any error or timeout becomes a failure."""
        try:
            call = self.processor.process(document)
            if self.timeout is not None:
                return await asyncio.wait_for(call, self.timeout)
            return await call
        except asyncio.TimeoutError:
            timeout = TimeoutError(f"Timed out after {self.timeout}s processing {document.filename}")
            logger.warning("%s", timeout)
            return failure_from_error(document, timeout)
        except Exception as exc:
            logger.exception("Unexpected error processing %s", document.filename)
            return failure_from_error(document, exc)

    async def collect(self, documents: list[InputDocument]) -> BatchOutcome:
        """Process every document concurrently and wait for all of them."""
        if not 1 <= len(documents) <= self.max_files:
            raise ValueError(f"A batch must contain 1 to {self.max_files} documents, got {len(documents)}.")

        results = await asyncio.gather(*(self.process_one(doc) for doc in documents))
        outcome = BatchOutcome.from_results(list(results))

        assert len(outcome.records) + len(outcome.failures) == len(documents)
        logger.info(
            "Batch settled: %d record(s), %d failure(s)",
            len(outcome.records),
            len(outcome.failures),
        )
        return outcome

    async def write_report(self, job_id: str, records: list[ExtractedRecord]) -> str:
        """Store the CSV report and return its path in the output bucket."""
        output_path = f"{job_id}/{self.report_filename}"
        return await asyncio.to_thread(
            self.output_store.store,
            build_csv(records),
            output_path,
            REPORT_CONTENT_TYPE,
            True,
        )

    async def run(self, job_id: str, documents: list[InputDocument]) -> Job:
        """
        Process the batch and perform the job's single terminal transition.

        Ledger errors from that transition propagate to the caller.
        """
        failures: list[ProcessingFailure] = []
        try:
            outcome = await self.collect(documents)
            failures = outcome.failures
            stats = summarize(outcome.records, failed_files=len(failures))
            output_file = await self.write_report(job_id, outcome.records)
        except Exception as exc:
            logger.error("Processing error for job %s: %s", job_id, exc)
            return await asyncio.to_thread(self.jobs.fail, job_id, str(exc), failures)

        return await asyncio.to_thread(self.jobs.complete, job_id, output_file, stats, failures)


class JobRunner:
    """
    Starts batch jobs in the background and keeps their task handles.

    The handle for a running job can be awaited (tests, shutdown) or
    inspected; completion itself is reported through the ledger.
    """

    def __init__(self, coordinator: BatchCoordinator) -> None:
        self.coordinator = coordinator
        self.tasks: dict[str, asyncio.Task] = {}

    async def submit(self, documents: list[InputDocument]) -> tuple[Job, asyncio.Task]:
        """Create the job, dispatch its batch and return both."""
        job = await asyncio.to_thread(self.coordinator.jobs.start, documents)
        task = asyncio.create_task(self.coordinator.run(job.job_id, documents))
        self.tasks[job.job_id] = task
        task.add_done_callback(lambda t, job_id=job.job_id: self._on_done(job_id, t))
        return job, task

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        self.tasks.pop(job_id, None)
        if task.cancelled():
            logger.warning("Job %s task was cancelled", job_id)
        elif task.exception() is not None:
            logger.error("Job %s could not be settled: %s", job_id, task.exception())

    async def wait_all(self) -> None:
        """Wait for every in-flight job, e.g. on shutdown."""
        if self.tasks:
            await asyncio.gather(*self.tasks.values(), return_exceptions=True)
