"""Tests for the job state machine and the in-memory ledger."""

from __future__ import annotations

import threading

import pytest

from db.ledger import InMemoryJobLedger
from db.models import InputDocument, JobState
from schemas.records import SummaryStats
from services.job_service import ALLOWED_TRANSITIONS, JobStateMachine, check_transition
from utils.exceptions import InvalidTransitionError, JobNotFoundError, LedgerError

DOCS = [InputDocument(doc_id="d1", filename="a.pdf", path="d1-a.pdf", size=10)]
STATS = SummaryStats(
    total_files_processed=1,
    total_consumption_p1=100.0,
    total_amount=50.0,
    average_monthly_cost=50.0,
)


def test_start_moves_job_to_processing(jobs) -> None:
    job = jobs.start(DOCS)

    assert job.status == JobState.PROCESSING
    assert job.input_files == DOCS
    assert job.output_file is None
    assert job.summary_stats is None


def test_complete_attaches_everything_at_once(jobs) -> None:
    job = jobs.start(DOCS)

    done = jobs.complete(job.job_id, "out.csv", STATS)

    assert done.status == JobState.COMPLETED
    assert done.output_file == "out.csv"
    assert done.summary_stats == STATS
    assert done.updated_at >= job.updated_at
    assert jobs.get(job.job_id) == done


def test_fail_records_detail(jobs) -> None:
    job = jobs.start(DOCS)

    failed = jobs.fail(job.job_id, "No valid data could be extracted from the PDFs")

    assert failed.status == JobState.ERROR
    assert failed.error == "No valid data could be extracted from the PDFs"


def test_terminal_states_are_final(jobs) -> None:
    job = jobs.start(DOCS)
    jobs.complete(job.job_id, "out.csv", STATS)

    with pytest.raises(InvalidTransitionError):
        jobs.fail(job.job_id, "late error")
    with pytest.raises(InvalidTransitionError):
        jobs.complete(job.job_id, "other.csv", STATS)

    assert jobs.get(job.job_id).output_file == "out.csv"


@pytest.mark.parametrize("state", list(JobState))
def test_transition_table(state) -> None:
    for target in JobState:
        if target in ALLOWED_TRANSITIONS[state]:
            check_transition(state, target)
        else:
            with pytest.raises(InvalidTransitionError):
                check_transition(state, target)


def test_only_one_concurrent_terminal_write_wins(jobs) -> None:
    job = jobs.start(DOCS)
    outcomes: list[str] = []
    start = threading.Barrier(8)

    def _finish(i: int) -> None:
        start.wait()
        try:
            jobs.complete(job.job_id, f"out-{i}.csv", STATS)
            outcomes.append("ok")
        except InvalidTransitionError:
            outcomes.append("rejected")

    threads = [threading.Thread(target=_finish, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 7


def test_polling_does_not_mutate(jobs) -> None:
    job = jobs.start(DOCS)
    assert jobs.get(job.job_id) == jobs.get(job.job_id) == job


def test_unknown_job(jobs, ledger) -> None:
    with pytest.raises(JobNotFoundError):
        jobs.get("nope")
    with pytest.raises(JobNotFoundError):
        ledger.update("nope", JobState.PROCESSING, JobState.ERROR, error="x")


def test_ledger_rejects_unknown_fields(ledger) -> None:
    job_id = ledger.create(DOCS)
    with pytest.raises(LedgerError):
        ledger.update(job_id, JobState.PENDING, JobState.PROCESSING, input_files=[])
    assert ledger.get(job_id).status == JobState.PENDING


class _UpdatesFail(InMemoryJobLedger):
    def update(self, job_id, expected, status, **fields):
        raise LedgerError("ledger unavailable")


def test_start_is_a_single_ledger_write() -> None:
    ledger = _UpdatesFail()

    job = JobStateMachine(ledger).start(DOCS)

    assert job.status == JobState.PROCESSING
    assert ledger.get(job.job_id).status == JobState.PROCESSING


class _ReadsFail(InMemoryJobLedger):
    def get(self, job_id):
        raise LedgerError("ledger unavailable")


def test_start_marks_job_failed_when_it_cannot_be_read_back() -> None:
    ledger = _ReadsFail()

    with pytest.raises(LedgerError):
        JobStateMachine(ledger).start(DOCS)

    (stored,) = ledger._jobs.values()
    assert stored.status == JobState.ERROR
    assert stored.error == "Job could not be started"


def test_no_job_is_left_pending(jobs, ledger) -> None:
    job = jobs.start(DOCS)
    assert all(j.status != JobState.PENDING for j in ledger._jobs.values())
    assert job.job_id in ledger._jobs


@pytest.mark.parametrize("state", [JobState.COMPLETED, JobState.ERROR])
def test_terminal_state_message(state) -> None:
    assert state.is_terminal
    with pytest.raises(InvalidTransitionError, match="already"):
        check_transition(state, JobState.PROCESSING)
