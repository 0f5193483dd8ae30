"""
API Routes
==========
FastAPI router exposing endpoints for PDF upload, job status polling,
and report download.
"""

import asyncio

from fastapi import APIRouter, File, HTTPException, Request, Response, UploadFile

from db.models import InputDocument, JobState
from pipeline.batch_coordinator import JobRunner
from schemas.api_schemas import JobStatusResponse, UploadResponse
from services.job_service import JobStateMachine
from services.pdf_service import DocumentStore, save_pdf
from utils.exceptions import JobNotFoundError, LedgerError, StorageError
from utils.helpers import get_logger

logger = get_logger("api")

router = APIRouter()


async def _get_job(request: Request, job_id: str):
    jobs: JobStateMachine = request.app.state.jobs
    try:
        return await asyncio.to_thread(jobs.get, job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found.")
    except LedgerError as exc:
        logger.error("Status read failed for job %s: %s", job_id, exc)
        raise HTTPException(status_code=503, detail="Job status is temporarily unavailable.")


async def _discard_uploads(store: DocumentStore, documents: list[InputDocument]) -> None:
    """Remove the stored uploads of a batch that will never run."""
    for document in documents:
        try:
            await asyncio.to_thread(store.delete, document.path)
        except StorageError as exc:
            logger.error("Could not remove orphaned upload %s: %s", document.path, exc)


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/upload", response_model=UploadResponse)
async def upload_pdfs(request: Request, files: list[UploadFile] = File(...)):
    """
    Accept up to MAX_FILES PDF files, store them, and start the batch
    analysis in the background. Poll ``/status/{job_id}`` for the outcome.
    """
    config = request.app.state.config
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded.")
    if len(files) > config.MAX_FILES:
        raise HTTPException(
            status_code=400,
            detail=f"Please upload a maximum of {config.MAX_FILES} files.",
        )
    for f in files:
        if f.content_type not in config.ALLOWED_CONTENT_TYPES:
            raise HTTPException(status_code=415, detail="Please upload only PDF files.")

    payloads: list[tuple[UploadFile, bytes]] = []
    for f in files:
        contents = await f.read()
        if len(contents) > config.MAX_FILE_SIZE_BYTES:
            raise HTTPException(status_code=413, detail=f"{f.filename} is too large.")
        payloads.append((f, contents))

    input_store: DocumentStore = request.app.state.input_store
    results = await asyncio.gather(
        *(
            asyncio.to_thread(save_pdf, input_store, f.filename, contents, f.content_type)
            for f, contents in payloads
        ),
        return_exceptions=True,
    )
    documents = [r for r in results if isinstance(r, InputDocument)]
    errors = [r for r in results if isinstance(r, BaseException)]
    if errors:
        await _discard_uploads(input_store, documents)
        if not isinstance(errors[0], StorageError):
            raise errors[0]
        logger.error("Upload failed: %s", errors[0])
        raise HTTPException(status_code=500, detail=f"Failed to store PDFs: {errors[0]}")

    runner: JobRunner = request.app.state.runner
    try:
        job, _task = await runner.submit(documents)
    except LedgerError as exc:
        logger.error("Could not create job: %s", exc)
        await _discard_uploads(input_store, documents)
        raise HTTPException(status_code=503, detail="Could not start processing.")

    return UploadResponse(job_id=job.job_id, filenames=[d.filename for d in documents])


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_status(request: Request, job_id: str):
    """Return the current processing status for a job."""
    job = await _get_job(request, job_id)
    return JobStatusResponse.from_job(job, request.app.state.config.POLL_INTERVAL_SECONDS)


@router.get("/results/{job_id}")
async def get_results(request: Request, job_id: str):
    """Download the CSV report of a completed job."""
    job = await _get_job(request, job_id)
    if job.status == JobState.ERROR:
        raise HTTPException(status_code=409, detail=job.error or "Processing failed.")
    if job.status != JobState.COMPLETED or not job.output_file:
        raise HTTPException(status_code=202, detail="Job still processing.")

    output_store: DocumentStore = request.app.state.output_store
    try:
        content = await asyncio.to_thread(output_store.fetch, job.output_file)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to download results: {exc}")

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="analysis-results.csv"'},
    )
