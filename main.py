"""
Electricity Bill Analyzer Backend — Entry Point
================================================
FastAPI application that receives electricity-bill PDFs, extracts the
CNMC comparator link from each one, and produces a CSV report with
summary statistics that clients poll for.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import Settings, settings
from api.routes import router as api_router
from db.ledger import InMemoryJobLedger, JobLedger, SnowflakeJobLedger
from db.snowflake_client import init_tables
from pipeline.batch_coordinator import BatchCoordinator, JobRunner
from pipeline.document_processor import DocumentProcessor
from services.job_service import JobStateMachine
from services.pdf_service import build_store


def build_ledger(backend: str) -> JobLedger:
    if backend == "memory":
        return InMemoryJobLedger()
    if backend == "snowflake":
        return SnowflakeJobLedger()
    raise ValueError(f"Unknown storage backend: {backend}")


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """Application factory."""
    config = config or settings

    app = FastAPI(
        title="Electricity Bill Analyzer",
        description="Extracts CNMC comparator data from electricity bills",
        version="0.1.0",
    )

    # ── CORS (allow frontend origin) ──────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Collaborators ─────────────────────────────────────
    input_store = build_store(config.STORAGE_BACKEND, config.INPUT_BUCKET)
    output_store = build_store(config.STORAGE_BACKEND, config.OUTPUT_BUCKET)
    jobs = JobStateMachine(build_ledger(config.STORAGE_BACKEND))
    processor = DocumentProcessor(input_store, host=config.COMPARATOR_HOST)
    coordinator = BatchCoordinator(
        processor=processor,
        output_store=output_store,
        jobs=jobs,
        timeout=config.DOCUMENT_TIMEOUT_SECONDS,
        max_files=config.MAX_FILES,
        report_filename=config.REPORT_FILENAME,
    )

    app.state.config = config
    app.state.input_store = input_store
    app.state.output_store = output_store
    app.state.jobs = jobs
    app.state.runner = JobRunner(coordinator)

    # ── Register routers ──────────────────────────────────
    app.include_router(api_router, prefix="/api")

    # ── Lifecycle events ──────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        """Initialize database tables on first run."""
        if config.STORAGE_BACKEND == "snowflake":
            init_tables()

    @app.on_event("shutdown")
    async def on_shutdown():
        """Let in-flight batches reach a terminal state, then stop the PDF workers."""
        await app.state.runner.wait_all()
        processor.close()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
