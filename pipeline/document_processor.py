"""
Document Processor — LangGraph Pipeline
=======================================
A LangGraph StateGraph that turns one uploaded bill into either an
ExtractedRecord or a ProcessingFailure:

  Fetch → Scan (parse + locate link) → Decode → END

Fetching runs on a worker thread; scanning runs in a process pool because
PyMuPDF must not be used from several threads at once. Each node
short-circuits once an earlier node has recorded an error, so a document
always leaves the graph with exactly one outcome.
"""

from __future__ import annotations

import asyncio
import multiprocessing
from concurrent.futures import Executor, ProcessPoolExecutor
from typing import Optional, TypedDict

from langgraph.graph import END, StateGraph

from config.settings import settings
from db.models import InputDocument
from pipeline.link_extractor import scan_pdf
from pipeline.parameter_decoder import decode_parameters
from schemas.records import DocumentResult, ExtractedRecord, ProcessingFailure
from services.pdf_service import DocumentStore, get_pdf
from utils.helpers import get_logger

logger = get_logger("processor")


# ── Pipeline State ────────────────────────────────────────
class DocumentState(TypedDict, total=False):
    """Shared state passed between nodes in the LangGraph."""

    document: InputDocument
    pdf_bytes: bytes
    cnmc_url: str
    record: ExtractedRecord
    error: Optional[Exception]


def failure_from_error(document: InputDocument, exc: BaseException) -> ProcessingFailure:
    """Describe why ``document`` produced no record."""
    return ProcessingFailure(
        doc_id=document.doc_id,
        filename=document.filename,
        reason=str(exc) or type(exc).__name__,
        error_type=type(exc).__name__,
    )


def build_pdf_executor(max_workers: Optional[int] = None) -> ProcessPoolExecutor:
    """Process pool for PDF scanning; spawned so workers inherit no threads."""
    return ProcessPoolExecutor(
        max_workers=max_workers or settings.MAX_FILES,
        mp_context=multiprocessing.get_context("spawn"),
    )


class DocumentProcessor:
    """Runs the extraction graph for single documents."""

    def __init__(self, store: DocumentStore, host: Optional[str] = None,
                 executor: Optional[Executor] = None) -> None:
        self.store = store
        self.host = host or settings.COMPARATOR_HOST
        self._executor = executor
        self._owns_executor = executor is None
        self.graph = self._build_graph()

    @property
    def executor(self) -> Executor:
        if self._executor is None:
            self._executor = build_pdf_executor()
        return self._executor

    def close(self) -> None:
        """Shut down the process pool if this processor created it."""
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ── Node Functions ────────────────────────────────────
    async def fetch_node(self, state: DocumentState) -> DocumentState:
        """Load the PDF bytes from the document store."""
        try:
            pdf_bytes = await asyncio.to_thread(get_pdf, self.store, state["document"])
        except Exception as exc:
            return {**state, "error": exc}
        return {**state, "pdf_bytes": pdf_bytes}

    async def scan_node(self, state: DocumentState) -> DocumentState:
        """Parse the PDF and find the first qualifying comparator link."""
        if state.get("error"):
            return state
        document = state["document"]
        loop = asyncio.get_running_loop()
        try:
            url = await loop.run_in_executor(
                self.executor, scan_pdf, state["pdf_bytes"], document.filename, self.host
            )
        except Exception as exc:
            return {**state, "error": exc}
        return {**state, "cnmc_url": url}

    async def decode_node(self, state: DocumentState) -> DocumentState:
        """Decode the link parameters and attach file metadata."""
        if state.get("error"):
            return state
        document = state["document"]
        try:
            record = decode_parameters(state["cnmc_url"]).model_copy(
                update={"filename": document.filename, "filepath": document.path}
            )
        except Exception as exc:
            return {**state, "error": exc}
        return {**state, "record": record}

    # ── Build the Graph ───────────────────────────────────
    def _build_graph(self):
        """Construct and compile the extraction graph."""
        graph = StateGraph(DocumentState)

        graph.add_node("fetch", self.fetch_node)
        graph.add_node("scan", self.scan_node)
        graph.add_node("decode", self.decode_node)

        graph.set_entry_point("fetch")
        graph.add_edge("fetch", "scan")
        graph.add_edge("scan", "decode")
        graph.add_edge("decode", END)

        return graph.compile()

    async def process(self, document: InputDocument) -> DocumentResult:
        """Execute the full extraction graph for ``document``."""
        result = await self.graph.ainvoke({"document": document})
        error = result.get("error")
        if error is not None:
            logger.warning("Skipping %s: %s", document.filename, error)
            return failure_from_error(document, error)
        logger.info("Extracted record from %s", document.filename)
        return result["record"]
