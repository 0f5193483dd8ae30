"""Shared fixtures for the bill analyzer tests."""

from __future__ import annotations

from typing import Optional

import fitz
import pytest

from db.ledger import InMemoryJobLedger
from db.models import InputDocument
from pipeline.batch_coordinator import BatchCoordinator
from pipeline.document_processor import DocumentProcessor, build_pdf_executor
from services.job_service import JobStateMachine
from services.pdf_service import InMemoryDocumentStore, save_pdf

HOST = "comparador.cnmc.gob.es"


def comparator_url(query: str) -> str:
    return f"https://{HOST}/comparador/listado/Luz/1/28001/4/3?{query}"


def make_pdf(pages: Optional[list[list[dict]]] = None) -> bytes:
    """Build a PDF whose pages carry the given link dicts.

    Each link dict is passed to ``Page.insert_link``; ``"from"`` is filled
    in when missing. A link with ``kind == "goto"`` becomes an internal jump.
    """
    pages = pages if pages is not None else [[]]
    doc = fitz.open()
    for _ in pages:
        doc.new_page()
    for page, links in zip(doc, pages):
        page.insert_text((72, 72), "Factura de electricidad")
        for i, link in enumerate(links):
            rect = fitz.Rect(50, 100 + 30 * i, 300, 120 + 30 * i)
            if link.get("kind") == "goto":
                page.insert_link({"kind": fitz.LINK_GOTO, "from": rect, "page": 0})
            else:
                page.insert_link({"kind": fitz.LINK_URI, "from": rect, "uri": link["uri"]})
    data = doc.tobytes()
    doc.close()
    return data


def make_bill(query: str) -> bytes:
    """A one-page bill with a single comparator link."""
    return make_pdf([[{"uri": comparator_url(query)}]])


@pytest.fixture
def input_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore("pdfs")


@pytest.fixture
def output_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore("outputs")


@pytest.fixture
def ledger() -> InMemoryJobLedger:
    return InMemoryJobLedger()


@pytest.fixture
def jobs(ledger) -> JobStateMachine:
    return JobStateMachine(ledger)


@pytest.fixture(scope="session")
def pdf_executor():
    executor = build_pdf_executor(max_workers=5)
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture
def processor(input_store, pdf_executor) -> DocumentProcessor:
    return DocumentProcessor(input_store, host=HOST, executor=pdf_executor)


@pytest.fixture
def coordinator(processor, output_store, jobs) -> BatchCoordinator:
    return BatchCoordinator(processor, output_store, jobs, timeout=None, max_files=5)


@pytest.fixture
def upload(input_store):
    """Store raw bytes as an upload and return the InputDocument."""

    def _upload(data: bytes, filename: str = "factura.pdf") -> InputDocument:
        return save_pdf(input_store, filename, data)

    return _upload
