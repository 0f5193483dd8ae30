"""
Link Extractor
==============
Finds the comparator-service hyperlink embedded in a bill's link
annotations. Only the page/annotation structure is read; nothing is
rendered.

PyMuPDF is not thread-safe, so ``scan_pdf`` is the unit of work handed to
a process pool: it takes raw bytes and returns a plain string.
"""

from __future__ import annotations

from typing import Optional

import fitz  # PyMuPDF

from config.settings import settings
from utils.exceptions import DocumentParseError, NoQualifyingLinkError


def iter_link_uris(doc: fitz.Document):
    """Yield external link URIs in page order, then annotation order."""
    for page in doc:
        for link in page.get_links():
            # Internal jumps, launch actions etc. carry no URI.
            if link.get("kind") != fitz.LINK_URI:
                continue
            uri = link.get("uri")
            if uri:
                yield uri


def find_comparator_url(doc: fitz.Document, host: Optional[str] = None) -> Optional[str]:
    """
    Return the first link URI containing the comparator host, or None.

    A document without such a link is an expected outcome, not an error.
    """
    host = host or settings.COMPARATOR_HOST
    for uri in iter_link_uris(doc):
        if host in uri:
            return uri
    return None


def scan_pdf(pdf_bytes: bytes, filename: str, host: str) -> str:
    """
    Parse ``pdf_bytes`` and return its comparator link.

    Raises DocumentParseError for unreadable input and NoQualifyingLinkError
    when the document has no matching link.
    """
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise DocumentParseError(f"Could not parse {filename} as a PDF: {exc}") from None

    with doc:
        if doc.page_count == 0:
            raise DocumentParseError(f"{filename} has no pages")
        try:
            url = find_comparator_url(doc, host)
        except Exception as exc:
            raise DocumentParseError(f"Could not read links in {filename}: {exc}") from None

    if url is None:
        raise NoQualifyingLinkError(f"No {host} link found in {filename}")
    return url
