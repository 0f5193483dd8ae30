"""Tests for the comparator link extractor."""

from __future__ import annotations

import pickle

import fitz
import pytest

from pipeline.link_extractor import find_comparator_url, iter_link_uris, scan_pdf
from utils.exceptions import DocumentParseError, NoQualifyingLinkError

from conftest import HOST, comparator_url, make_pdf


def _open(data: bytes) -> fitz.Document:
    return fitz.open(stream=data, filetype="pdf")


def test_finds_single_link() -> None:
    url = comparator_url("caP1=100")
    with _open(make_pdf([[{"uri": url}]])) as doc:
        assert find_comparator_url(doc, HOST) == url


def test_returns_none_without_annotations() -> None:
    with _open(make_pdf([[], []])) as doc:
        assert find_comparator_url(doc, HOST) is None


def test_ignores_links_to_other_hosts() -> None:
    with _open(make_pdf([[{"uri": "https://example.com/?caP1=1"}]])) as doc:
        assert find_comparator_url(doc, HOST) is None


def test_skips_links_without_uri_action() -> None:
    url = comparator_url("imp=10")
    pdf = make_pdf([[{"kind": "goto"}], [{"kind": "goto"}, {"uri": url}]])
    with _open(pdf) as doc:
        assert find_comparator_url(doc, HOST) == url
        assert list(iter_link_uris(doc)) == [url]


def test_first_match_in_page_then_annotation_order() -> None:
    first = comparator_url("imp=1")
    second = comparator_url("imp=2")
    third = comparator_url("imp=3")
    pdf = make_pdf([
        [{"uri": "https://example.com/"}],
        [{"uri": first}, {"uri": second}],
        [{"uri": third}],
    ])
    with _open(pdf) as doc:
        assert find_comparator_url(doc, HOST) == first


def test_host_is_configurable() -> None:
    url = "https://comparator.test/?imp=5"
    with _open(make_pdf([[{"uri": url}]])) as doc:
        assert find_comparator_url(doc, "comparator.test") == url
        assert find_comparator_url(doc, HOST) is None


# ---------------------------------------------------------------------------
# scan_pdf (runs in the worker process)
# ---------------------------------------------------------------------------

def test_scan_pdf_returns_link() -> None:
    url = comparator_url("imp=9")
    assert scan_pdf(make_pdf([[], [{"uri": url}]]), "a.pdf", HOST) == url


def test_scan_pdf_rejects_garbage() -> None:
    with pytest.raises(DocumentParseError, match="a.pdf"):
        scan_pdf(b"not a pdf", "a.pdf", HOST)


def test_scan_pdf_without_link() -> None:
    with pytest.raises(NoQualifyingLinkError, match="a.pdf"):
        scan_pdf(make_pdf([[{"uri": "https://example.com/"}]]), "a.pdf", HOST)


def test_scan_pdf_errors_survive_pickling() -> None:
    # Errors travel back from the process pool by pickle.
    with pytest.raises(NoQualifyingLinkError) as info:
        scan_pdf(make_pdf(), "b.pdf", HOST)
    restored = pickle.loads(pickle.dumps(info.value))
    assert type(restored) is NoQualifyingLinkError
    assert str(restored) == str(info.value)
