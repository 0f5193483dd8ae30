"""
Exceptions
==========
Error taxonomy for the bill analysis pipeline.

Document-scoped errors are recovered into a ProcessingFailure by the
document processor; batch-scoped errors end the job in the ``error`` state.
"""


class AnalyzerError(Exception):
    """Base exception for all analyzer errors."""


# ── Document scope ───────────────────────────────────────
class DocumentError(AnalyzerError):
    """A single document could not be turned into a record."""


class DocumentParseError(DocumentError):
    """The document bytes are not a readable PDF."""


class NoQualifyingLinkError(DocumentError):
    """No link annotation points at the comparator service."""


# ── Collaborators ────────────────────────────────────────
class StorageError(AnalyzerError):
    """A document store read or write failed."""


class LedgerError(AnalyzerError):
    """A job ledger read or write failed."""


class JobNotFoundError(LedgerError):
    """The requested job does not exist in the ledger."""


class InvalidTransitionError(LedgerError):
    """A job status change is not allowed from its current state."""


# ── Batch scope ──────────────────────────────────────────
class NoValidDataError(AnalyzerError):
    """Every document in the batch failed."""

    def __init__(self, message: str = "No valid data could be extracted from the PDFs"):
        super().__init__(message)
