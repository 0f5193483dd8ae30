"""
PDF Service
===========
Document store for uploaded PDFs and generated reports, plus the helper
that accepts an upload into the input bucket.
"""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod

import snowflake.connector

from db.models import InputDocument
from db.snowflake_client import get_connection
from utils.exceptions import StorageError
from utils.helpers import get_logger, sanitize_filename

logger = get_logger("storage")


class DocumentStore(ABC):
    """A bucket of binary objects addressed by path."""

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket

    @abstractmethod
    def fetch(self, path: str) -> bytes:
        """Return the object's bytes or raise ``StorageError``."""

    @abstractmethod
    def store(self, data: bytes, path: str, content_type: str, upsert: bool = False) -> str:
        """Write ``data`` at ``path`` and return the path."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove ``path``; a missing object is not an error."""


class InMemoryDocumentStore(DocumentStore):
    """Process-local store; the default backend and the one used in tests."""

    def __init__(self, bucket: str) -> None:
        super().__init__(bucket)
        self._objects: dict[str, tuple[str, bytes]] = {}
        self._lock = threading.Lock()

    def fetch(self, path: str) -> bytes:
        with self._lock:
            entry = self._objects.get(path)
        if entry is None:
            raise StorageError(f"Object {self.bucket}/{path} not found.")
        return entry[1]

    def store(self, data: bytes, path: str, content_type: str, upsert: bool = False) -> str:
        with self._lock:
            if not upsert and path in self._objects:
                raise StorageError(f"Object {self.bucket}/{path} already exists.")
            self._objects[path] = (content_type, bytes(data))
        return path

    def delete(self, path: str) -> None:
        with self._lock:
            self._objects.pop(path, None)


class SnowflakeDocumentStore(DocumentStore):
    """Store backed by the ``stored_objects`` table."""

    def fetch(self, path: str) -> bytes:
        conn = None
        try:
            conn = get_connection()
            cur = conn.cursor()
            cur.execute(
                "SELECT data FROM stored_objects WHERE bucket = %s AND path = %s",
                (self.bucket, path),
            )
            row = cur.fetchone()
        except snowflake.connector.errors.Error as exc:
            raise StorageError(f"Failed to download {self.bucket}/{path}: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()
        if row is None:
            raise StorageError(f"Object {self.bucket}/{path} not found.")
        return bytes(row[0])

    def store(self, data: bytes, path: str, content_type: str, upsert: bool = False) -> str:
        conn = None
        try:
            conn = get_connection()
            cur = conn.cursor()
            if upsert:
                cur.execute(
                    """
                    MERGE INTO stored_objects t
                    USING (SELECT %s AS bucket, %s AS path, %s AS content_type, %s AS data) s
                    ON t.bucket = s.bucket AND t.path = s.path
                    WHEN MATCHED THEN UPDATE SET content_type = s.content_type, data = s.data
                    WHEN NOT MATCHED THEN INSERT (bucket, path, content_type, data)
                        VALUES (s.bucket, s.path, s.content_type, s.data)
                    """,
                    (self.bucket, path, content_type, data),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO stored_objects (bucket, path, content_type, data)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (self.bucket, path, content_type, data),
                )
        except snowflake.connector.errors.Error as exc:
            raise StorageError(f"Failed to upload {self.bucket}/{path}: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()
        return path

    def delete(self, path: str) -> None:
        conn = None
        try:
            conn = get_connection()
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM stored_objects WHERE bucket = %s AND path = %s",
                (self.bucket, path),
            )
        except snowflake.connector.errors.Error as exc:
            raise StorageError(f"Failed to delete {self.bucket}/{path}: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()


def build_store(backend: str, bucket: str) -> DocumentStore:
    """Return the store implementation selected by ``backend``."""
    if backend == "memory":
        return InMemoryDocumentStore(bucket)
    if backend == "snowflake":
        return SnowflakeDocumentStore(bucket)
    raise ValueError(f"Unknown storage backend: {backend}")


def save_pdf(store: DocumentStore, filename: str | None, file_bytes: bytes,
             content_type: str = "application/pdf") -> InputDocument:
    """
    Store an uploaded PDF in the input bucket.

    The object path is ``<uuid>-<ascii filename>`` so uploads never collide.
    """
    doc_id = str(uuid.uuid4())
    clean_name = sanitize_filename(filename)
    path = store.store(file_bytes, f"{doc_id}-{clean_name}", content_type)
    logger.info("Stored upload %s (%d bytes) at %s/%s", clean_name, len(file_bytes), store.bucket, path)
    return InputDocument(
        doc_id=doc_id,
        filename=clean_name,
        path=path,
        content_type=content_type,
        size=len(file_bytes),
    )


def get_pdf(store: DocumentStore, document: InputDocument) -> bytes:
    """Retrieve the bytes of a stored upload."""
    return store.fetch(document.path)
