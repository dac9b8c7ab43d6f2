"""Document store: upload, decode, list and delete source documents."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from lumina_rag.errors import DocumentNotFoundError
from lumina_rag.ingest.parser import ParserRegistry
from lumina_rag.store.state import JsonStateStore
from lumina_rag.types import Document, DocumentStatus, new_id

logger = logging.getLogger(__name__)

_STATE_KEY = "documents"


class DocumentStore:
    """Owns the document collection; the chat core only reads from it."""

    def __init__(
        self,
        *,
        parser_registry: ParserRegistry | None = None,
        state_store: JsonStateStore | None = None,
    ) -> None:
        self._parsers = parser_registry or ParserRegistry()
        self._state_store = state_store
        self._lock = threading.Lock()
        saved = state_store.load(_STATE_KEY, []) if state_store is not None else []
        self._documents: list[Document] = [Document.from_dict(item) for item in saved]

    def add(self, name: str, data: bytes, mime_type: str = "") -> Document:
        """Accept an upload and decode it.

        The document is stored as `processing` first and then moved to
        `ready` with its text, or to `error` if decoding fails. Decode errors
        never propagate to the caller.
        """

        document = Document(
            id=new_id(),
            name=name,
            mime_type=mime_type,
            content="",
            size_bytes=len(data),
            uploaded_at=datetime.now(timezone.utc).isoformat(),
            status=DocumentStatus.PROCESSING,
        )
        with self._lock:
            self._documents.append(document)
            self._persist()

        try:
            text = self._parsers.decode(name, data)
        except ValueError:
            logger.exception("Failed to read document %r", name)
            self._finish(document.id, DocumentStatus.ERROR, "")
        else:
            self._finish(document.id, DocumentStatus.READY, text)
        return self.get(document.id)

    def get(self, document_id: str) -> Document:
        with self._lock:
            for document in self._documents:
                if document.id == document_id:
                    return document
        raise DocumentNotFoundError(f"Document not found: {document_id}")

    def list_documents(self) -> list[Document]:
        with self._lock:
            return list(self._documents)

    def ready(self) -> list[Document]:
        return [doc for doc in self.list_documents() if doc.status is DocumentStatus.READY]

    def delete(self, document_id: str) -> None:
        with self._lock:
            remaining = [doc for doc in self._documents if doc.id != document_id]
            if len(remaining) == len(self._documents):
                raise DocumentNotFoundError(f"Document not found: {document_id}")
            self._documents = remaining
            self._persist()

    def _finish(self, document_id: str, status: DocumentStatus, content: str) -> None:
        with self._lock:
            for document in self._documents:
                if document.id == document_id:
                    document.status = status
                    document.content = content
            self._persist()

    def _persist(self) -> None:
        if self._state_store is not None:
            self._state_store.save(
                _STATE_KEY, [document.to_dict() for document in self._documents]
            )
