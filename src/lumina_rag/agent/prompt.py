"""Prompt construction: paginated document context and citation rules."""

from __future__ import annotations

from collections.abc import Sequence

from lumina_rag.ingest.pager import CHARS_PER_PAGE, paginate
from lumina_rag.types import Document, DocumentStatus

_SYSTEM_PROMPT = """
You are an intelligent RAG (Retrieval Augmented Generation) assistant.
You have access to a set of documents provided below.

INSTRUCTIONS:
1. Answer the user's question based PRIMARILY on the provided documents.
2. If the answer is found in the documents, cite the source using the strict format: [Source: filename.ext, Page: X].
   - If it spans multiple pages, use [Source: filename.ext, Page: X-Y].
   - If page number is uncertain, use [Source: filename.ext].
3. If the answer is not in the documents, you may use your general knowledge but clearly state that it's not from the uploaded files.
4. Be concise, professional, and helpful.
5. Format your response in Markdown.

DOCUMENTS:
""".strip()


def format_document(document: Document, page_size: int = CHARS_PER_PAGE) -> str:
    pages = [
        f"[Page {number}]\n{chunk}"
        for number, chunk in enumerate(paginate(document.content, page_size), start=1)
    ]
    body = "\n\n".join(pages)
    return (
        f"--- DOCUMENT START: {document.name} ---\n"
        f"{body}\n"
        f"--- DOCUMENT END: {document.name} ---"
    )


def build_context(documents: Sequence[Document], page_size: int = CHARS_PER_PAGE) -> str:
    """Concatenate every ready document as a page-labelled block."""
    return "\n\n".join(
        format_document(document, page_size)
        for document in documents
        if document.status is DocumentStatus.READY
    )


def build_system_instruction(
    documents: Sequence[Document], page_size: int = CHARS_PER_PAGE
) -> str:
    return f"{_SYSTEM_PROMPT}\n{build_context(documents, page_size)}\n"
