"""Map citation name hints back to stored documents."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from lumina_rag.ingest.pager import CHARS_PER_PAGE, get_page, page_count
from lumina_rag.types import Citation, Document

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ResolvedCitation:
    document: Document
    page_number: int | None
    page_count: int
    page_text: str | None
    match: str


def _closest_length(hint: str, candidates: list[Document]) -> Document:
    # min() keeps the first of equal keys, so store order breaks ties.
    return min(candidates, key=lambda doc: abs(len(doc.name) - len(hint)))


def find_document(hint: str, documents: Sequence[Document]) -> tuple[Document, str] | None:
    """Return the matching document and the rule that matched.

    Rules are tried in order: exact name, whitespace-trimmed name, then
    substring containment in either direction. Matching is case-sensitive.
    """

    for doc in documents:
        if doc.name == hint:
            return doc, "exact"

    trimmed = hint.strip()
    for doc in documents:
        if doc.name.strip() == trimmed:
            return doc, "trimmed"

    contained = [doc for doc in documents if hint in doc.name or doc.name in hint]
    if contained:
        return _closest_length(hint, contained), "substring"
    return None


def resolve_citation(
    name_hint: str,
    page_hint: int | None,
    documents: Sequence[Document],
    *,
    page_size: int = CHARS_PER_PAGE,
) -> ResolvedCitation | None:
    """Resolve a citation to its document and page.

    A miss is logged and reported as None; callers treat it as a no-op.
    """

    found = find_document(name_hint, documents)
    if found is None:
        logger.info("Citation source not found: %r", name_hint)
        return None

    document, rule = found
    page_text = (
        get_page(document.content, page_hint, page_size)
        if page_hint is not None
        else None
    )
    if page_hint is not None and page_text is None:
        logger.info(
            "Citation page %s out of range for %r", page_hint, document.name
        )
    return ResolvedCitation(
        document=document,
        page_number=page_hint,
        page_count=page_count(document.content, page_size),
        page_text=page_text,
        match=rule,
    )


def resolve(
    citation: Citation,
    documents: Sequence[Document],
    *,
    page_size: int = CHARS_PER_PAGE,
) -> ResolvedCitation | None:
    return resolve_citation(
        citation.document_name_hint,
        citation.page_number_hint,
        documents,
        page_size=page_size,
    )
