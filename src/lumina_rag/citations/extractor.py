"""Extraction of `[Source: ...]` markers from model output."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from functools import lru_cache

from lumina_rag.types import Citation

_MARKER_PATTERN = re.compile(r"\[Source: ([^\]]+)\]")
_LEADING_DIGITS = re.compile(r"[0-9]+")
_PAGE_KEY = "Page:"


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    processed_text: str
    citations: tuple[Citation, ...]


def reference_token(index: int) -> str:
    """Link-like token the renderer turns into a numbered superscript."""
    return f"[{index}](#citation-{index})"


def iter_markers(text: str) -> Iterator[tuple[int, int, str]]:
    """Yield `(start, end, payload)` for every complete marker, left to right."""
    for match in _MARKER_PATTERN.finditer(text):
        yield match.start(), match.end(), match.group(1)


def parse_payload(payload: str) -> tuple[str, int | None]:
    """Split a marker payload into a document name hint and optional page.

    `"report.pdf, Page: 3-4"` -> `("report.pdf", 3)`; a payload without
    `Page:` is returned verbatim as the name hint.
    """

    if _PAGE_KEY not in payload:
        return payload, None

    left, right = payload.split(_PAGE_KEY, 1)
    name = left.strip()
    if name.endswith(","):
        name = name[:-1]

    first = right.strip().split("-")[0].strip()
    match = _LEADING_DIGITS.match(first)
    page = int(match.group(0)) if match else None
    return name, page


def citation_for(payload: str, index: int = 1) -> Citation:
    name, page = parse_payload(payload)
    return Citation(
        index=index,
        raw_label=payload,
        document_name_hint=name,
        page_number_hint=page,
    )


@lru_cache(maxsize=256)
def extract_citations(text: str) -> ExtractionResult:
    """Number and rewrite every source marker in `text`.

    The whole text is re-parsed on each call, so a marker split across two
    stream chunks only appears once both halves have arrived. Identical
    payloads share the index of their first occurrence, which keeps numbering
    stable as the text grows.
    """

    by_label: dict[str, Citation] = {}
    parts: list[str] = []
    cursor = 0

    for start, end, payload in iter_markers(text):
        citation = by_label.get(payload)
        if citation is None:
            citation = citation_for(payload, index=len(by_label) + 1)
            by_label[payload] = citation
        parts.append(text[cursor:start])
        parts.append(reference_token(citation.index))
        cursor = end

    parts.append(text[cursor:])
    return ExtractionResult(
        processed_text="".join(parts),
        citations=tuple(by_label.values()),
    )
