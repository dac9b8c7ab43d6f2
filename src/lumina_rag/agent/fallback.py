"""Deterministic model client used when no external LLM is configured."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Sequence

from lumina_rag.agent.model import ModelRequest
from lumina_rag.ingest.pager import CHARS_PER_PAGE, paginate
from lumina_rag.types import Document, DocumentStatus

_TOKEN_PATTERN = re.compile(r"\w+", flags=re.UNICODE)
_NO_EVIDENCE = (
    "I could not find this in the uploaded documents, so I cannot answer "
    "from them."
)


class DeterministicModelClient:
    """Answers from the best-overlapping document page without an LLM.

    This keeps the same streaming contract as `LangChainModelClient` and is
    useful for local/offline runs where `OPENAI_API_KEY` is not configured.
    Answers always carry a well-formed source marker.
    """

    def __init__(
        self,
        documents: Callable[[], Sequence[Document]],
        *,
        page_size: int = CHARS_PER_PAGE,
        snippet_chars: int = 220,
    ) -> None:
        self._documents = documents
        self.page_size = page_size
        self.snippet_chars = snippet_chars

    def stream(self, request: ModelRequest) -> Iterator[str]:
        answer = self.answer(request.new_prompt)
        words = answer.split(" ")
        for i in range(1, len(words) + 1):
            yield " ".join(words[:i])

    def answer(self, question: str) -> str:
        best = self._best_page(question)
        if best is None:
            return _NO_EVIDENCE
        document, page_number, page_text = best
        snippet = _truncate(" ".join(page_text.split()), self.snippet_chars)
        return f"{snippet} [Source: {document.name}, Page: {page_number}]"

    def _best_page(self, question: str) -> tuple[Document, int, str] | None:
        query_terms = _terms(question)
        if not query_terms:
            return None

        best: tuple[Document, int, str] | None = None
        best_score = 0.0
        for document in self._documents():
            if document.status is not DocumentStatus.READY:
                continue
            for number, page in enumerate(paginate(document.content, self.page_size), start=1):
                overlap = len(query_terms & _terms(page)) / len(query_terms)
                if overlap > best_score:
                    best, best_score = (document, number, page), overlap
        return best


def _terms(text: str) -> set[str]:
    return {token.lower() for token in _TOKEN_PATTERN.findall(text)}


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
