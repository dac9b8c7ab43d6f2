"""Fixed-size character pagination of document text.

The same page size must be used when documents are framed for the model and
when pages are shown to the user, otherwise citation page numbers drift.
"""

from __future__ import annotations

CHARS_PER_PAGE = 2000


def paginate(content: str, page_size: int = CHARS_PER_PAGE) -> list[str]:
    """Split `content` into 1-indexed pages of `page_size` characters.

    Page `i` is `content[(i - 1) * page_size : i * page_size]`; the last page
    may be shorter. Empty content has zero pages.
    """

    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return [content[i : i + page_size] for i in range(0, len(content), page_size)]


def page_count(content: str, page_size: int = CHARS_PER_PAGE) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return -(-len(content) // page_size)


def get_page(
    content: str, page_number: int, page_size: int = CHARS_PER_PAGE
) -> str | None:
    """Return the text of a 1-indexed page, or None when out of range."""
    if page_number < 1 or page_number > page_count(content, page_size):
        return None
    start = (page_number - 1) * page_size
    return content[start : start + page_size]
