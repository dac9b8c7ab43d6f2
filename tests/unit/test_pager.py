import math

import pytest

from lumina_rag.ingest.pager import CHARS_PER_PAGE, get_page, page_count, paginate


def test_paginate_is_lossless_with_expected_page_count() -> None:
    content = "abcdefghij" * 457

    for page_size in (1, 7, 100, CHARS_PER_PAGE, 10_000):
        pages = paginate(content, page_size)
        assert "".join(pages) == content
        assert len(pages) == math.ceil(len(content) / page_size)
        assert all(len(page) == page_size for page in pages[:-1])


def test_empty_content_has_zero_pages() -> None:
    assert paginate("", 2000) == []
    assert page_count("", 2000) == 0
    assert get_page("", 1, 2000) is None


def test_get_page_is_one_indexed_and_bounded() -> None:
    content = "a" * 2000 + "b" * 2000 + "c" * 5

    assert get_page(content, 1) == "a" * 2000
    assert get_page(content, 3) == "ccccc"
    assert get_page(content, 0) is None
    assert get_page(content, 4) is None


def test_non_positive_page_size_rejected() -> None:
    with pytest.raises(ValueError):
        paginate("abc", 0)
