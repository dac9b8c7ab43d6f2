from lumina_rag.citations.extractor import (
    extract_citations,
    parse_payload,
    reference_token,
)


def test_payload_with_page_range_uses_first_page() -> None:
    assert parse_payload("report.pdf, Page: 3-4") == ("report.pdf", 3)


def test_payload_without_page_is_verbatim() -> None:
    assert parse_payload("report.pdf") == ("report.pdf", None)
    assert parse_payload(" spaced name.txt ") == (" spaced name.txt ", None)


def test_unparseable_page_is_none() -> None:
    assert parse_payload("notes.md, Page: unknown") == ("notes.md", None)
    assert parse_payload("notes.md, Page:") == ("notes.md", None)


def test_distinct_payloads_numbered_by_first_appearance() -> None:
    text = (
        "Alpha [Source: a.txt, Page: 1]. Beta [Source: b.txt]. "
        "Gamma [Source: a.txt, Page: 1]. Delta [Source: a.txt, Page: 2]."
    )

    result = extract_citations(text)

    assert [c.index for c in result.citations] == [1, 2, 3]
    assert [c.raw_label for c in result.citations] == [
        "a.txt, Page: 1",
        "b.txt",
        "a.txt, Page: 2",
    ]
    assert result.processed_text == (
        f"Alpha {reference_token(1)}. Beta {reference_token(2)}. "
        f"Gamma {reference_token(1)}. Delta {reference_token(3)}."
    )


def test_other_brackets_pass_through() -> None:
    text = "See [1] and [Source] and [source: x.txt] unchanged."

    result = extract_citations(text)

    assert result.citations == ()
    assert result.processed_text == text


def test_streaming_prefixes_never_renumber() -> None:
    final = (
        "First [Source: guide.md, Page: 2] then [Source: faq.txt] "
        "and again [Source: guide.md, Page: 2] finally [Source: api.json, Page: 5-6]."
    )

    previous: tuple = ()
    for end in range(len(final) + 1):
        citations = extract_citations(final[:end]).citations
        assert citations[: len(previous)] == previous
        previous = citations

    assert previous == extract_citations(final).citations
    assert len(previous) == 3


def test_partial_marker_not_recognised_until_complete() -> None:
    partial = extract_citations("Answer [Source: guide.md, Pa")

    assert partial.citations == ()
    assert partial.processed_text == "Answer [Source: guide.md, Pa"


def test_extraction_is_idempotent() -> None:
    text = "x [Source: a.txt] y [Source: b.txt, Page: 9]"

    extract_citations.cache_clear()
    first = extract_citations(text)
    extract_citations.cache_clear()
    second = extract_citations(text)

    assert first == second


def test_non_ascii_digits_are_not_a_page() -> None:
    assert parse_payload("a.txt, Page: ٣") == ("a.txt", None)
    assert parse_payload("a.txt, Page: ２") == ("a.txt", None)
