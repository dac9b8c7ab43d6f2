from lumina_rag.agent.fallback import DeterministicModelClient
from lumina_rag.agent.model import ModelRequest
from lumina_rag.agent.prompt import _SYSTEM_PROMPT, build_context
from lumina_rag.citations.extractor import extract_citations
from lumina_rag.ingest.pager import paginate
from lumina_rag.types import Document, DocumentStatus


def _doc(name: str, content: str, status: DocumentStatus = DocumentStatus.READY) -> Document:
    return Document(
        id=name,
        name=name,
        mime_type="text/plain",
        content=content,
        size_bytes=len(content),
        uploaded_at="2024-01-01T00:00:00+00:00",
        status=status,
    )


def test_prompt_documents_every_marker_form() -> None:
    assert "[Source: filename.ext, Page: X]" in _SYSTEM_PROMPT
    assert "[Source: filename.ext, Page: X-Y]" in _SYSTEM_PROMPT
    assert "[Source: filename.ext]" in _SYSTEM_PROMPT


def test_context_page_labels_match_display_pagination() -> None:
    content = "".join(chr(ord("a") + i % 26) for i in range(4500))
    context = build_context([_doc("a.txt", content), _doc("p.txt", "x", DocumentStatus.PROCESSING)])

    for number, page in enumerate(paginate(content, 2000), start=1):
        assert f"[Page {number}]\n{page}" in context
    assert "[Page 4]" not in context
    assert "p.txt" not in context
    assert context.startswith("--- DOCUMENT START: a.txt ---\n[Page 1]\n")
    assert context.endswith("\n--- DOCUMENT END: a.txt ---")


def test_offline_answers_parse_as_citations() -> None:
    doc = _doc("handbook.md", "Vacation requests need manager approval two weeks ahead.")
    client = DeterministicModelClient(lambda: [doc])

    snapshots = list(client.stream(ModelRequest(system_instruction="", new_prompt="vacation approval?")))

    citations = extract_citations(snapshots[-1]).citations
    assert [(c.document_name_hint, c.page_number_hint) for c in citations] == [("handbook.md", 1)]
    assert all(later.startswith(earlier) for earlier, later in zip(snapshots, snapshots[1:]))
