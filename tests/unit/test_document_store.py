import json

import pytest

from lumina_rag.errors import DocumentNotFoundError
from lumina_rag.ingest.parser import ParserRegistry
from lumina_rag.store.documents import DocumentStore
from lumina_rag.store.state import JsonStateStore
from lumina_rag.types import DocumentStatus


def test_text_upload_becomes_ready() -> None:
    store = DocumentStore()

    document = store.add("notes.md", "# Title\nBody".encode("utf-8"), "text/markdown")

    assert document.status is DocumentStatus.READY
    assert document.content == "# Title\nBody"
    assert document.size_bytes == len("# Title\nBody")
    assert store.ready() == [document]


def test_unreadable_upload_marked_error_without_raising() -> None:
    store = DocumentStore()

    bad_bytes = store.add("broken.txt", b"\xff\xfe\xfa")
    unknown = store.add("image.png", b"PNG")

    assert bad_bytes.status is DocumentStatus.ERROR
    assert unknown.status is DocumentStatus.ERROR
    assert bad_bytes.content == ""
    assert store.ready() == []
    assert len(store.list_documents()) == 2


def test_json_upload_is_normalised() -> None:
    text = ParserRegistry().decode("data.json", json.dumps({"b": 1, "a": 2}).encode())

    assert text.index('"a"') < text.index('"b"')


def test_delete_removes_document() -> None:
    store = DocumentStore()
    document = store.add("a.txt", b"alpha")

    store.delete(document.id)

    assert store.list_documents() == []
    with pytest.raises(DocumentNotFoundError):
        store.delete(document.id)


def test_documents_reload_from_state(tmp_path) -> None:
    path = tmp_path / "state.json"
    DocumentStore(state_store=JsonStateStore(path)).add("a.txt", b"alpha")

    reloaded = DocumentStore(state_store=JsonStateStore(path)).list_documents()

    assert [(d.name, d.content, d.status) for d in reloaded] == [
        ("a.txt", "alpha", DocumentStatus.READY)
    ]
