import json

from fastapi.testclient import TestClient

from lumina_rag.api.main import build_services, create_app
from lumina_rag.config import AppSettings


def _client(tmp_path) -> TestClient:
    settings = AppSettings(state_path=str(tmp_path / "state.json"))
    # No model client and no OPENAI_API_KEY: the deterministic client answers.
    services = build_services(settings)
    return TestClient(create_app(services))


def test_upload_chat_resolve_and_usage(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = _client(tmp_path)

    body = "Intro text. " * 200 + "Company policy states employees must encrypt customer data at rest."
    upload = client.post(
        "/documents",
        files={"file": ("policy.txt", body.encode("utf-8"), "text/plain")},
    )
    assert upload.status_code == 200
    assert upload.json()["status"] == "ready"
    assert upload.json()["page_count"] == 2
    document_id = upload.json()["id"]

    chat = client.post("/chat", json={"text": "What must employees encrypt?"})
    assert chat.status_code == 200
    payload = chat.json()
    assert payload["state"] == "completed"
    assert payload["citations"] == [
        {
            "index": 1,
            "raw_label": "policy.txt, Page: 2",
            "document_name_hint": "policy.txt",
            "page_number_hint": 2,
        }
    ]

    resolved = client.post("/citations/resolve", json={"label": "policy, Page: 2"})
    assert resolved.status_code == 200
    assert resolved.json()["found"] is True
    assert resolved.json()["document_id"] == document_id
    assert "encrypt customer data" in resolved.json()["page_text"]

    missing = client.post("/citations/resolve", json={"document_name": "nope.pdf"})
    assert missing.json() == {"found": False, "document_name_hint": "nope.pdf", "page": None}

    page = client.get(f"/documents/{document_id}/pages/2")
    assert page.status_code == 200
    assert page.json()["page_count"] == 2

    usage = client.get("/usage").json()
    assert usage["monthly"] > 0
    assert usage["daily"] == usage["monthly"] == usage["yearly"]


def test_streaming_chat_emits_ndjson_updates(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = _client(tmp_path)
    client.post("/documents", files={"file": ("faq.md", b"Refunds take five days.", "text/markdown")})

    response = client.post("/chat", json={"text": "How long do refunds take?", "stream": True})

    lines = [json.loads(line) for line in response.text.splitlines() if line]
    assert lines[0]["state"] == "streaming"
    assert lines[-1]["state"] == "completed"
    assert lines[-1]["citations"][0]["document_name_hint"] == "faq.md"


def test_budget_gate_rejects_chat(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = _client(tmp_path)

    assert client.put("/usage/budget", json={"limit": 0}).status_code == 200
    conversation = client.get("/conversations").json()
    before = client.get(f"/conversations/{conversation['active_id']}").json()

    response = client.post("/chat", json={"text": "hello"})

    assert response.status_code == 402
    assert response.json()["detail"]["state"] == "gated"
    after = client.get(f"/conversations/{conversation['active_id']}").json()
    assert after["messages"] == before["messages"]


def test_conversation_lifecycle(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = _client(tmp_path)
    original = client.get("/conversations").json()["active_id"]

    renamed = client.patch(f"/conversations/{original}", json={"title": "Renamed"})
    assert renamed.json()["title"] == "Renamed"

    deleted = client.delete(f"/conversations/{original}").json()
    assert deleted["active_id"] != original

    listing = client.get("/conversations").json()
    assert [item["id"] for item in listing["items"]] == [deleted["active_id"]]
    assert client.get(f"/conversations/{original}").status_code == 404


def test_profile_get_and_partial_update(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = _client(tmp_path)

    assert client.get("/profile").json()["theme"] == "light"

    patched = client.patch("/profile", json={"theme": "system", "name": "Sam Lee"})
    assert patched.status_code == 200
    assert patched.json() == {
        "name": "Sam Lee",
        "email": "alex.doe@example.com",
        "avatar_url": "https://picsum.photos/200",
        "theme": "system",
    }
    assert client.patch("/profile", json={"theme": "sepia"}).status_code == 422

    assert _client(tmp_path).get("/profile").json()["name"] == "Sam Lee"
