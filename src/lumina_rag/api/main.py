"""FastAPI entrypoint for documents, conversations, chat, citations, usage and profile."""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from typing import Any, Literal

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from starlette.background import BackgroundTask

from lumina_rag.agent.fallback import DeterministicModelClient
from lumina_rag.agent.model import ModelClient, create_model_client
from lumina_rag.agent.orchestrator import (
    ChatOrchestrator,
    ReplyStream,
    RequestState,
    TurnUpdate,
)
from lumina_rag.citations.extractor import citation_for, extract_citations
from lumina_rag.citations.resolver import resolve_citation
from lumina_rag.config import AppSettings, configure_logging
from lumina_rag.errors import (
    BudgetExceededError,
    ConversationBusyError,
    ConversationNotFoundError,
    DocumentNotFoundError,
)
from lumina_rag.ingest.pager import get_page, page_count, paginate
from lumina_rag.obs.usage import UsageLedger
from lumina_rag.store.conversations import ConversationStore
from lumina_rag.store.documents import DocumentStore
from lumina_rag.store.profile import ProfileStore
from lumina_rag.store.state import JsonStateStore
from lumina_rag.types import Conversation, Document, Message, Role


@dataclass(slots=True)
class ChatServices:
    settings: AppSettings
    documents: DocumentStore
    conversations: ConversationStore
    ledger: UsageLedger
    profile: ProfileStore
    orchestrator: ChatOrchestrator
    llm_configured: bool


def build_services(
    settings: AppSettings | None = None,
    *,
    model_client: ModelClient | None = None,
) -> ChatServices:
    """Wire stores, ledger and orchestrator from settings.

    Without an explicit client and without `OPENAI_API_KEY`, replies come
    from `DeterministicModelClient`.
    """

    settings = settings or AppSettings.from_env()
    state_store = JsonStateStore(settings.state_path)
    documents = DocumentStore(state_store=state_store)
    conversations = ConversationStore(state_store=state_store)
    ledger = UsageLedger(
        state_store=state_store, default_budget=settings.usage.default_budget
    )
    profile = ProfileStore(state_store=state_store)

    client = model_client or create_model_client(settings.model)
    llm_configured = client is not None
    if client is None:
        client = DeterministicModelClient(
            documents.list_documents, page_size=settings.paging.chars_per_page
        )

    orchestrator = ChatOrchestrator(
        model_client=client,
        documents=documents,
        conversations=conversations,
        ledger=ledger,
        paging=settings.paging,
    )
    return ChatServices(
        settings=settings,
        documents=documents,
        conversations=conversations,
        ledger=ledger,
        profile=profile,
        orchestrator=orchestrator,
        llm_configured=llm_configured,
    )


class ChatRequest(BaseModel):
    text: str = Field(min_length=1)
    conversation_id: str | None = None
    stream: bool = False


class RenameRequest(BaseModel):
    title: str = Field(min_length=1)


class BudgetRequest(BaseModel):
    limit: int


class ResolveRequest(BaseModel):
    label: str | None = None
    document_name: str | None = None
    page: int | None = None


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, min_length=1)
    avatar_url: str | None = None
    theme: Literal["light", "dark", "system"] | None = None


def _document_summary(document: Document, page_size: int) -> dict[str, Any]:
    data = document.to_dict()
    del data["content"]
    data["page_count"] = page_count(document.content, page_size)
    return data


def _message_view(message: Message) -> dict[str, Any]:
    data = message.to_dict()
    if message.role is Role.MODEL:
        extraction = extract_citations(message.text)
        data["processed_text"] = extraction.processed_text
        data["citations"] = [asdict(citation) for citation in extraction.citations]
    return data


def _conversation_view(conversation: Conversation, *, active_id: str) -> dict[str, Any]:
    return {
        "id": conversation.id,
        "title": conversation.title,
        "created_at": conversation.created_at,
        "updated_at": conversation.updated_at,
        "active": conversation.id == active_id,
        "messages": [_message_view(message) for message in conversation.messages],
    }


def _update_view(update: TurnUpdate) -> dict[str, Any]:
    return {
        "conversation_id": update.conversation_id,
        "user_message_id": update.user_message_id,
        "message_id": update.message_id,
        "state": update.state.value,
        "text": update.text,
        "processed_text": update.processed_text,
        "citations": [asdict(citation) for citation in update.citations],
    }


def create_app(services: ChatServices | None = None) -> FastAPI:
    services = services or build_services()
    configure_logging(services.settings.log_level)
    page_size = services.settings.paging.chars_per_page

    app = FastAPI(title="Lumina RAG Chat", version="0.1.0")
    app.state.services = services

    def _get_document(document_id: str) -> Document:
        try:
            return services.documents.get(document_id)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    def _get_conversation(conversation_id: str) -> Conversation:
        try:
            return services.conversations.get(conversation_id)
        except ConversationNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": services.llm_configured,
            "model_mode": "langchain" if services.llm_configured else "deterministic",
            "document_count": len(services.documents.list_documents()),
        }

    @app.post("/documents")
    def upload_document(file: UploadFile = File(...)) -> dict[str, Any]:
        data = file.file.read()
        document = services.documents.add(
            file.filename or "untitled", data, mime_type=file.content_type or ""
        )
        return _document_summary(document, page_size)

    @app.get("/documents")
    def list_documents() -> dict[str, Any]:
        return {
            "items": [
                _document_summary(document, page_size)
                for document in services.documents.list_documents()
            ]
        }

    @app.delete("/documents/{document_id}")
    def delete_document(document_id: str) -> dict[str, Any]:
        try:
            services.documents.delete(document_id)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"deleted": document_id}

    @app.get("/documents/{document_id}/pages")
    def document_pages(document_id: str) -> dict[str, Any]:
        document = _get_document(document_id)
        return {
            "document_id": document.id,
            "pages": [
                {"page": number, "text": text}
                for number, text in enumerate(paginate(document.content, page_size), start=1)
            ],
        }

    @app.get("/documents/{document_id}/pages/{page_number}")
    def document_page(document_id: str, page_number: int) -> dict[str, Any]:
        document = _get_document(document_id)
        text = get_page(document.content, page_number, page_size)
        if text is None:
            raise HTTPException(status_code=404, detail=f"Page not found: {page_number}")
        return {
            "document_id": document.id,
            "page": page_number,
            "page_count": page_count(document.content, page_size),
            "text": text,
        }

    @app.get("/conversations")
    def list_conversations() -> dict[str, Any]:
        active_id = services.conversations.active_id
        return {
            "active_id": active_id,
            "items": [
                {
                    "id": conversation.id,
                    "title": conversation.title,
                    "updated_at": conversation.updated_at,
                    "active": conversation.id == active_id,
                }
                for conversation in services.conversations.list_conversations()
            ],
        }

    @app.post("/conversations")
    def create_conversation() -> dict[str, Any]:
        conversation = services.conversations.create()
        return _conversation_view(conversation, active_id=conversation.id)

    @app.get("/conversations/{conversation_id}")
    def get_conversation(conversation_id: str) -> dict[str, Any]:
        conversation = _get_conversation(conversation_id)
        return _conversation_view(
            conversation, active_id=services.conversations.active_id
        )

    @app.patch("/conversations/{conversation_id}")
    def rename_conversation(conversation_id: str, request: RenameRequest) -> dict[str, Any]:
        _get_conversation(conversation_id)
        conversation = services.conversations.rename(conversation_id, request.title)
        return {"id": conversation.id, "title": conversation.title}

    @app.post("/conversations/{conversation_id}/select")
    def select_conversation(conversation_id: str) -> dict[str, Any]:
        _get_conversation(conversation_id)
        conversation = services.conversations.select(conversation_id)
        return {"active_id": conversation.id}

    @app.delete("/conversations/{conversation_id}")
    def delete_conversation(conversation_id: str) -> dict[str, Any]:
        _get_conversation(conversation_id)
        active = services.conversations.delete(conversation_id)
        return {"deleted": conversation_id, "active_id": active.id}

    @app.post("/chat", response_model=None)
    def chat(request: ChatRequest) -> dict[str, Any] | StreamingResponse:
        try:
            updates = services.orchestrator.stream_reply(
                request.text, conversation_id=request.conversation_id
            )
        except BudgetExceededError as exc:
            raise HTTPException(
                status_code=402,
                detail={"state": RequestState.GATED.value, "message": str(exc)},
            ) from exc
        except ConversationBusyError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ConversationNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        if request.stream:
            return StreamingResponse(
                _ndjson(updates),
                media_type="application/x-ndjson",
                background=BackgroundTask(updates.close),
            )

        last: TurnUpdate | None = None
        try:
            for update in updates:
                last = update
        finally:
            updates.close()
        if last is None:
            raise HTTPException(status_code=500, detail="Reply stream produced no updates")
        return _update_view(last)

    @app.post("/citations/resolve")
    def resolve(request: ResolveRequest) -> dict[str, Any]:
        if request.label is not None:
            citation = citation_for(request.label)
            name, page = citation.document_name_hint, citation.page_number_hint
        elif request.document_name is not None:
            name, page = request.document_name, request.page
        else:
            raise HTTPException(status_code=400, detail="label or document_name is required")

        resolved = resolve_citation(
            name, page, services.documents.list_documents(), page_size=page_size
        )
        if resolved is None:
            return {"found": False, "document_name_hint": name, "page": page}
        return {
            "found": True,
            "document_id": resolved.document.id,
            "document_name": resolved.document.name,
            "page": resolved.page_number,
            "page_count": resolved.page_count,
            "page_text": resolved.page_text,
            "match": resolved.match,
        }

    @app.get("/usage")
    def usage() -> dict[str, Any]:
        stats = services.ledger.snapshot()
        return {
            **asdict(stats),
            "remaining": services.ledger.remaining(),
            "over_budget": services.ledger.is_over_budget(),
        }

    @app.put("/usage/budget")
    def set_budget(request: BudgetRequest) -> dict[str, Any]:
        stats = services.ledger.set_budget(request.limit)
        return asdict(stats)

    @app.get("/profile")
    def get_profile() -> dict[str, Any]:
        return services.profile.get().to_dict()

    @app.patch("/profile")
    def update_profile(request: ProfileUpdateRequest) -> dict[str, Any]:
        profile = services.profile.update(**request.model_dump(exclude_unset=True, exclude_none=True))
        return profile.to_dict()

    return app


def _ndjson(updates: ReplyStream) -> Iterator[str]:
    try:
        for update in updates:
            yield json.dumps(_update_view(update)) + "\n"
    finally:
        updates.close()


app = create_app()
