"""Shared domain models."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_CONVERSATION_TITLE = "New Conversation"
WELCOME_TEXT = (
    "Hello! I'm your RAG assistant. Upload documents to the Knowledge Base "
    "or ask me anything."
)


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def now_ms() -> int:
    return int(time.time() * 1000)


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class Role(str, Enum):
    USER = "user"
    MODEL = "model"


@dataclass(slots=True)
class Document:
    """An uploaded source document and its decoded text."""

    id: str
    name: str
    mime_type: str
    content: str
    size_bytes: int
    uploaded_at: str
    status: DocumentStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mime_type": self.mime_type,
            "content": self.content,
            "size_bytes": self.size_bytes,
            "uploaded_at": self.uploaded_at,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            mime_type=str(data.get("mime_type", "")),
            content=str(data.get("content", "")),
            size_bytes=int(data.get("size_bytes", 0)),
            uploaded_at=str(data.get("uploaded_at", "")),
            status=DocumentStatus(data.get("status", DocumentStatus.READY.value)),
        )


@dataclass(slots=True)
class Message:
    """A chat message backed by an append-only log of text snapshots.

    Streaming updates never mutate an earlier snapshot; they append a new one.
    Readers only ever see the latest snapshot through `text`.
    """

    id: str
    role: Role
    timestamp_ms: int
    is_streaming: bool = False
    snapshots: list[str] = field(default_factory=lambda: [""])

    @property
    def text(self) -> str:
        return self.snapshots[-1]

    def push(self, text: str) -> None:
        self.snapshots.append(text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp_ms": self.timestamp_ms,
            "is_streaming": self.is_streaming,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=str(data["id"]),
            role=Role(data["role"]),
            timestamp_ms=int(data.get("timestamp_ms", 0)),
            is_streaming=bool(data.get("is_streaming", False)),
            snapshots=[str(data.get("text", ""))],
        )


@dataclass(slots=True)
class Conversation:
    id: str
    title: str
    messages: list[Message]
    created_at: int
    updated_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", DEFAULT_CONVERSATION_TITLE)),
            messages=[Message.from_dict(item) for item in data.get("messages", [])],
            created_at=int(data.get("created_at", 0)),
            updated_at=int(data.get("updated_at", 0)),
        )


@dataclass(frozen=True, slots=True)
class Citation:
    """A numbered source reference derived from message text."""

    index: int
    raw_label: str
    document_name_hint: str
    page_number_hint: int | None = None


@dataclass(slots=True)
class UsageStats:
    daily: int = 0
    monthly: int = 0
    yearly: int = 0
    budget: int = 1_000_000


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


@dataclass(slots=True)
class UserProfile:
    """Display identity and theme preference for the single local user."""

    name: str = "Alex Doe"
    email: str = "alex.doe@example.com"
    avatar_url: str = "https://picsum.photos/200"
    theme: Theme = Theme.LIGHT

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "avatar_url": self.avatar_url,
            "theme": self.theme.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserProfile":
        defaults = cls()
        return cls(
            name=data.get("name", defaults.name),
            email=data.get("email", defaults.email),
            avatar_url=data.get("avatar_url", defaults.avatar_url),
            theme=Theme(data.get("theme", defaults.theme.value)),
        )
