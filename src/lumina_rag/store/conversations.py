"""Conversation store with an always-non-empty conversation set."""

from __future__ import annotations

import threading

from lumina_rag.errors import ConversationNotFoundError
from lumina_rag.store.state import JsonStateStore
from lumina_rag.types import (
    DEFAULT_CONVERSATION_TITLE,
    WELCOME_TEXT,
    Conversation,
    Message,
    Role,
    new_id,
    now_ms,
)

_STATE_KEY = "conversations"
_ACTIVE_KEY = "active_conversation_id"
_TITLE_LENGTH = 30


def derive_title(text: str) -> str:
    if len(text) <= _TITLE_LENGTH:
        return text
    return text[:_TITLE_LENGTH] + "..."


class ConversationStore:
    """Holds conversations and tracks which one is active.

    Writes to message lists are serialized with a re-entrant lock so that a
    streaming reply and API handlers on other threads never interleave.
    """

    def __init__(self, *, state_store: JsonStateStore | None = None) -> None:
        self._state_store = state_store
        self._lock = threading.RLock()
        self._conversations: list[Conversation] = []
        self._active_id = ""

        if state_store is not None:
            saved = state_store.load(_STATE_KEY, [])
            self._conversations = [Conversation.from_dict(item) for item in saved]
            self._active_id = state_store.load(_ACTIVE_KEY, "") or ""

        if not self._conversations:
            self.create()
        elif self._find(self._active_id) is None:
            self._active_id = self._conversations[0].id

    @property
    def active_id(self) -> str:
        with self._lock:
            return self._active_id

    def active(self) -> Conversation:
        return self.get(self.active_id)

    def list_conversations(self) -> list[Conversation]:
        with self._lock:
            return list(self._conversations)

    def get(self, conversation_id: str) -> Conversation:
        with self._lock:
            conversation = self._find(conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
            return conversation

    def create(self) -> Conversation:
        """Start a fresh conversation with the welcome message and activate it."""
        timestamp = now_ms()
        welcome = Message(
            id=new_id(),
            role=Role.MODEL,
            timestamp_ms=timestamp,
            snapshots=[WELCOME_TEXT],
        )
        conversation = Conversation(
            id=new_id(),
            title=DEFAULT_CONVERSATION_TITLE,
            messages=[welcome],
            created_at=timestamp,
            updated_at=timestamp,
        )
        with self._lock:
            self._conversations.insert(0, conversation)
            self._active_id = conversation.id
            self._persist()
        return conversation

    def select(self, conversation_id: str) -> Conversation:
        with self._lock:
            conversation = self.get(conversation_id)
            self._active_id = conversation.id
            self._persist()
            return conversation

    def rename(self, conversation_id: str, title: str) -> Conversation:
        with self._lock:
            conversation = self.get(conversation_id)
            conversation.title = title
            conversation.updated_at = now_ms()
            self._persist()
            return conversation

    def delete(self, conversation_id: str) -> Conversation:
        """Remove a conversation and return the one that is active afterwards.

        Deleting the active conversation promotes the first remaining one, or
        creates a fresh conversation when none remain.
        """

        with self._lock:
            conversation = self.get(conversation_id)
            self._conversations.remove(conversation)
            if not self._conversations:
                return self.create()
            if self._active_id == conversation_id:
                self._active_id = self._conversations[0].id
            self._persist()
            return self.active()

    def append_message(
        self,
        conversation_id: str,
        role: Role,
        text: str = "",
        *,
        streaming: bool = False,
    ) -> Message:
        with self._lock:
            conversation = self.get(conversation_id)
            message = Message(
                id=new_id(),
                role=role,
                timestamp_ms=now_ms(),
                is_streaming=streaming,
                snapshots=[text],
            )
            if role is Role.USER and conversation.title == DEFAULT_CONVERSATION_TITLE:
                if not any(m.role is Role.USER for m in conversation.messages):
                    conversation.title = derive_title(text)
            conversation.messages.append(message)
            conversation.updated_at = message.timestamp_ms
            self._persist()
            return message

    def update_message(
        self,
        conversation_id: str,
        message_id: str,
        text: str,
        *,
        streaming: bool | None = None,
    ) -> Message:
        """Replace a message's visible text with a new snapshot."""
        with self._lock:
            conversation = self.get(conversation_id)
            for message in conversation.messages:
                if message.id == message_id:
                    message.push(text)
                    if streaming is not None:
                        message.is_streaming = streaming
                    conversation.updated_at = now_ms()
                    self._persist()
                    return message
        raise KeyError(f"Message not found: {message_id}")

    def _find(self, conversation_id: str | None) -> Conversation | None:
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def _persist(self) -> None:
        if self._state_store is None:
            return
        self._state_store.save(
            _STATE_KEY, [conversation.to_dict() for conversation in self._conversations]
        )
        self._state_store.save(_ACTIVE_KEY, self._active_id)
