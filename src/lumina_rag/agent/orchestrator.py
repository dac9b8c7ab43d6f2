"""Request orchestration: budget gate, prompt assembly, streaming, accounting."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

from lumina_rag.agent.model import ModelClient, ModelRequest
from lumina_rag.agent.prompt import build_system_instruction
from lumina_rag.citations.extractor import extract_citations
from lumina_rag.config import PagingConfig
from lumina_rag.errors import BudgetExceededError, ConversationBusyError
from lumina_rag.obs.tokens import estimate_tokens
from lumina_rag.obs.usage import UsageLedger
from lumina_rag.store.conversations import ConversationStore
from lumina_rag.store.documents import DocumentStore
from lumina_rag.types import Citation, Role

logger = logging.getLogger(__name__)

ERROR_REPLY = (
    "I encountered an error processing your request. "
    "Please check your API key or try again."
)


class RequestState(str, Enum):
    IDLE = "idle"
    GATED = "gated"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class TurnUpdate:
    """One rendered state of the model reply."""

    conversation_id: str
    user_message_id: str
    message_id: str
    state: RequestState
    text: str
    processed_text: str
    citations: tuple[Citation, ...]


@dataclass(slots=True)
class ChatTurn:
    conversation_id: str
    user_message_id: str
    message_id: str
    state: RequestState
    text: str
    processed_text: str
    citations: tuple[Citation, ...]
    request_tokens: int
    response_tokens: int


@dataclass(slots=True)
class _PendingTurn:
    conversation_id: str
    user_message_id: str
    message_id: str
    request: ModelRequest
    request_tokens: int
    text: str = ""
    outcome: RequestState | None = None


class ReplyStream:
    """Iterator over reply updates that always frees its conversation.

    Closing the stream, or dropping it, before the reply has finished
    finalises the placeholder message and releases the conversation, whether
    or not iteration ever started.
    """

    def __init__(self, orchestrator: "ChatOrchestrator", pending: _PendingTurn) -> None:
        self.conversation_id = pending.conversation_id
        self.message_id = pending.message_id
        self._orchestrator = orchestrator
        self._pending = pending
        self._updates = orchestrator._run(pending)
        self._started = False
        self._closed = False

    def __iter__(self) -> "ReplyStream":
        return self

    def __next__(self) -> TurnUpdate:
        if self._closed:
            raise StopIteration
        self._started = True
        try:
            return next(self._updates)
        except StopIteration:
            self._closed = True
            raise

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._started:
            self._updates.close()
        else:
            self._orchestrator._abandon(self._pending)

    def __del__(self) -> None:
        self.close()


class ChatOrchestrator:
    """Runs one user prompt through the model and keeps the stores consistent.

    Per request the state moves `idle -> sending -> streaming -> completed`
    or `-> failed`; an over-budget ledger rejects the request before any
    mutation. Only one request may be in flight per conversation. There is
    no cancellation of the model call itself: a reply abandoned by its
    consumer is finalised as failed and its conversation released.
    """

    def __init__(
        self,
        *,
        model_client: ModelClient,
        documents: DocumentStore,
        conversations: ConversationStore,
        ledger: UsageLedger,
        paging: PagingConfig | None = None,
    ) -> None:
        self.model_client = model_client
        self.documents = documents
        self.conversations = conversations
        self.ledger = ledger
        self.paging = paging or PagingConfig()
        self._lock = threading.Lock()
        self._states: dict[str, RequestState] = {}

    def state_of(self, conversation_id: str) -> RequestState:
        with self._lock:
            return self._states.get(conversation_id, RequestState.IDLE)

    def stream_reply(
        self, prompt: str, *, conversation_id: str | None = None
    ) -> ReplyStream:
        """Accept a prompt and return a stream of reply updates.

        Validation, the budget gate and the sending step run eagerly, so
        `ValueError`, `BudgetExceededError` and `ConversationBusyError` are
        raised here rather than on first iteration. The request-side token
        charge is recorded before the model is called.
        """

        if not prompt.strip():
            raise ValueError("prompt must not be empty")

        if self.ledger.is_over_budget():
            stats = self.ledger.snapshot()
            logger.warning(
                "Request rejected: monthly usage %s reached budget %s",
                stats.monthly,
                stats.budget,
            )
            raise BudgetExceededError(stats.monthly, stats.budget)

        conversation = (
            self.conversations.get(conversation_id)
            if conversation_id is not None
            else self.conversations.active()
        )
        self._acquire(conversation.id)
        try:
            pending = self._begin(conversation.id, prompt)
        except BaseException:
            self._release(conversation.id, RequestState.IDLE)
            raise
        return ReplyStream(self, pending)

    def send(
        self,
        prompt: str,
        *,
        conversation_id: str | None = None,
        on_update: Callable[[TurnUpdate], None] | None = None,
    ) -> ChatTurn:
        """Run a full turn and return the final reply."""
        updates = self.stream_reply(prompt, conversation_id=conversation_id)
        last: TurnUpdate | None = None
        try:
            for update in updates:
                last = update
                if on_update is not None:
                    on_update(update)
        finally:
            updates.close()
        if last is None:
            raise RuntimeError("Reply stream ended without a final update")
        return ChatTurn(
            conversation_id=last.conversation_id,
            user_message_id=last.user_message_id,
            message_id=last.message_id,
            state=last.state,
            text=last.text,
            processed_text=last.processed_text,
            citations=last.citations,
            request_tokens=estimate_tokens(prompt),
            response_tokens=(
                estimate_tokens(last.text) if last.state is RequestState.COMPLETED else 0
            ),
        )

    def _begin(self, conversation_id: str, prompt: str) -> _PendingTurn:
        prior = [
            (message.role, message.text)
            for message in self.conversations.get(conversation_id).messages
        ]
        user_message = self.conversations.append_message(conversation_id, Role.USER, prompt)
        placeholder = self.conversations.append_message(
            conversation_id, Role.MODEL, "", streaming=True
        )
        request_tokens = estimate_tokens(prompt)
        self.ledger.record_usage(request_tokens)

        request = ModelRequest(
            system_instruction=build_system_instruction(
                self.documents.list_documents(), self.paging.chars_per_page
            ),
            new_prompt=prompt,
            prior_messages=prior,
        )
        return _PendingTurn(
            conversation_id=conversation_id,
            user_message_id=user_message.id,
            message_id=placeholder.id,
            request=request,
            request_tokens=request_tokens,
        )

    def _run(self, pending: _PendingTurn) -> Iterator[TurnUpdate]:
        try:
            yield from self._stream(pending)
        finally:
            if pending.outcome is None:
                self._abandon(pending)
            else:
                self._release(pending.conversation_id, pending.outcome)

    def _stream(self, pending: _PendingTurn) -> Iterator[TurnUpdate]:
        cid, mid = pending.conversation_id, pending.message_id
        try:
            for text in self.model_client.stream(pending.request):
                pending.text = text
                self._set_state(cid, RequestState.STREAMING)
                self.conversations.update_message(cid, mid, text, streaming=True)
                yield self._update(pending, RequestState.STREAMING, text)
        except Exception:
            logger.exception("Reply failed for conversation %s", cid)
            pending.outcome = RequestState.FAILED
            self._finalise(pending, ERROR_REPLY)
            yield self._update(pending, RequestState.FAILED, ERROR_REPLY)
            return

        pending.outcome = RequestState.COMPLETED
        self._finalise(pending, pending.text)
        response_tokens = estimate_tokens(pending.text)
        self.ledger.record_usage(response_tokens)
        logger.info(
            "Reply completed for conversation %s: request=%s response=%s tokens",
            cid,
            pending.request_tokens,
            response_tokens,
        )
        yield self._update(pending, RequestState.COMPLETED, pending.text)

    def _abandon(self, pending: _PendingTurn) -> None:
        if pending.outcome is None:
            pending.outcome = RequestState.FAILED
            logger.warning(
                "Reply abandoned before completion for conversation %s",
                pending.conversation_id,
            )
            self._finalise(pending, pending.text or ERROR_REPLY)
        self._release(pending.conversation_id, pending.outcome)

    def _finalise(self, pending: _PendingTurn, text: str) -> None:
        try:
            self.conversations.update_message(
                pending.conversation_id, pending.message_id, text, streaming=False
            )
        except KeyError:
            logger.warning(
                "Conversation %s was removed before its reply finished",
                pending.conversation_id,
            )

    @staticmethod
    def _update(pending: _PendingTurn, state: RequestState, text: str) -> TurnUpdate:
        extraction = extract_citations(text)
        return TurnUpdate(
            conversation_id=pending.conversation_id,
            user_message_id=pending.user_message_id,
            message_id=pending.message_id,
            state=state,
            text=text,
            processed_text=extraction.processed_text,
            citations=extraction.citations,
        )

    def _acquire(self, conversation_id: str) -> None:
        with self._lock:
            current = self._states.get(conversation_id, RequestState.IDLE)
            if current in (RequestState.SENDING, RequestState.STREAMING):
                raise ConversationBusyError(
                    f"Conversation {conversation_id} already has a request in flight"
                )
            self._states[conversation_id] = RequestState.SENDING

    def _set_state(self, conversation_id: str, state: RequestState) -> None:
        with self._lock:
            self._states[conversation_id] = state

    def _release(self, conversation_id: str, state: RequestState) -> None:
        with self._lock:
            self._states[conversation_id] = state
