"""Model collaborator interface and the LangChain-backed implementation."""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from lumina_rag.config import ModelConfig
from lumina_rag.types import Role


@dataclass(slots=True)
class ModelRequest:
    system_instruction: str
    new_prompt: str
    prior_messages: list[tuple[Role, str]] = field(default_factory=list)


class ModelClient(Protocol):
    """Streams a reply as cumulative text snapshots.

    Each yielded value is the full text so far, never a delta. Failures
    (network, auth, quota, malformed stream) are raised from the iterator.
    """

    def stream(self, request: ModelRequest) -> Iterator[str]:
        """Yield cumulative reply text."""


_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{system_instruction}"),
        MessagesPlaceholder(variable_name="chat_history", optional=True),
        ("human", "{input}"),
    ]
)


class LangChainModelClient:
    """Adapts any LangChain chat model with `.stream()` to `ModelClient`."""

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    def stream(self, request: ModelRequest) -> Iterator[str]:
        prompt_value = _PROMPT.invoke(
            {
                "system_instruction": request.system_instruction,
                "chat_history": [
                    ("human" if role is Role.USER else "ai", text)
                    for role, text in request.prior_messages
                ],
                "input": request.new_prompt,
            }
        )
        full_text = ""
        for chunk in self.llm.stream(prompt_value):
            text = _chunk_text(chunk)
            if text:
                full_text += text
                yield full_text


def _chunk_text(chunk: Any) -> str:
    content = getattr(chunk, "content", chunk)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text", "")))
            else:
                parts.append(str(item))
        return "".join(parts)
    return str(content or "")


def create_model_client(config: ModelConfig | None = None) -> ModelClient | None:
    """Return an OpenAI-backed client, or None when no API key is configured."""
    if not os.getenv("OPENAI_API_KEY"):
        return None

    from langchain_openai import ChatOpenAI

    config = config or ModelConfig()
    llm = ChatOpenAI(model=config.model_name, temperature=config.temperature)
    return LangChainModelClient(llm)
