"""Configuration models for the chat core."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, ConfigDict, Field


class PagingConfig(BaseModel):
    """Page size shared by prompt context and on-screen display."""

    chars_per_page: int = Field(default=2000, ge=1)


class ModelConfig(BaseModel):
    """Fixed model parameters; not user-exposed."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str = Field(default="gpt-4o-mini", min_length=1)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)


class UsageConfig(BaseModel):
    """Initial ledger state for a fresh installation."""

    default_budget: int = Field(default=1_000_000, ge=0)


class AppSettings(BaseModel):
    state_path: str | None = None
    log_level: str = "INFO"
    paging: PagingConfig = Field(default_factory=PagingConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    usage: UsageConfig = Field(default_factory=UsageConfig)

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            state_path=os.getenv("LUMINA_STATE_PATH") or None,
            log_level=os.getenv("LUMINA_LOG_LEVEL", "INFO"),
            model=ModelConfig(model_name=os.getenv("OPENAI_MODEL", "gpt-4o-mini")),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
