"""Exception taxonomy for the chat core."""

from __future__ import annotations


class LuminaError(Exception):
    """Base class for recoverable chat-core errors."""


class BudgetExceededError(LuminaError):
    """Raised before any model call when monthly usage has reached the budget."""

    def __init__(self, monthly: int, budget: int) -> None:
        super().__init__(f"Monthly budget exceeded ({monthly}/{budget} tokens)")
        self.monthly = monthly
        self.budget = budget


class ConversationBusyError(LuminaError):
    """Raised when a conversation already has a request in flight."""


class ConversationNotFoundError(LuminaError, KeyError):
    pass


class DocumentNotFoundError(LuminaError, KeyError):
    pass
