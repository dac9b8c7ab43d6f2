"""Token usage ledger and budget gate."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, replace

from lumina_rag.store.state import JsonStateStore
from lumina_rag.types import UsageStats

logger = logging.getLogger(__name__)

_STATE_KEY = "usage"


class UsageLedger:
    """Tracks daily, monthly and yearly token counters against a budget.

    Every accounted event moves all three counters by the same delta. Period
    resets are handled outside this class. The gate is advisory and local; it
    is not a billing record.
    """

    def __init__(
        self,
        *,
        state_store: JsonStateStore | None = None,
        default_budget: int = 1_000_000,
    ) -> None:
        self._state_store = state_store
        self._lock = threading.Lock()
        saved = state_store.load(_STATE_KEY) if state_store is not None else None
        if saved:
            self._stats = UsageStats(
                daily=int(saved.get("daily", 0)),
                monthly=int(saved.get("monthly", 0)),
                yearly=int(saved.get("yearly", 0)),
                budget=int(saved.get("budget", default_budget)),
            )
        else:
            self._stats = UsageStats(budget=default_budget)

    def record_usage(self, tokens: int) -> UsageStats:
        if tokens < 0:
            raise ValueError("tokens must be non-negative")
        with self._lock:
            self._stats.daily += tokens
            self._stats.monthly += tokens
            self._stats.yearly += tokens
            self._persist()
            return replace(self._stats)

    def set_budget(self, limit: int) -> UsageStats:
        # No check against current usage: a lower budget takes effect at once.
        with self._lock:
            self._stats.budget = limit
            self._persist()
            logger.info("Monthly budget set to %s tokens", limit)
            return replace(self._stats)

    def is_over_budget(self) -> bool:
        with self._lock:
            return self._stats.monthly >= self._stats.budget

    def remaining(self) -> int:
        with self._lock:
            return max(0, self._stats.budget - self._stats.monthly)

    def snapshot(self) -> UsageStats:
        with self._lock:
            return replace(self._stats)

    def _persist(self) -> None:
        if self._state_store is not None:
            self._state_store.save(_STATE_KEY, asdict(self._stats))
