"""Persisted user profile."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any

from lumina_rag.store.state import JsonStateStore
from lumina_rag.types import Theme, UserProfile

logger = logging.getLogger(__name__)

_STATE_KEY = "user"
_FIELDS = ("name", "email", "avatar_url", "theme")


class ProfileStore:
    def __init__(self, *, state_store: JsonStateStore | None = None) -> None:
        self._state_store = state_store
        self._lock = threading.Lock()
        saved = state_store.load(_STATE_KEY) if state_store is not None else None
        self._profile = UserProfile.from_dict(saved) if saved else UserProfile()

    def get(self) -> UserProfile:
        with self._lock:
            return replace(self._profile)

    def update(self, **changes: Any) -> UserProfile:
        """Merge the given fields into the profile; omitted fields keep their value.

        Unknown fields and themes outside light/dark/system raise `ValueError`.
        """

        unknown = set(changes) - set(_FIELDS)
        if unknown:
            raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        if "theme" in changes:
            changes["theme"] = Theme(changes["theme"])

        with self._lock:
            self._profile = replace(self._profile, **changes)
            if self._state_store is not None:
                self._state_store.save(_STATE_KEY, self._profile.to_dict())
            logger.info("Profile updated: %s", ", ".join(sorted(changes)) or "no fields")
            return replace(self._profile)
