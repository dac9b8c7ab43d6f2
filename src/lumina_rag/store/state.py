"""Local persisted state with whole-collection get/set semantics."""

from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonStateStore:
    """Keyed JSON state, read once at startup and rewritten on every save.

    With `path=None` the state lives only in memory, which is what tests and
    ephemeral deployments use.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._data: dict[str, Any] = self._read()

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self._flush()

    def _read(self) -> dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Ignoring unreadable state file %s", self._path)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring state file %s with non-object root", self._path)
            return {}
        return payload

    def _flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)
