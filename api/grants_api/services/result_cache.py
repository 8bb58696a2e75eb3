"""In-process memoization of computed summaries and distributions.

Values live for the lifetime of the process. When persisting a freshly
computed result fails, the cache still serves it.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol


class _CacheMiss:
    def __repr__(self) -> str:
        return "CACHE_MISS"

    def __bool__(self) -> bool:
        return False


CACHE_MISS: Any = _CacheMiss()


class ResultCache(Protocol):
    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class InMemoryResultCache:
    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            return self._values.get(key, CACHE_MISS)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


def fingerprint(kind: str, chain_id: str, round_id: str, project_id: str | None = None) -> str:
    parts = [kind, str(chain_id).strip(), round_id.strip().lower()]
    if project_id:
        parts.append(project_id.strip().lower())
    return ":".join(parts)
