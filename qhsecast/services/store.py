"""
Result Store — TTL cache + bounded history log.

Memoizes per-entity results and keeps a rolling history used as the
confidence estimator's historical-accuracy input.

- Cache: entry older than its TTL is evicted on read and reported as a miss
- History: append-only, capacity N, oldest evicted first (FIFO)

No locking: single event loop, last write wins for concurrent callers.
The store is injected into the engine so tests and multiple engines get
isolated state.
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS: float = 300.0      # 5 minutes
DEFAULT_HISTORY_CAPACITY: int = 100


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


@dataclass(frozen=True)
class HistoryEntry:
    entity_id: str
    timestamp: float
    score: float
    accuracy: float


class ResultStore(Protocol):
    """Interface the engine depends on."""

    def get(self, key: str) -> Optional[Any]: ...

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None: ...

    def append_history(self, entity_id: str, score: float, accuracy: float) -> None: ...

    def history(self) -> list[HistoryEntry]: ...


class InMemoryResultStore:
    """Process-local ResultStore."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("History capacity must be positive")
        self.default_ttl = default_ttl
        self.capacity = capacity
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._history: deque[HistoryEntry] = deque(maxlen=capacity)

    # ── Cache ─────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        """Cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("cache_entry_expired", key=key)
            return None
        return entry.value

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(
            value=value,
            created_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Reset all state (for testing)."""
        self._entries.clear()
        self._history.clear()

    def __len__(self) -> int:
        return len(self._entries)

    # ── History ───────────────────────────────────────────────────────

    def append_history(self, entity_id: str, score: float, accuracy: float) -> None:
        self._history.append(HistoryEntry(
            entity_id=entity_id,
            timestamp=self._clock(),
            score=score,
            accuracy=accuracy,
        ))

    def history(self) -> list[HistoryEntry]:
        return list(self._history)


# ── Cache key builders ───────────────────────────────────────────────────


def recommendation_key(entity_id: str, module_id: str) -> str:
    return f"recommendation:{module_id}:{entity_id}"
