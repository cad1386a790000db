"""
In-memory TTL cache for idempotent reads.

Entries expire lazily on get()/has() and are also swept periodically by the
application lifespan (services/sweeper.py). The cache is NOT write-through:
whoever writes to the store must invalidate the keys it touched.
"""

import functools
import inspect
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger(__name__)

# ─── Config ────────────────────────────────────────────────────────────────────
DEFAULT_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", "300"))
CLEANUP_INTERVAL_SECONDS = 10 * 60

_MISSING = object()


@dataclass
class CacheEntry:
    value: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class ResultCache:
    """Thread-safe key → value store with per-entry TTL."""

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(value=value, stored_at=self._clock(), ttl=self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = entry

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        # Caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key)
        return default if entry is None else entry.value

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Invalidate every key starting with prefix. Returns count removed."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def cleanup(self) -> int:
        """Evict every expired entry. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expired(now)]
            for k in expired:
                del self._entries[k]
        if expired:
            log.info(f"[SWEEP] cache evicted {len(expired)} expired entr{'y' if len(expired) == 1 else 'ies'}")
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            keys: List[str] = list(self._entries.keys())
        return {"size": len(keys), "keys": keys}


# Process-wide cache shared by the read endpoints and the question store
cache = ResultCache()


def get_cache() -> ResultCache:
    """FastAPI dependency — overridable in tests."""
    return cache


# ─── Key generators ────────────────────────────────────────────────────────────

class cache_keys:
    ALL_PREFIX = "questions:"

    @staticmethod
    def all_questions() -> str:
        return "questions:all"

    @staticmethod
    def question(question_id: str) -> str:
        return f"question:{question_id}"

    @staticmethod
    def by_difficulty(difficulty: str) -> str:
        return f"questions:difficulty:{difficulty}"

    @staticmethod
    def by_topic(topic: str) -> str:
        return f"questions:topic:{topic}"

    @staticmethod
    def search(term: str) -> str:
        return f"questions:search:{term}"

    @staticmethod
    def stats() -> str:
        return "questions:stats"


# ─── Memoization wrapper ───────────────────────────────────────────────────────

def cached(
    key_func: Callable[..., str],
    ttl: Optional[float] = None,
    cache: Optional[ResultCache] = None,
):
    """
    Memoize a pure (or idempotent) function by key_func(*args, **kwargs).

    Works for plain and async functions; for coroutines the awaited result is
    stored, not the coroutine. `cache` defaults to the process-wide cache,
    resolved at call time.
    """
    def decorator(fn):
        def _cache() -> ResultCache:
            return cache if cache is not None else get_cache()

        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args, **kwargs):
                key = key_func(*args, **kwargs)
                hit = _cache().get(key, _MISSING)
                if hit is not _MISSING:
                    return hit
                result = await fn(*args, **kwargs)
                _cache().set(key, result, ttl)
                return result
            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            key = key_func(*args, **kwargs)
            hit = _cache().get(key, _MISSING)
            if hit is not _MISSING:
                return hit
            result = fn(*args, **kwargs)
            _cache().set(key, result, ttl)
            return result
        return wrapper

    return decorator
