"""
Rate limiting for the HTTP layer.

Sliding-window request counter kept per client identity and per endpoint class:
  - api         → 100 requests / minute
  - chat        →  30 requests / minute
  - generation  →   5 requests / minute (each request fans out into many LLM calls)

admit() never blocks and never raises. A background sweep (see services/sweeper.py)
drops clients that have been idle for two full windows so the map stays bounded.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from fastapi import Depends, HTTPException, Request, Response

log = logging.getLogger(__name__)


# ─── Config ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RateLimitConfig:
    window_seconds: float
    max_requests: int


DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    "api": RateLimitConfig(window_seconds=60, max_requests=100),
    "chat": RateLimitConfig(window_seconds=60, max_requests=30),
    "generation": RateLimitConfig(window_seconds=60, max_requests=5),
}

FALLBACK_CLASS = "api"


@dataclass
class RateLimitResult:
    """Outcome of one admission decision."""
    allowed: bool
    remaining: int
    reset_at: float   # epoch seconds at which the oldest counted request leaves the window


@dataclass
class _Window:
    requests: List[float] = field(default_factory=list)


# ─── Limiter ───────────────────────────────────────────────────────────────────

class RateLimiter:
    """
    Per-client, per-class sliding-window limiter.

    Every class keeps its own client map, so exhausting "generation" leaves
    "chat" untouched. A request is admitted only while the count inside the
    trailing window is strictly below max_requests.
    """

    def __init__(
        self,
        limits: Optional[Dict[str, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.limits: Dict[str, RateLimitConfig] = dict(limits or DEFAULT_LIMITS)
        self._clock = clock
        self._windows: Dict[str, Dict[str, _Window]] = {}
        self._lock = threading.Lock()

    def _config(self, limiter_class: str) -> RateLimitConfig:
        config = self.limits.get(limiter_class)
        if config is None:
            config = self.limits.get(FALLBACK_CLASS) or DEFAULT_LIMITS[FALLBACK_CLASS]
        return config

    def limit(self, limiter_class: str) -> int:
        """Configured max requests per window for a class."""
        return self._config(limiter_class).max_requests

    def admit(self, client_id: str, limiter_class: str) -> RateLimitResult:
        config = self._config(limiter_class)
        now = self._clock()
        window_start = now - config.window_seconds

        with self._lock:
            clients = self._windows.setdefault(limiter_class, {})
            window = clients.get(client_id)
            if window is None:
                window = _Window()
                clients[client_id] = window

            window.requests = [t for t in window.requests if t > window_start]
            allowed = len(window.requests) < config.max_requests
            if allowed:
                window.requests.append(now)

            remaining = max(0, config.max_requests - len(window.requests))
            oldest = window.requests[0] if window.requests else now
            reset_at = oldest + config.window_seconds

        return RateLimitResult(allowed=allowed, remaining=remaining, reset_at=reset_at)

    def reset(self, client_id: str) -> None:
        """Forget a client on every class."""
        with self._lock:
            for clients in self._windows.values():
                clients.pop(client_id, None)

    def sweep(self) -> int:
        """Drop clients whose newest request is older than two windows. Returns count removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for limiter_class, clients in self._windows.items():
                cutoff = now - self._config(limiter_class).window_seconds * 2
                stale = [
                    cid for cid, window in clients.items()
                    if not window.requests or window.requests[-1] < cutoff
                ]
                for cid in stale:
                    del clients[cid]
                removed += len(stale)
        if removed:
            log.info(f"[SWEEP] rate limiter dropped {removed} idle client(s)")
        return removed

    def stats(self) -> Dict[str, Dict[str, int]]:
        """Per class: total tracked clients and clients with requests inside the window."""
        now = self._clock()
        result: Dict[str, Dict[str, int]] = {}
        with self._lock:
            for limiter_class in self.limits:
                clients = self._windows.get(limiter_class, {})
                window_start = now - self._config(limiter_class).window_seconds
                active = sum(
                    1 for window in clients.values()
                    if any(t > window_start for t in window.requests)
                )
                result[limiter_class] = {"total_clients": len(clients), "active_clients": active}
        return result


# Process-wide limiter used by the routers
rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency — overridable in tests."""
    return rate_limiter


# ─── Request helpers ───────────────────────────────────────────────────────────

def get_client_id(request: Request) -> str:
    """Client identity: first X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_headers(limiter: RateLimiter, limiter_class: str, result: RateLimitResult) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limiter.limit(limiter_class)),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_at)),
    }


def enforce_rate_limit(
    limiter: RateLimiter,
    request: Request,
    response: Response,
    limiter_class: str,
) -> RateLimitResult:
    """
    Admit one request or raise 429.

    Admitted requests get X-RateLimit-* headers on the response;
    rejected ones raise 429 carrying the same headers.
    """
    client_id = get_client_id(request)
    result = limiter.admit(client_id, limiter_class)
    headers = rate_limit_headers(limiter, limiter_class, result)
    if not result.allowed:
        log.warning(f"[RATE LIMIT] {limiter_class} rejected client={client_id}")
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again later.",
            headers=headers,
        )
    for name, value in headers.items():
        response.headers[name] = value
    return result


def rate_limited(limiter_class: str):
    """Build a FastAPI dependency enforcing one limiter class."""
    def _dependency(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        return enforce_rate_limit(limiter, request, response, limiter_class)

    return _dependency
