"""Per-client request rate limiting for the HTTP front end."""

from __future__ import annotations

import hashlib
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable


def now_ms() -> int:
    return int(time.time() * 1000)


def client_identity(headers: Any, client_address: tuple[Any, ...] | None = None) -> str:
    """Stable rate-limit key: token fingerprint when present, else client ip."""
    raw_auth = str(headers.get("Authorization", "") or "").strip()
    if raw_auth.lower().startswith("bearer "):
        candidate = raw_auth[7:].strip()
        if candidate:
            return f"bearer:{_fingerprint(candidate)}"
    x_auth_token = str(headers.get("X-Auth-Token", "") or "").strip()
    if x_auth_token:
        return f"xauth:{_fingerprint(x_auth_token)}"
    if client_address:
        return f"ip:{client_address[0]}"
    return "unknown"


def _fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


@dataclass(slots=True)
class RequestRateLimiter:
    """Sliding-window per-key request limiter."""

    requests_per_minute: int = 600
    burst: int = 120
    window_seconds: int = 60
    max_keys: int = 10000
    _now_fn: Callable[[], int] = now_ms
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _hits: dict[str, deque[int]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.requests_per_minute = max(1, int(self.requests_per_minute))
        self.burst = max(0, int(self.burst))
        self.window_seconds = max(1, int(self.window_seconds))
        self.max_keys = max(100, int(self.max_keys))

    @property
    def limit(self) -> int:
        return int(self.requests_per_minute + self.burst)

    def allow(self, *, key: str) -> bool:
        token = str(key or "").strip() or "unknown"
        now = int(self._now_fn())
        cutoff = now - self.window_seconds * 1000
        with self._lock:
            buf = self._hits.get(token)
            if buf is None:
                buf = deque()
                self._hits[token] = buf
            while buf and int(buf[0]) < cutoff:
                buf.popleft()
            if len(buf) >= self.limit:
                return False
            buf.append(now)
            if len(self._hits) > self.max_keys:
                stale_keys = [k for k, q in self._hits.items() if not q or int(q[-1]) < cutoff]
                for stale in stale_keys[: max(1, self.max_keys // 5)]:
                    self._hits.pop(stale, None)
            return True
