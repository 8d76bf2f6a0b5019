"""In-memory fixed-window rate limiter with temporary blocking.

Notes:
- Per-process only: running multiple workers or instances multiplies the
  effective budget. Use a shared store with atomic increments for that.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
    RateLimitStats,
)

_TOP_CLIENTS = 10


class InMemoryRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping one counter per key in process memory.

    Each key counts requests inside a fixed window that starts with the
    key's first request. Exceeding the budget blocks the key for the
    configured block duration; the first request after the block starts a
    fresh window.

    Expired entries are evicted by ``purge_expired()``, which ``check()``
    also runs opportunistically at most once per ``sweep_interval_seconds``.
    """

    def __init__(
        self,
        *,
        sweep_interval_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            sweep_interval_seconds: Minimum delay between opportunistic sweeps.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If sweep_interval_seconds is invalid.
        """
        if sweep_interval_seconds < 1:
            raise ValueError("sweep_interval_seconds must be >= 1")

        self._sweep_interval_ms = sweep_interval_seconds * 1000
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}
        self._last_sweep_ms: float | None = None

        self._total_requests = 0
        self._allowed_requests = 0
        self._rejected_requests = 0
        self._blocks_issued = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryRateLimiter(tracked={len(self._entries)}, "
            f"requests={self._total_requests}, rejected={self._rejected_requests})"
        )

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _maybe_sweep(self, now_ms: float) -> None:
        if self._last_sweep_ms is None:
            self._last_sweep_ms = now_ms
            return
        if now_ms - self._last_sweep_ms >= self._sweep_interval_ms:
            self._purge(now_ms)
            self._last_sweep_ms = now_ms

    def _purge(self, now_ms: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now_ms)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _build_allowed_result(self, entry: RateLimitEntry, config: RateLimitConfig) -> RateLimitResult:
        """Build a RateLimitResult for an allowed request."""
        return RateLimitResult(
            allowed=True,
            retry_after_seconds=0,
            current_count=entry.count,
            limit=config.max_requests,
            remaining=max(0, config.max_requests - entry.count),
            reset_at=int(math.ceil((entry.window_start + config.window_ms) / 1000)),
        )

    def _build_blocked_result(
        self, entry: RateLimitEntry, config: RateLimitConfig, now_ms: float
    ) -> RateLimitResult:
        """Build a RateLimitResult for a rejected request.

        Retry-after is rounded up and never below one second so clients
        always back off.
        """
        blocked_until = entry.blocked_until if entry.blocked_until is not None else now_ms
        retry_after = max(1, int(math.ceil((blocked_until - now_ms) / 1000)))
        return RateLimitResult(
            allowed=False,
            retry_after_seconds=retry_after,
            current_count=entry.count,
            limit=config.max_requests,
            remaining=0,
            reset_at=int(math.ceil(blocked_until / 1000)),
        )

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it may proceed.

        Args:
            key: Unique identifier for rate limiting (namespaced by the caller).
            config: Budget to enforce for this key.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now_ms = self._now_ms()

        with self._lock:
            self._maybe_sweep(now_ms)
            self._total_requests += 1

            entry = self._entries.get(key)

            # Blocked keys are rejected without touching their counter or window.
            if entry is not None and entry.is_blocked(now_ms):
                self._rejected_requests += 1
                return self._build_blocked_result(entry, config, now_ms)

            window_elapsed = entry is not None and now_ms >= entry.window_start + config.window_ms
            if entry is None or entry.blocked_until is not None or window_elapsed:
                entry = RateLimitEntry(
                    key=key,
                    count=1,
                    window_start=now_ms,
                    window_ms=config.window_ms,
                )
                self._entries[key] = entry
                self._allowed_requests += 1
                return self._build_allowed_result(entry, config)

            entry.count += 1
            if entry.count <= config.max_requests:
                self._allowed_requests += 1
                return self._build_allowed_result(entry, config)

            if config.block_duration_ms:
                entry.blocked_until = now_ms + config.block_duration_ms
            else:
                entry.blocked_until = entry.window_start + config.window_ms
            self._blocks_issued += 1
            self._rejected_requests += 1
            return self._build_blocked_result(entry, config, now_ms)

    def stats(self) -> RateLimitStats:
        """Snapshot of tracked keys and aggregate counters.

        Expired entries are left out of the snapshot but not evicted.
        """
        now_ms = self._now_ms()

        with self._lock:
            active = [entry for entry in self._entries.values() if not entry.is_expired(now_ms)]
            by_type: dict[str, dict[str, int]] = {}
            for entry in active:
                key_type = entry.key.split(":", 1)[0]
                bucket = by_type.setdefault(key_type, {"keys": 0, "total_requests": 0})
                bucket["keys"] += 1
                bucket["total_requests"] += entry.count

            top = sorted(active, key=lambda e: e.count, reverse=True)[:_TOP_CLIENTS]
            top_clients: list[dict[str, object]] = [
                {
                    "identifier": entry.key,
                    "requests": entry.count,
                    "blocked": entry.is_blocked(now_ms),
                    "reset_time": datetime.fromtimestamp(
                        (entry.blocked_until or entry.window_start + entry.window_ms) / 1000,
                        tz=timezone.utc,
                    ).isoformat(),
                }
                for entry in top
            ]

            return RateLimitStats(
                tracked_keys=len(active),
                blocked_keys=sum(1 for entry in active if entry.is_blocked(now_ms)),
                total_requests=self._total_requests,
                allowed_requests=self._allowed_requests,
                rejected_requests=self._rejected_requests,
                blocks_issued=self._blocks_issued,
                by_type=by_type,
                top_clients=top_clients,
            )

    def reset(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        now_ms = self._now_ms()
        with self._lock:
            self._last_sweep_ms = now_ms
            return self._purge(now_ms)
