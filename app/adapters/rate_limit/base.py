"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so counter storage can move to a shared store (e.g., Redis) when the API runs
on more than one instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RateLimitConfig:
    """Budget for one class of endpoints.

    Attributes:
        window_ms: Length of the counting window in milliseconds.
        max_requests: Requests accepted per window.
        block_duration_ms: How long a key stays blocked after exceeding the
            budget. ``0`` blocks until the current window ends.
    """

    window_ms: int
    max_requests: int
    block_duration_ms: int = 0

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.block_duration_ms < 0:
            raise ValueError("block_duration_ms must be >= 0")


@dataclass
class RateLimitEntry:
    """Per-key counter state. Timestamps are epoch milliseconds."""

    key: str
    count: int
    window_start: float
    window_ms: int
    blocked_until: float | None = None

    def is_blocked(self, now_ms: float) -> bool:
        return self.blocked_until is not None and now_ms < self.blocked_until

    def is_expired(self, now_ms: float) -> bool:
        """True once both the window and any block have elapsed."""
        if self.blocked_until is not None:
            return now_ms >= self.blocked_until
        return now_ms >= self.window_start + self.window_ms


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        retry_after_seconds: Seconds to wait before retrying (0 when allowed).
        current_count: Requests counted for the key in the active window.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the key may next be admitted.
    """

    allowed: bool
    retry_after_seconds: int
    current_count: int
    limit: int
    remaining: int
    reset_at: int


@dataclass(frozen=True)
class RateLimitStats:
    """Read-only diagnostic snapshot of a limiter registry."""

    tracked_keys: int
    blocked_keys: int
    total_requests: int
    allowed_requests: int
    rejected_requests: int
    blocks_issued: int
    by_type: dict[str, dict[str, int]] = field(default_factory=dict)
    top_clients: list[dict[str, object]] = field(default_factory=list)


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for ``key`` against ``config``.

        Args:
            key: Unique identifier (namespaced IP address or user id).
            config: Budget to enforce.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> RateLimitStats:
        """Return diagnostic counters without mutating state."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> bool:
        """Forget ``key``. Returns whether an entry existed."""
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self) -> int:
        """Evict entries whose window and block have elapsed."""
        raise NotImplementedError
