"""Bounded retry with exponential backoff, jitter and cooperative cancellation.

Every model-service call goes through `RetryExecutor.execute()`. Which errors
are worth another attempt is decided by the caller; the executor only owns
the timing and the cancellation checks around the backoff sleep.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from podcastinator.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryHook = Callable[[int, float, BaseException], Any]
CancelQuery = Callable[[], bool]


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class PipelineCancelled(Exception):
    """Raised when a run observes its cancellation flag.

    Deliberately not an LLMError: generic failure handlers must never
    swallow it or count it as an exhausted retry.
    """


class CancellationToken:
    """A polled cancellation flag, callable as a `CancelQuery`."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __call__(self) -> bool:
        return self._cancelled


def raise_if_cancelled(should_cancel: CancelQuery | None, where: str = "") -> None:
    """Raise PipelineCancelled when the query reports cancellation."""
    if should_cancel is not None and should_cancel():
        logger.info("Cancellation observed%s", f" ({where})" if where else "")
        raise PipelineCancelled(f"Cancelled{': ' + where if where else ''}")


# ---------------------------------------------------------------------------
# Network error heuristics (used when a call site supplies no predicate)
# ---------------------------------------------------------------------------

_NETWORK_ERROR_PATTERNS = (
    "network error",
    "failed to fetch",
    "connection refused",
    "connection reset",
    "connection closed",
    "timeout",
    "timed out",
    "socket hang up",
    "econnrefused",
    "econnreset",
    "etimedout",
    "internet disconnected",
)


def is_network_error(exc: BaseException) -> bool:
    """Best-effort check whether an exception looks like a connectivity failure."""
    message = f"{type(exc).__name__}: {exc}".lower()
    return any(pattern in message for pattern in _NETWORK_ERROR_PATTERNS)


# ---------------------------------------------------------------------------
# Policy + executor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters. Delays are in milliseconds."""
    max_retries: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 10000.0
    jitter_fraction: float = 0.25

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            base_delay_ms=settings.RETRY_BASE_DELAY_MS,
            max_delay_ms=settings.RETRY_MAX_DELAY_MS,
            jitter_fraction=settings.RETRY_JITTER,
        )


class RetryExecutor:
    """Runs an async operation, retrying retryable failures with backoff.

    Usage:
        executor = RetryExecutor(RetryPolicy(), should_cancel=token)
        result = await executor.execute(lambda: client.post(...), is_retryable)
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        on_retry: RetryHook | None = None,
        should_cancel: CancelQuery | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.on_retry = on_retry
        self.should_cancel = should_cancel
        self._sleep = sleep
        self._rand = rand

    def compute_delay(self, attempt: int) -> float:
        """Delay in ms before retry number `attempt` (1-based)."""
        p = self.policy
        delay = p.base_delay_ms * 2 ** (attempt - 1)
        delay *= 1 + p.jitter_fraction * self._rand()
        return min(p.max_delay_ms, delay)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Callable[[BaseException], bool] | None = None,
    ) -> T:
        """Await `operation()` until it succeeds or fails terminally.

        Args:
            operation: Zero-argument factory returning a fresh awaitable per attempt.
            is_retryable: Classifies failures; defaults to `is_network_error`.

        Returns:
            The operation's result.

        Raises:
            PipelineCancelled: If cancellation is observed around a backoff sleep.
            Exception: The operation's last error, unchanged, once it is terminal
                or the retry budget is spent.
        """
        check = is_retryable or is_network_error
        attempt = 0

        while True:
            raise_if_cancelled(self.should_cancel, "before attempt")
            try:
                return await operation()
            except PipelineCancelled:
                raise
            except Exception as exc:
                attempt += 1
                if attempt > self.policy.max_retries or not check(exc):
                    raise

                delay = self.compute_delay(attempt)
                logger.warning(
                    "Retry %d/%d in %.0fms after %s: %s",
                    attempt, self.policy.max_retries, delay, type(exc).__name__, exc,
                )
                if self.on_retry is not None:
                    self.on_retry(attempt, delay, exc)

                raise_if_cancelled(self.should_cancel, "before backoff")
                await self._sleep(delay / 1000.0)
                raise_if_cancelled(self.should_cancel, "after backoff")
