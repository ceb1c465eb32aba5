"""RetryExecutor: backoff timing, retry budget, predicate and cancellation."""
import asyncio

import pytest

from podcastinator.services.llm_client import AuthError, RateLimitError, TransientNetworkError, is_retryable
from podcastinator.services.retry import (
    CancellationToken,
    PipelineCancelled,
    RetryExecutor,
    RetryPolicy,
    is_network_error,
    raise_if_cancelled,
)


class Flaky:
    """Fails with the given errors in order, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def _executor(**kwargs):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    kwargs.setdefault("rand", lambda: 0.0)
    return RetryExecutor(kwargs.pop("policy", RetryPolicy()), sleep=fake_sleep, **kwargs), sleeps


def test_compute_delay_doubles_and_caps():
    executor, _ = _executor(policy=RetryPolicy(base_delay_ms=1000, max_delay_ms=10000, jitter_fraction=0.25))
    assert executor.compute_delay(1) == 1000
    assert executor.compute_delay(2) == 2000
    assert executor.compute_delay(3) == 4000
    assert executor.compute_delay(5) == 10000


def test_compute_delay_jitter_bounds():
    policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=100000, jitter_fraction=0.25)
    low, _ = _executor(policy=policy, rand=lambda: 0.0)
    high, _ = _executor(policy=policy, rand=lambda: 0.999999)
    for attempt in (1, 2, 3):
        base = 1000 * 2 ** (attempt - 1)
        assert low.compute_delay(attempt) == base
        assert base <= high.compute_delay(attempt) <= base * 1.25


def test_succeeds_after_transient_failures():
    executor, sleeps = _executor()
    op = Flaky(TransientNetworkError("reset"), RateLimitError("slow down"))

    result = asyncio.run(executor.execute(op, is_retryable))

    assert result == "ok"
    assert op.calls == 3
    assert sleeps == [1.0, 2.0]


def test_gives_up_after_max_retries_with_last_error():
    executor, sleeps = _executor(policy=RetryPolicy(max_retries=3))
    errors = [TransientNetworkError(f"fail {i}") for i in range(4)]
    op = Flaky(*errors)

    with pytest.raises(TransientNetworkError) as exc_info:
        asyncio.run(executor.execute(op, is_retryable))

    assert exc_info.value is errors[-1]
    assert op.calls == 4
    assert len(sleeps) == 3


def test_non_retryable_error_is_raised_immediately():
    executor, sleeps = _executor()
    op = Flaky(AuthError("bad key"))

    with pytest.raises(AuthError):
        asyncio.run(executor.execute(op, is_retryable))

    assert op.calls == 1
    assert sleeps == []


def test_zero_retries_means_single_attempt():
    executor, _ = _executor(policy=RetryPolicy(max_retries=0))
    op = Flaky(TransientNetworkError("down"))

    with pytest.raises(TransientNetworkError):
        asyncio.run(executor.execute(op, is_retryable))
    assert op.calls == 1


def test_on_retry_hook_receives_attempt_and_delay():
    seen = []
    executor, _ = _executor(on_retry=lambda attempt, delay, exc: seen.append((attempt, delay, str(exc))))
    op = Flaky(TransientNetworkError("blip"))

    asyncio.run(executor.execute(op, is_retryable))

    assert seen == [(1, 1000.0, "blip")]


def test_cancellation_during_backoff_stops_retrying():
    token = CancellationToken()
    calls = []

    async def cancelling_sleep(seconds):
        token.cancel()

    async def op():
        calls.append(1)
        raise TransientNetworkError("down")

    executor = RetryExecutor(RetryPolicy(), should_cancel=token, sleep=cancelling_sleep, rand=lambda: 0.0)

    with pytest.raises(PipelineCancelled):
        asyncio.run(executor.execute(op, is_retryable))
    assert len(calls) == 1


def test_cancelled_before_first_attempt_never_calls():
    token = CancellationToken()
    token.cancel()
    op = Flaky()
    executor, _ = _executor(should_cancel=token)

    with pytest.raises(PipelineCancelled):
        asyncio.run(executor.execute(op, is_retryable))
    assert op.calls == 0


def test_default_predicate_matches_network_messages():
    assert is_network_error(ConnectionError("Connection reset by peer"))
    assert is_network_error(TimeoutError("request timed out"))
    assert not is_network_error(ValueError("bad input"))

    executor, _ = _executor()
    op = Flaky(ConnectionError("connection refused"))
    assert asyncio.run(executor.execute(op)) == "ok"


def test_raise_if_cancelled():
    raise_if_cancelled(None)
    raise_if_cancelled(lambda: False)
    with pytest.raises(PipelineCancelled):
        raise_if_cancelled(lambda: True, "here")
