"""
Tests for the circuit breaker and retry helpers.
"""
import pytest

from wedding_photos.errors import MediaLibraryError, UpstreamUnavailableError
from wedding_photos.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState
from wedding_photos.utils.retry import retry_with_backoff


async def _fail():
    raise UpstreamUnavailableError("Backend Error", 503, "get_item")


async def _ok():
    return "ok"


async def test_opens_after_threshold_and_rejects():
    breaker = CircuitBreaker("test_opens", failure_threshold=3, timeout=60)

    for _ in range(3):
        with pytest.raises(UpstreamUnavailableError):
            await breaker.call(_fail)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.call(_ok)


async def test_success_resets_failure_count():
    breaker = CircuitBreaker("test_resets", failure_threshold=2)

    with pytest.raises(UpstreamUnavailableError):
        await breaker.call(_fail)
    assert await breaker.call(_ok) == "ok"
    with pytest.raises(UpstreamUnavailableError):
        await breaker.call(_fail)

    assert breaker.state == CircuitState.CLOSED


async def test_half_open_probe_closes_or_reopens():
    breaker = CircuitBreaker("test_half_open", failure_threshold=1, success_threshold=1, timeout=0)

    with pytest.raises(UpstreamUnavailableError):
        await breaker.call(_fail)
    assert breaker.state == CircuitState.OPEN

    # timeout=0: the next call is a probe
    with pytest.raises(UpstreamUnavailableError):
        await breaker.call(_fail)
    assert breaker.state == CircuitState.OPEN

    assert await breaker.call(_ok) == "ok"
    assert breaker.state == CircuitState.CLOSED


async def test_retry_retries_only_listed_exceptions():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise UpstreamUnavailableError("timeout", operation="oauth_refresh")
        return "token"

    result = await retry_with_backoff(
        flaky, max_attempts=3, initial_delay=0, jitter=False,
        retryable_exceptions=(UpstreamUnavailableError,),
    )
    assert result == "token"
    assert len(calls) == 3

    async def rejected():
        calls.append(1)
        raise MediaLibraryError("invalid_grant", 400, "oauth_refresh")

    calls.clear()
    with pytest.raises(MediaLibraryError):
        await retry_with_backoff(
            rejected, max_attempts=3, initial_delay=0,
            retryable_exceptions=(UpstreamUnavailableError,),
        )
    assert len(calls) == 1
