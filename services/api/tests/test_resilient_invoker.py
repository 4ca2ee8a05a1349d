"""Tests for the fallback invoker."""

import asyncio
import logging

import pytest

from campaign_api.config.models import CircuitBreakerConfig
from campaign_api.resilience.circuit_breaker import CircuitBreaker, CircuitState
from campaign_api.resilience.clock import ManualClock
from campaign_api.resilience.errors import CircuitOpenError, CircuitTimeoutError
from campaign_api.resilience.invoker import ResilientInvoker

FALLBACK = {"source": "fallback"}


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def breaker(clock: ManualClock) -> CircuitBreaker:
    config = CircuitBreakerConfig(
        failure_threshold=2,
        success_threshold=1,
        call_timeout_seconds=1.0,
        open_duration_seconds=10.0,
    )
    return CircuitBreaker(config, name="predictive_model", clock=clock)


async def _ok() -> dict[str, str]:
    return {"source": "model"}


async def _fail() -> dict[str, str]:
    raise ConnectionError("model unreachable")


@pytest.mark.asyncio
async def test_returns_operation_result(breaker: CircuitBreaker):
    """Return the real value when the call succeeds."""
    invoker = ResilientInvoker(breaker)

    assert await invoker.invoke(_ok, FALLBACK) == {"source": "model"}


@pytest.mark.asyncio
async def test_operation_failure_returns_fallback(
    breaker: CircuitBreaker, caplog: pytest.LogCaptureFixture
):
    """Absorb native failures, log them with the breaker state and return the fallback."""
    absorbed: list[Exception] = []
    invoker = ResilientInvoker(breaker, on_fallback=absorbed.append)

    with caplog.at_level(logging.WARNING, logger="campaign_api.resilience.invoker"):
        result = await invoker.invoke(_fail, FALLBACK)

    assert result is FALLBACK
    assert isinstance(absorbed[0], ConnectionError)
    assert "model unreachable" in caplog.text
    assert "state=CLOSED" in caplog.text


@pytest.mark.asyncio
async def test_open_breaker_returns_fallback_without_calling(breaker: CircuitBreaker):
    """Serve the fallback while OPEN without touching the dependency."""
    absorbed: list[Exception] = []
    invoker = ResilientInvoker(breaker, on_fallback=absorbed.append)
    calls = 0

    async def _counted() -> dict[str, str]:
        nonlocal calls
        calls += 1
        return {"source": "model"}

    breaker.force_open()
    result = await invoker.invoke(_counted, FALLBACK)

    assert result is FALLBACK
    assert calls == 0
    assert isinstance(absorbed[0], CircuitOpenError)


@pytest.mark.asyncio
async def test_timeout_returns_fallback(breaker: CircuitBreaker, clock: ManualClock):
    """Substitute the fallback when the call exceeds its deadline."""
    absorbed: list[Exception] = []
    invoker = ResilientInvoker(breaker, on_fallback=absorbed.append)

    async def _hang() -> dict[str, str]:
        await clock.sleep(60)
        return {"source": "model"}

    task = asyncio.ensure_future(invoker.invoke(_hang, FALLBACK))
    for _ in range(5):
        await asyncio.sleep(0)
    clock.advance(1.0)

    assert await task is FALLBACK
    assert isinstance(absorbed[0], CircuitTimeoutError)


@pytest.mark.asyncio
async def test_repeated_failures_open_breaker(breaker: CircuitBreaker):
    """Keep counting failures so the breaker trips behind the fallback."""
    invoker = ResilientInvoker(breaker)

    await invoker.invoke(_fail, FALLBACK)
    await invoker.invoke(_fail, FALLBACK)

    assert breaker.get_state() is CircuitState.OPEN


@pytest.mark.asyncio
async def test_failing_listener_still_returns_fallback(
    breaker: CircuitBreaker, caplog: pytest.LogCaptureFixture
):
    """Keep serving the fallback when the fallback listener itself raises."""

    def _broken_listener(exc: Exception) -> None:
        raise RuntimeError("metrics backend down")

    invoker = ResilientInvoker(breaker, on_fallback=_broken_listener)

    with caplog.at_level(logging.ERROR, logger="campaign_api.resilience.invoker"):
        result = await invoker.invoke(_fail, FALLBACK)

    assert result is FALLBACK
    assert "Fallback listener failed for breaker predictive_model" in caplog.text
    assert breaker.get_stats().consecutive_failures == 1
