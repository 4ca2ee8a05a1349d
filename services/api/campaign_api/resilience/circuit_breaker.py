"""Circuit breaker guarding a single unreliable async dependency.

State machine:
    CLOSED    calls pass through; ``failure_threshold`` consecutive failures
              trip the breaker OPEN, any success clears the failure count.
    OPEN      calls are rejected with ``CircuitOpenError`` without invoking
              the operation until ``open_duration_seconds`` have passed since
              the last failure. The first call after the cooldown moves the
              breaker to HALF_OPEN and is itself the probe.
    HALF_OPEN ``success_threshold`` consecutive successes close the breaker;
              a single failure re-opens it.

Every call races the operation against ``call_timeout_seconds``. The timeout
is best-effort: the operation is not cancelled and may keep running, but its
late outcome is ignored.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from campaign_api.config.models import CircuitBreakerConfig
from campaign_api.resilience.clock import Clock, SystemClock
from campaign_api.resilience.errors import CircuitOpenError, CircuitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

StateListener = Callable[["CircuitState", "CircuitState"], None]


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class BreakerStats:
    """Point-in-time copy of the breaker counters."""

    state: CircuitState
    consecutive_failures: int
    consecutive_successes: int
    last_failure_at: float | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["state"] = self.state.value
        return data


class CircuitBreaker:
    """Failure-counting breaker with cooldown, probing and per-call timeout.

    Example:
        >>> breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3))
        >>> result = await breaker.execute(lambda: client.fetch())
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        name: str = "default",
        clock: Clock | None = None,
        on_state_change: StateListener | None = None,
    ) -> None:
        """Initialize a CLOSED breaker.

        Args:
            config: Thresholds and durations (defaults if not provided)
            name: Name of the guarded dependency, used in errors and logs
            clock: Time source; ``SystemClock`` unless a test injects one
            on_state_change: Called with ``(old, new)`` after each transition
        """
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self._clock: Clock = clock or SystemClock()
        self._on_state_change = on_state_change

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._last_failure_at: float | None = None

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under breaker protection.

        Raises:
            CircuitOpenError: The breaker is OPEN and still cooling down
            CircuitTimeoutError: The operation exceeded the call timeout
            Exception: Whatever the operation raised, unchanged
        """
        if self._state is CircuitState.OPEN:
            if self._cooldown_elapsed():
                self._transition(CircuitState.HALF_OPEN)
            else:
                raise CircuitOpenError(self.name, self._retry_after())

        try:
            result = await self._call_with_timeout(operation)
        except Exception:
            self._record_failure()
            raise

        self._record_success()
        return result

    def get_state(self) -> CircuitState:
        return self._state

    def get_stats(self) -> BreakerStats:
        return BreakerStats(
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            consecutive_successes=self._consecutive_successes,
            last_failure_at=self._last_failure_at,
        )

    def force_open(self) -> None:
        """Trip the breaker immediately; the normal cooldown applies afterwards."""
        self._last_failure_at = self._clock.time()
        self._transition(CircuitState.OPEN)

    def force_close(self) -> None:
        """Reset to CLOSED with zeroed counters."""
        self._transition(CircuitState.CLOSED)
        self._reset_counters()

    async def _call_with_timeout(self, operation: Callable[[], Awaitable[T]]) -> T:
        timeout = self.config.call_timeout_seconds
        call = asyncio.ensure_future(operation())
        timer = asyncio.ensure_future(self._clock.sleep(timeout))
        try:
            done, _ = await asyncio.wait({call, timer}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            timer.cancel()

        if call in done:
            return call.result()

        call.add_done_callback(self._discard_late_outcome)
        raise CircuitTimeoutError(self.name, timeout)

    def _discard_late_outcome(self, call: asyncio.Future[Any]) -> None:
        if call.cancelled():
            return
        # Retrieve the exception so asyncio does not report it as unhandled.
        exc = call.exception()
        logger.debug(
            "Late outcome ignored for breaker %s: %s",
            self.name,
            "error" if exc else "success",
        )

    def _record_success(self) -> None:
        if self._state is CircuitState.HALF_OPEN:
            self._consecutive_successes += 1
            if self._consecutive_successes >= self.config.success_threshold:
                self._transition(CircuitState.CLOSED)
                self._reset_counters()
        elif self._state is CircuitState.CLOSED:
            self._consecutive_failures = 0
        # A late success while OPEN does not change anything.

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        self._last_failure_at = self._clock.time()

        if self._state is CircuitState.HALF_OPEN:
            self._consecutive_successes = 0
            self._transition(CircuitState.OPEN)
        elif (
            self._state is CircuitState.CLOSED
            and self._consecutive_failures >= self.config.failure_threshold
        ):
            self._transition(CircuitState.OPEN)

    def _cooldown_elapsed(self) -> bool:
        if self._last_failure_at is None:
            return True
        elapsed = self._clock.time() - self._last_failure_at
        return elapsed >= self.config.open_duration_seconds

    def _retry_after(self) -> float:
        if self._last_failure_at is None:
            return 0.0
        elapsed = self._clock.time() - self._last_failure_at
        return max(0.0, self.config.open_duration_seconds - elapsed)

    def _reset_counters(self) -> None:
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._last_failure_at = None

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state is new_state:
            return
        self._state = new_state
        if new_state is CircuitState.CLOSED:
            self._reset_counters()

        level = logging.WARNING if new_state is CircuitState.OPEN else logging.INFO
        logger.log(
            level,
            "Circuit breaker %s: %s -> %s (failures=%d)",
            self.name,
            old_state.value,
            new_state.value,
            self._consecutive_failures,
        )

        if self._on_state_change is not None:
            try:
                self._on_state_change(old_state, new_state)
            except Exception:
                logger.exception("State change listener failed for breaker %s", self.name)
