"""Errors raised by the circuit breaker."""

from __future__ import annotations


class CircuitBreakerError(Exception):
    """Base class for failures produced by the breaker itself."""

    def __init__(self, message: str, breaker_name: str) -> None:
        super().__init__(message)
        self.breaker_name = breaker_name


class CircuitOpenError(CircuitBreakerError):
    """The breaker rejected the call without invoking the operation."""

    def __init__(self, breaker_name: str, retry_after_seconds: float) -> None:
        super().__init__(
            f"Circuit breaker '{breaker_name}' is OPEN - service unavailable",
            breaker_name,
        )
        self.retry_after_seconds = retry_after_seconds


class CircuitTimeoutError(CircuitBreakerError):
    """The operation did not complete within the per-call deadline."""

    def __init__(self, breaker_name: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Circuit breaker '{breaker_name}' timed out after {timeout_seconds:g}s",
            breaker_name,
        )
        self.timeout_seconds = timeout_seconds
