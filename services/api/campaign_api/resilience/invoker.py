"""Fallback wrapper so call sites never see breaker errors."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from campaign_api.resilience.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

FallbackListener = Callable[[Exception], None]


class ResilientInvoker:
    """Run operations through a breaker and substitute a fallback on failure."""

    def __init__(
        self,
        breaker: CircuitBreaker,
        on_fallback: FallbackListener | None = None,
    ) -> None:
        """
        Initialize the invoker.

        Args:
            breaker: Breaker guarding the external dependency
            on_fallback: Called with the absorbed error whenever the fallback is used
        """
        self.breaker = breaker
        self._on_fallback = on_fallback

    async def invoke(self, operation: Callable[[], Awaitable[T]], fallback: T) -> T:
        """Return the operation's result, or ``fallback`` if the call failed for any reason."""
        try:
            return await self.breaker.execute(operation)
        except Exception as exc:
            logger.warning(
                "External call via breaker %s failed (%s: %s); state=%s; using fallback",
                self.breaker.name,
                type(exc).__name__,
                exc,
                self.breaker.get_state().value,
            )
            if self._on_fallback is not None:
                try:
                    self._on_fallback(exc)
                except Exception:
                    logger.exception("Fallback listener failed for breaker %s", self.breaker.name)
            return fallback
