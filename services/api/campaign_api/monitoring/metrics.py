"""Prometheus metrics for the campaign analytics API.

Each application instance owns its own ``CollectorRegistry`` so several
apps (for example in tests) can coexist in one process.

Example:
    >>> metrics = MetricsService()
    >>> metrics.record_cache_lookup("campaigns", hit=True)
    >>> metrics.set_breaker_state("OPEN")
    >>> payload = metrics.render()
"""

import logging
from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

BREAKER_STATE_VALUES = {"CLOSED": 0, "HALF_OPEN": 1, "OPEN": 2}


@dataclass(frozen=True)
class MetricsConfig:
    """Configuration for metrics service.

    Attributes:
        enabled: Whether metrics collection is enabled
        prefix: Metric name prefix
    """

    enabled: bool = True
    prefix: str = "campaign_api"


class MetricsService:
    """Cache, breaker and model-call metrics for Prometheus scraping."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, config: MetricsConfig | None = None) -> None:
        """Initialize metrics service.

        Args:
            config: Metrics configuration (uses defaults if not provided)
        """
        self.config = config or MetricsConfig()
        self.registry = CollectorRegistry()
        prefix = self.config.prefix

        self._cache_lookups = Counter(
            f"{prefix}_cache_lookups_total",
            "Response cache lookups",
            ["resource", "result"],
            registry=self.registry,
        )
        self._cache_invalidations = Counter(
            f"{prefix}_cache_invalidated_entries_total",
            "Entries removed by pattern invalidation",
            registry=self.registry,
        )
        self._breaker_state = Gauge(
            f"{prefix}_circuit_breaker_state",
            "Breaker state (0=CLOSED, 1=HALF_OPEN, 2=OPEN)",
            ["breaker"],
            registry=self.registry,
        )
        self._breaker_transitions = Counter(
            f"{prefix}_circuit_breaker_transitions_total",
            "Breaker state transitions",
            ["breaker", "to_state"],
            registry=self.registry,
        )
        self._fallbacks = Counter(
            f"{prefix}_fallbacks_total",
            "Calls answered with a fallback value",
            ["reason"],
            registry=self.registry,
        )
        self._model_calls = Counter(
            f"{prefix}_model_calls_total",
            "Predictive model calls by outcome",
            ["outcome"],
            registry=self.registry,
        )
        logger.debug("Prometheus metrics initialized (prefix=%s)", prefix)

    @property
    def is_enabled(self) -> bool:
        """Check if metrics collection is enabled."""
        return self.config.enabled

    # --- Cache ---

    def record_cache_lookup(self, resource: str, hit: bool) -> None:
        """Record a cache lookup for ``resource``."""
        if not self.config.enabled:
            return
        self._cache_lookups.labels(resource=resource, result="hit" if hit else "miss").inc()

    def record_invalidation(self, removed: int) -> None:
        if not self.config.enabled or removed <= 0:
            return
        self._cache_invalidations.inc(removed)

    # --- Breaker ---

    def set_breaker_state(self, state: str, breaker: str = "predictive_model") -> None:
        """Update the breaker state gauge.

        Args:
            state: One of CLOSED, HALF_OPEN, OPEN
            breaker: Breaker name label
        """
        if not self.config.enabled:
            return
        self._breaker_state.labels(breaker=breaker).set(BREAKER_STATE_VALUES[state])

    def record_breaker_transition(self, to_state: str, breaker: str = "predictive_model") -> None:
        if not self.config.enabled:
            return
        self._breaker_transitions.labels(breaker=breaker, to_state=to_state).inc()

    def record_fallback(self, reason: str) -> None:
        """Record a fallback substitution (reason is the absorbed error type)."""
        if not self.config.enabled:
            return
        self._fallbacks.labels(reason=reason).inc()

    def record_model_call(self, outcome: str) -> None:
        if not self.config.enabled:
            return
        self._model_calls.labels(outcome=outcome).inc()

    def render(self) -> bytes:
        """Return the Prometheus text exposition for this registry."""
        return generate_latest(self.registry)
