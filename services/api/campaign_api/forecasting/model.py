"""Client for the external predictive model (mocked).

The real model lives behind a network boundary. This client simulates it:
every call waits ``latency_seconds`` on the injected clock and fails with
probability ``failure_rate``. Callers must go through a ``ResilientInvoker``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from campaign_api.config.models import ModelConfig
from campaign_api.resilience.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

FORECAST_HORIZON_DAYS = 30
FALLBACK_MODEL_VERSION = "fallback"


class ModelUnavailableError(Exception):
    """The predictive model could not produce a prediction."""


@dataclass(frozen=True)
class ForecastPrediction:
    forecast_type: str
    predicted_value: Decimal
    confidence_lower: Decimal
    confidence_upper: Decimal
    confidence_level: Decimal
    model_version: str


# Static baseline served while the model is unavailable.
FALLBACK_PREDICTIONS: tuple[ForecastPrediction, ...] = (
    ForecastPrediction(
        forecast_type="conversion_rate",
        predicted_value=Decimal("3.0000"),
        confidence_lower=Decimal("2.0000"),
        confidence_upper=Decimal("4.0000"),
        confidence_level=Decimal("0.95"),
        model_version=FALLBACK_MODEL_VERSION,
    ),
    ForecastPrediction(
        forecast_type="roi",
        predicted_value=Decimal("200.0000"),
        confidence_lower=Decimal("150.0000"),
        confidence_upper=Decimal("280.0000"),
        confidence_level=Decimal("0.90"),
        model_version=FALLBACK_MODEL_VERSION,
    ),
    ForecastPrediction(
        forecast_type="revenue",
        predicted_value=Decimal("100000.00"),
        confidence_lower=Decimal("70000.00"),
        confidence_upper=Decimal("130000.00"),
        confidence_level=Decimal("0.85"),
        model_version=FALLBACK_MODEL_VERSION,
    ),
)


def forecast_date(now: datetime | None = None) -> datetime:
    """Return the target date of a prediction made at ``now``."""
    base = now or datetime.now(timezone.utc)
    return base + timedelta(days=FORECAST_HORIZON_DAYS)


def _q(value: float, places: str = "0.0001") -> Decimal:
    return Decimal(str(value)).quantize(Decimal(places))


class PredictiveModelClient:
    """Async client for conversion-rate, ROI and revenue predictions."""

    def __init__(
        self,
        config: ModelConfig | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Latency, failure rate and model version
            clock: Clock used to simulate latency
            rng: Random source (seed it for reproducible predictions)
        """
        self.config = config or ModelConfig()
        self._clock: Clock = clock or SystemClock()
        self._rng = rng or random.Random()

    async def predict(self, campaign_id: str | None = None) -> list[ForecastPrediction]:
        """Request predictions for one campaign, or portfolio-wide when ``campaign_id`` is None.

        Raises:
            ModelUnavailableError: When the simulated call fails
        """
        if self.config.latency_seconds > 0:
            await self._clock.sleep(self.config.latency_seconds)

        if self._rng.random() < self.config.failure_rate:
            raise ModelUnavailableError(
                f"Predictive model {self.config.model_version} unavailable"
            )

        rng = self._rng
        version = self.config.model_version
        predictions = [
            ForecastPrediction(
                forecast_type="conversion_rate",
                predicted_value=_q(2.5 + rng.random() * 2),
                confidence_lower=_q(2.0 + rng.random()),
                confidence_upper=_q(4.0 + rng.random()),
                confidence_level=Decimal("0.95"),
                model_version=version,
            ),
            ForecastPrediction(
                forecast_type="roi",
                predicted_value=_q(180 + rng.random() * 100),
                confidence_lower=_q(150 + rng.random() * 50),
                confidence_upper=_q(280 + rng.random() * 50),
                confidence_level=Decimal("0.90"),
                model_version=version,
            ),
            ForecastPrediction(
                forecast_type="revenue",
                predicted_value=_q(80000 + rng.random() * 50000, "0.01"),
                confidence_lower=_q(70000 + rng.random() * 30000, "0.01"),
                confidence_upper=_q(130000 + rng.random() * 30000, "0.01"),
                confidence_level=Decimal("0.85"),
                model_version=version,
            ),
        ]
        logger.debug("Model %s produced %d predictions for %s", version, len(predictions), campaign_id)
        return predictions
