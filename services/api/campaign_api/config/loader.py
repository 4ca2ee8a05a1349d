"""Settings loader with environment variable overrides."""

import os
from typing import Any

from .models import Settings


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """
    Build application settings from defaults and environment overrides.

    Priority: env vars > defaults

    Args:
        environ: Mapping to read overrides from. Defaults to ``os.environ``.

    Returns:
        Validated Settings instance

    Raises:
        pydantic.ValidationError: If an override is out of range or malformed
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    # Format: MODEL_BREAKER_FAILURE_THRESHOLD, CACHE_SWEEP_INTERVAL_SECONDS, etc.
    if value := env.get("MODEL_BREAKER_FAILURE_THRESHOLD"):
        data.setdefault("breaker", {})["failure_threshold"] = value

    if value := env.get("MODEL_BREAKER_SUCCESS_THRESHOLD"):
        data.setdefault("breaker", {})["success_threshold"] = value

    if value := env.get("MODEL_BREAKER_CALL_TIMEOUT_SECONDS"):
        data.setdefault("breaker", {})["call_timeout_seconds"] = value

    if value := env.get("MODEL_BREAKER_OPEN_DURATION_SECONDS"):
        data.setdefault("breaker", {})["open_duration_seconds"] = value

    if value := env.get("CACHE_SWEEP_INTERVAL_SECONDS"):
        data.setdefault("cache", {})["sweep_interval_seconds"] = value

    if value := env.get("CACHE_DEFAULT_TTL_SECONDS"):
        data.setdefault("cache", {})["default_ttl_seconds"] = value

    if value := env.get("JWT_SECRET"):
        data.setdefault("auth", {})["jwt_secret"] = value

    if value := env.get("ACCESS_TOKEN_MINUTES"):
        data.setdefault("auth", {})["access_token_minutes"] = value

    if value := env.get("REFRESH_TOKEN_DAYS"):
        data.setdefault("auth", {})["refresh_token_days"] = value

    if value := env.get("BCRYPT_ROUNDS"):
        data.setdefault("auth", {})["bcrypt_rounds"] = value

    if value := env.get("SECURE_COOKIES"):
        data.setdefault("auth", {})["secure_cookies"] = value

    if value := env.get("MODEL_LATENCY_SECONDS"):
        data.setdefault("model", {})["latency_seconds"] = value

    if value := env.get("MODEL_FAILURE_RATE"):
        data.setdefault("model", {})["failure_rate"] = value

    if value := env.get("MODEL_VERSION"):
        data.setdefault("model", {})["model_version"] = value

    if value := env.get("SENTRY_DSN"):
        data.setdefault("sentry", {})["dsn"] = value

    if value := env.get("SENTRY_ENVIRONMENT"):
        data.setdefault("sentry", {})["environment"] = value

    if value := env.get("CORS_ORIGINS"):
        data["cors_origins"] = [origin.strip() for origin in value.split(",") if origin.strip()]

    if value := env.get("LOG_LEVEL"):
        data["log_level"] = value.upper()

    if value := env.get("API_HOST"):
        data["host"] = value

    if value := env.get("API_PORT"):
        data["port"] = value

    # Validate and return
    return Settings(**data)
