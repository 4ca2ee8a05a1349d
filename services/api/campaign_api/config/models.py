"""Pydantic configuration models with type safety and validation."""

from pydantic import BaseModel, Field


class CircuitBreakerConfig(BaseModel):
    """Policy for the breaker guarding the predictive model."""

    model_config = {"frozen": True}

    failure_threshold: int = Field(
        default=3,
        ge=1,
        description="Consecutive failures while CLOSED that trip the breaker OPEN",
    )
    success_threshold: int = Field(
        default=2,
        ge=1,
        description="Consecutive HALF_OPEN successes required to close the breaker",
    )
    call_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Per-call deadline; slower calls count as failures",
    )
    open_duration_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Cooldown after the last failure before a probe is allowed",
    )


class CacheConfig(BaseModel):
    """In-process response cache settings."""

    model_config = {"frozen": True}

    sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Interval of the background sweep that reclaims expired entries",
    )
    default_ttl_seconds: int = Field(
        default=300,
        gt=0,
        description="TTL used when a caller does not pick one",
    )


class AuthConfig(BaseModel):
    """JWT issuing settings."""

    model_config = {"frozen": True}

    jwt_secret: str = Field(
        default="campaign-analytics-dev-secret-change-me",
        min_length=16,
        description="HS256 signing secret",
    )
    access_token_minutes: int = Field(default=15, ge=1)
    refresh_token_days: int = Field(default=7, ge=1)
    bcrypt_rounds: int = Field(default=12, ge=4, le=16)
    secure_cookies: bool = Field(default=False, description="Mark the refresh cookie Secure")


class ModelConfig(BaseModel):
    """Behaviour of the (mocked) external predictive model."""

    model_config = {"frozen": True}

    latency_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Simulated network latency per prediction call",
    )
    failure_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Probability that a prediction call fails",
    )
    model_version: str = Field(default="v2.4.1", min_length=1)


class SentrySettings(BaseModel):
    """Optional error reporting."""

    model_config = {"frozen": True}

    dsn: str = ""
    environment: str = "development"
    traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)


class Settings(BaseModel):
    """Root application configuration."""

    model_config = {"frozen": True}

    breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    sentry: SentrySettings = Field(default_factory=SentrySettings)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535, description="HTTP listen port")
