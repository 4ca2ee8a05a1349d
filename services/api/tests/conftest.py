import os
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Any, Iterator

import pytest
import sqlalchemy as sa
from fastapi import FastAPI
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

_DB_DIR = tempfile.mkdtemp(prefix="campaign-api-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_DB_DIR}/test.db")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from campaign_api.auth.passwords import hash_password  # noqa: E402
from campaign_api.config.models import AuthConfig, ModelConfig, Settings  # noqa: E402
from campaign_api.db.engine import create_schema, get_engine, reset_engine  # noqa: E402
from campaign_api.db.models import Base  # noqa: E402
from campaign_api.db.queries import create_user  # noqa: E402
from campaign_api.main import create_app  # noqa: E402
from campaign_api.resilience.clock import ManualClock  # noqa: E402
from campaign_api.services import AppServices  # noqa: E402

TEST_PASSWORD = "password123"
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture(scope="session")
def db_engine() -> Iterator[sa.Engine]:
    """Create the schema in a temporary SQLite database."""
    reset_engine()
    engine = get_engine()
    create_schema(engine)
    yield engine
    reset_engine()


@pytest.fixture(autouse=True)
def _clear_tables(request: pytest.FixtureRequest) -> None:
    """Empty all tables before tests that use the database."""
    if "db_engine" not in request.fixturenames:
        return

    engine: sa.Engine = request.getfixturevalue("db_engine")
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def settings() -> Settings:
    """Settings with fast hashing and an instant predictive model."""
    return Settings(
        auth=AuthConfig(bcrypt_rounds=TEST_BCRYPT_ROUNDS),
        model=ModelConfig(latency_seconds=0.0, failure_rate=0.0),
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000.0)


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings=settings)


@pytest.fixture
def client(app: FastAPI, db_engine: sa.Engine) -> Iterator[TestClient]:
    """TestClient running the app lifespan (sweeper started, cache destroyed on exit)."""
    with TestClient(app) as test_client:
        yield test_client


def services_of(app: FastAPI) -> AppServices:
    """Return the service container wired into ``app``."""
    return app.state.services  # type: ignore[no-any-return]


def make_user(
    engine: sa.Engine,
    role: str = "viewer",
    username: str | None = None,
    password: str = TEST_PASSWORD,
) -> dict[str, Any]:
    """Insert a user row directly and return it."""
    username = username or f"{role}-{uuid.uuid4().hex[:8]}"
    return create_user(
        engine,
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(password, TEST_BCRYPT_ROUNDS),
        role=role,
    )


def auth_headers(app: FastAPI, user: dict[str, Any]) -> dict[str, str]:
    """Return an Authorization header carrying a fresh access token for ``user``."""
    token = services_of(app).tokens.create_access_token(user).token
    return {"Authorization": f"Bearer {token}"}
