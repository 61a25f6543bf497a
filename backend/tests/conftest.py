import os

# The app's own engine must never touch a file database during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import league.models  # noqa: E402,F401
from league.database import get_session  # noqa: E402
from league.main import app  # noqa: E402
from league.models import Club, Competition, SeriesFormat  # noqa: E402
from league.services.cache import default_cache  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. league.models imported above so every table is registered before create_all()
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped after every test so each test starts empty
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)
    default_cache.clear()


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration, so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Shared builders
# ============================================================================


@pytest.fixture
def make_competition(session: Session):
    def _make(series_format: SeriesFormat = SeriesFormat.SINGLE_MATCH) -> Competition:
        competition = Competition(name=f"League {series_format.value}", series_format=series_format.value)
        session.add(competition)
        session.commit()
        session.refresh(competition)
        return competition

    return _make


@pytest.fixture
def make_clubs(session: Session):
    def _make(count: int, prefix: str = "Club") -> list:
        clubs = [Club(name=f"{prefix} {chr(ord('A') + i)}") for i in range(count)]
        for club in clubs:
            session.add(club)
        session.commit()
        for club in clubs:
            session.refresh(club)
        return clubs

    return _make


@pytest.fixture
def season_start() -> datetime:
    # A Saturday
    return datetime(2026, 3, 7, 15, 0)
