"""
Shared test fixtures.

Storage-backed tests run against an in-memory SQLite database
created from the ORM metadata; each test gets a fresh schema.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.settings import AnalyticsSettings, reset_settings
from storage.models import Base


NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def now():
    """Fixed clock for deterministic windows and decay."""
    return NOW


@pytest.fixture
def settings():
    """Default analytics settings on an in-memory database."""
    return AnalyticsSettings(database_url="sqlite://")


@pytest.fixture(autouse=True)
def _reset_cached_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    yield session
    session.rollback()
    session.close()


def days_ago(days: float, now: datetime = NOW) -> datetime:
    return now - timedelta(days=days)
