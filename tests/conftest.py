"""Shared test fixtures and configuration for pytest."""
import os

# Service modules build their engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import datetime, timedelta
from typing import Dict, List
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tvbingefriend_engagement_service.models import (
    Base,
    Club,
    Review,
    ShowProfile,
    UserAccount,
    WatchRecord,
)


NOW = datetime(2025, 6, 15, 12, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ===== Database Fixtures =====

@pytest.fixture(scope="function")
def test_db_engine():
    """Create an in-memory SQLite database shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture(scope="function")
def test_db_session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at NOW."""
    return FakeClock()


# ===== Sample Data Fixtures =====

@pytest.fixture
def sample_show_data() -> Dict:
    """Sample show profile data for testing."""
    return {
        'show_id': 1,
        'title': 'Attack on Titan',
        'genres': ['Action', 'Drama', 'Fantasy'],
        'tags': ['titans', 'military'],
        'rating_average': 9.0,
        'rating_count': 1500,
        'is_popular': True,
        'release_year': 2013,
        'season': 'Spring',
    }


@pytest.fixture
def sample_shows_list() -> List[Dict]:
    """Catalog of sample shows for testing."""
    return [
        {
            'show_id': 1,
            'title': 'Attack on Titan',
            'genres': ['Action', 'Drama', 'Fantasy'],
            'tags': ['titans', 'military'],
            'rating_average': 9.0,
            'rating_count': 1500,
            'is_popular': True,
            'release_year': 2013,
            'season': 'Spring',
        },
        {
            'show_id': 2,
            'title': 'Demon Slayer',
            'genres': ['Action', 'Supernatural'],
            'tags': ['demons', 'swords'],
            'rating_average': 8.5,
            'rating_count': 1200,
            'is_popular': True,
            'release_year': 2019,
            'season': 'Spring',
        },
        {
            'show_id': 3,
            'title': 'K-On!',
            'genres': ['Comedy', 'Slice of Life'],
            'tags': ['music', 'school'],
            'rating_average': 7.5,
            'rating_count': 600,
            'is_popular': False,
            'release_year': 2009,
            'season': 'Spring',
        },
        {
            'show_id': 4,
            'title': 'Frieren',
            'genres': ['Adventure', 'Drama', 'Fantasy'],
            'tags': ['elves', 'journey'],
            'rating_average': 9.2,
            'rating_count': 900,
            'is_popular': False,
            'release_year': 2023,
            'season': 'Fall',
        },
        {
            'show_id': 5,
            'title': 'Haikyu!!',
            'genres': ['Sports', 'Comedy'],
            'tags': ['volleyball', 'school'],
            'rating_average': 6.5,
            'rating_count': 300,
            'is_popular': False,
            'release_year': 2014,
            'season': 'Spring',
        },
    ]


def make_show(**overrides) -> ShowProfile:
    """Build a ShowProfile with neutral defaults."""
    values = {
        'show_id': 1,
        'title': 'Show',
        'genres': [],
        'tags': [],
        'rating_average': 0.0,
        'rating_count': 0,
        'is_popular': False,
        'release_year': None,
        'season': None,
    }
    values.update(overrides)
    return ShowProfile(**values)


@pytest.fixture
def populated_catalog(test_db_session, sample_shows_list) -> List[ShowProfile]:
    """Store the sample catalog in the test database."""
    shows = [make_show(**data) for data in sample_shows_list]
    test_db_session.add_all(shows)
    test_db_session.commit()
    return shows


def add_watch_record(
        session,
        user_id: str,
        show_id: int,
        status: str = "Watching",
        current_episode: int = 0,
        updated_at: datetime = NOW
) -> WatchRecord:
    """Insert a watch record."""
    record = WatchRecord(
        user_id=user_id,
        show_id=show_id,
        status=status,
        current_episode=current_episode,
        updated_at=updated_at,
    )
    session.add(record)
    session.commit()
    return record


@pytest.fixture
def community_data(test_db_session):
    """Users, reviews and clubs mirrored from other services."""
    test_db_session.add_all([
        UserAccount(user_id='user-1', name='Alice', is_active=True),
        UserAccount(user_id='user-2', name='Bob', is_active=True),
        UserAccount(user_id='user-3', name=None, is_active=False),
        Review(user_id='user-1', show_id=1, rating=9.0, created_at=NOW - timedelta(days=2)),
        Review(user_id='user-1', show_id=2, rating=8.0, created_at=NOW - timedelta(days=1)),
        Review(user_id='user-2', show_id=1, rating=7.0, created_at=NOW),
        Club(name='Titan Watchers'),
    ])
    test_db_session.commit()
