"""Unit tests for UserAnalyticsRepository."""
import pytest
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from tvbingefriend_engagement_service.models import UserAnalytics, UserGenreAffinity
from tvbingefriend_engagement_service.repos import UserAnalyticsRepository

from tests.conftest import NOW


class TestGetOrCreate:
    """Tests for get_or_create."""

    def test_creates_record_with_windows_anchored_at_now(self, test_db_session):
        """Test that a new record starts at zero with both windows starting now."""
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)

        # Act
        record = repo.get_or_create('user-1', NOW)

        # Assert
        assert record.user_id == 'user-1'
        assert record.episodes_watched == 0
        assert record.weekly_episodes_watched == 0
        assert record.weekly_window_start == NOW
        assert record.monthly_window_start == NOW
        assert record.created_at == NOW

    def test_is_idempotent(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)

        # Act
        first = repo.get_or_create('user-1', NOW)
        second = repo.get_or_create('user-1', NOW + timedelta(days=1))

        # Assert
        assert first.id == second.id
        assert second.created_at == NOW
        assert test_db_session.query(UserAnalytics).count() == 1

    def test_concurrent_create_reuses_existing_record(self, test_db_session):
        """Test that losing a creation race falls back to the winner's record."""
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        winner = repo.get_or_create('user-1', NOW)
        calls = []

        def stale_get(user_id):
            # First lookup misses, as if the row did not exist yet
            calls.append(user_id)
            if len(calls) == 1:
                return None
            return test_db_session.query(UserAnalytics).filter_by(user_id=user_id).first()

        # Act
        with patch.object(repo, 'get', side_effect=stale_get):
            result = repo.get_or_create('user-1', NOW)

        # Assert
        assert result.id == winner.id
        assert test_db_session.query(UserAnalytics).count() == 1

    def test_concurrent_create_reraises_when_record_still_missing(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)

        # Act & Assert
        with patch.object(repo, 'get', return_value=None):
            with pytest.raises(IntegrityError):
                repo.get_or_create('user-1', NOW)


class TestRollWindows:
    """Tests for roll_windows."""

    def _seed(self, repo):
        repo.get_or_create('user-1', NOW)
        repo.increment_counters(
            'user-1',
            {'weekly_episodes_watched': 3, 'monthly_episodes_watched': 3, 'episodes_watched': 3},
            NOW,
        )

    def test_nothing_rolls_inside_windows(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        self._seed(repo)

        # Act
        rolled = repo.roll_windows('user-1', NOW + timedelta(days=6))

        # Assert
        assert rolled == []
        assert repo.get('user-1').weekly_episodes_watched == 3

    def test_weekly_window_resets_after_seven_days(self, test_db_session):
        """Test that only the expired weekly window resets."""
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        self._seed(repo)
        later = NOW + timedelta(days=7)

        # Act
        rolled = repo.roll_windows('user-1', later)

        # Assert
        record = repo.get('user-1')
        assert rolled == ['weekly']
        assert record.weekly_episodes_watched == 0
        assert record.weekly_window_start == later
        assert record.monthly_episodes_watched == 3
        assert record.monthly_window_start == NOW
        assert record.episodes_watched == 3

    def test_both_windows_reset_after_thirty_days(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        self._seed(repo)

        # Act
        rolled = repo.roll_windows('user-1', NOW + timedelta(days=30))

        # Assert
        record = repo.get('user-1')
        assert rolled == ['weekly', 'monthly']
        assert record.monthly_episodes_watched == 0
        assert record.episodes_watched == 3

    def test_second_roll_is_a_no_op(self, test_db_session):
        repo = UserAnalyticsRepository(test_db_session)
        self._seed(repo)
        later = NOW + timedelta(days=8)
        repo.roll_windows('user-1', later)

        assert repo.roll_windows('user-1', later) == []


class TestIncrementCounters:
    """Tests for increment_counters."""

    def test_adds_to_counters_and_stamps_activity(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)
        later = NOW + timedelta(hours=2)

        # Act
        repo.increment_counters('user-1', {'episodes_watched': 1, 'total_watch_time_minutes': 24}, later)
        count = repo.increment_counters('user-1', {'episodes_watched': 2}, later)

        # Assert
        record = repo.get('user-1')
        assert count == 1
        assert record.episodes_watched == 3
        assert record.total_watch_time_minutes == 24
        assert record.last_activity == later

    def test_rejects_unknown_counters(self, test_db_session):
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)

        with pytest.raises(ValueError, match="Unknown analytics counters"):
            repo.increment_counters('user-1', {'created_at': 1})

    def test_missing_user_updates_nothing(self, test_db_session):
        repo = UserAnalyticsRepository(test_db_session)

        assert repo.increment_counters('nobody', {'episodes_watched': 1}) == 0


class TestIncrementGenres:
    """Tests for increment_genres."""

    def test_creates_and_increments_genres(self, test_db_session):
        """Test that new genres start at one and existing ones grow."""
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)

        # Act
        repo.increment_genres('user-1', ['Action', 'Drama'])
        repo.increment_genres('user-1', ['Action'])

        # Assert
        counts = {
            a.genre: a.count
            for a in test_db_session.query(UserGenreAffinity).filter_by(user_id='user-1')
        }
        assert counts == {'Action': 2, 'Drama': 1}

    def test_empty_genres_is_a_no_op(self, test_db_session):
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)

        assert repo.increment_genres('user-1', []) == 0


class TestOverwriteStatusCounts:
    """Tests for overwrite_status_counts."""

    def test_overwrites_counts_and_watchlist_size(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)
        repo.increment_counters('user-1', {'shows_in_watchlist': 10}, NOW)

        # Act
        repo.overwrite_status_counts('user-1', {'Watching': 2, 'Completed': 1, 'Unknown': 7}, NOW)

        # Assert
        record = repo.get('user-1')
        assert record.watching_shows == 2
        assert record.completed_shows == 1
        assert record.on_hold_shows == 0
        assert record.dropped_shows == 0
        assert record.plan_to_watch_shows == 0
        assert record.shows_in_watchlist == 10

    def test_can_leave_last_activity_alone(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)

        # Act
        repo.overwrite_status_counts('user-1', {'Dropped': 1}, NOW + timedelta(days=2), touch_activity=False)

        # Assert
        record = repo.get('user-1')
        assert record.dropped_shows == 1
        assert record.last_activity == NOW


class TestPopulationQueries:
    """Tests for leaderboard rows and counts."""

    def test_get_leaderboard_rows(self, test_db_session):
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('user-1', NOW)
        repo.increment_counters('user-1', {'episodes_watched': 4}, NOW)

        rows = repo.get_leaderboard_rows()

        assert len(rows) == 1
        _, user_id, episodes, created_at = rows[0]
        assert (user_id, episodes, created_at) == ('user-1', 4, NOW)

    def test_count_active_since(self, test_db_session):
        # Arrange
        repo = UserAnalyticsRepository(test_db_session)
        repo.get_or_create('recent', NOW)
        repo.get_or_create('stale', NOW - timedelta(days=10))

        # Act & Assert
        assert repo.count_active_since(NOW - timedelta(days=1)) == 1
        assert repo.count_active_since(NOW - timedelta(days=30)) == 2
