"""Unit tests for UserAnalyticsAggregator."""
from unittest.mock import Mock

import pytest

from tvbingefriend_engagement_service.models import UserAnalytics
from tvbingefriend_engagement_service.services import GlobalAnalyticsAggregator
from tvbingefriend_engagement_service.services.user_analytics_service import (
    ClubActivity,
    UserAnalyticsAggregator,
)

from tests.conftest import NOW, add_watch_record


@pytest.fixture
def activity_feed(session_factory, clock):
    return GlobalAnalyticsAggregator(session_factory=session_factory, clock=clock, activity_capacity=50)


@pytest.fixture
def aggregator(session_factory, clock, activity_feed):
    return UserAnalyticsAggregator(
        session_factory=session_factory,
        activity_feed=activity_feed,
        clock=clock,
        window_rollover=True,
        default_episode_minutes=24
    )


class TestClubActivity:
    """Tests for ClubActivity.parse."""

    @pytest.mark.parametrize("value,expected", [
        ("post", ClubActivity.POST),
        ("LIKE", ClubActivity.LIKE),
        (" join ", ClubActivity.JOIN),
        ("poll_vote", ClubActivity.POLL_VOTE),
        (ClubActivity.POST, ClubActivity.POST),
    ])
    def test_parse(self, value, expected):
        assert ClubActivity.parse(value) is expected

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown club activity type"):
            ClubActivity.parse("comment")


class TestRecordEpisodeWatched:
    """Tests for record_episode_watched."""

    def test_first_event_creates_record(self, aggregator, activity_feed):
        """Test that the first event creates the record and counts the episode."""
        # Act
        result = aggregator.record_episode_watched('user-1', show_id=1)

        # Assert
        assert result['episodes_watched'] == 1
        assert result['total_watch_time_minutes'] == 24
        assert result['weekly_activity']['episodes_watched'] == 1
        assert result['monthly_activity']['episodes_watched'] == 1
        assert result['last_activity'] == NOW
        assert result['engagement_score'] == 10

        activity = activity_feed.get_recent_activity()
        assert activity == [
            {'type': 'episode_watched', 'user_id': 'user-1', 'show_id': 1, 'timestamp': NOW}
        ]

    def test_custom_duration(self, aggregator):
        result = aggregator.record_episode_watched('user-1', show_id=1, duration_minutes=45)

        assert result['total_watch_time_minutes'] == 45

    def test_zero_default_minutes_is_respected(self, session_factory, clock, activity_feed):
        aggregator = UserAnalyticsAggregator(
            session_factory=session_factory,
            activity_feed=activity_feed,
            clock=clock,
            default_episode_minutes=0
        )

        result = aggregator.record_episode_watched('user-1', show_id=1)

        assert result['episodes_watched'] == 1
        assert result['total_watch_time_minutes'] == 0

    def test_negative_default_minutes_rejected(self, session_factory, activity_feed):
        with pytest.raises(ValueError):
            UserAnalyticsAggregator(
                session_factory=session_factory,
                activity_feed=activity_feed,
                default_episode_minutes=-1
            )

    def test_multiple_episodes_in_one_call(self, aggregator, activity_feed):
        """Test that a progress jump credits every episode with a single feed event."""
        # Act
        result = aggregator.record_episode_watched('user-1', show_id=1, episode_count=3)

        # Assert
        assert result['episodes_watched'] == 3
        assert result['total_watch_time_minutes'] == 72
        assert result['weekly_activity']['episodes_watched'] == 3
        assert len(activity_feed.get_recent_activity()) == 1

    def test_counts_accumulate(self, aggregator):
        aggregator.record_episode_watched('user-1', show_id=1)
        result = aggregator.record_episode_watched('user-1', show_id=2)

        assert result['episodes_watched'] == 2
        assert result['total_watch_time_minutes'] == 48

    def test_rejects_negative_duration(self, aggregator):
        with pytest.raises(ValueError):
            aggregator.record_episode_watched('user-1', show_id=1, duration_minutes=-5)

    def test_rejects_zero_episode_count(self, aggregator):
        with pytest.raises(ValueError):
            aggregator.record_episode_watched('user-1', show_id=1, episode_count=0)

    def test_record_created_once(self, aggregator, test_db_session):
        aggregator.record_episode_watched('user-1', show_id=1)
        aggregator.record_review_posted('user-1', show_id=1)

        assert test_db_session.query(UserAnalytics).filter_by(user_id='user-1').count() == 1


class TestRecordReviewAndShow:
    """Tests for record_review_posted and record_show_added."""

    def test_record_review_posted(self, aggregator, activity_feed):
        # Act
        result = aggregator.record_review_posted('user-1', show_id=4)

        # Assert
        assert result['reviews_posted'] == 1
        assert result['weekly_activity']['reviews_posted'] == 1
        assert result['monthly_activity']['reviews_posted'] == 1
        assert result['engagement_score'] == 50
        assert activity_feed.get_recent_activity()[0]['type'] == 'review_posted'

    def test_record_show_added_counts_genres(self, aggregator, populated_catalog):
        """Test that adding shows grows the user's genre affinities."""
        # Act
        aggregator.record_show_added('user-1', show_id=1)  # Action, Drama, Fantasy
        result = aggregator.record_show_added('user-1', show_id=2)  # Action, Supernatural

        # Assert
        assert result['shows_in_watchlist'] == 2
        assert result['weekly_activity']['shows_added'] == 2
        assert result['favorite_genres'][0] == {'genre': 'Action', 'count': 2}
        assert {g['genre'] for g in result['favorite_genres']} == {
            'Action', 'Drama', 'Fantasy', 'Supernatural'
        }

    def test_genre_affinity_never_decreases(self, aggregator, populated_catalog):
        before = aggregator.record_show_added('user-1', show_id=1)
        after = aggregator.record_show_added('user-1', show_id=3)

        before_counts = {g['genre']: g['count'] for g in before['favorite_genres']}
        after_counts = {g['genre']: g['count'] for g in after['favorite_genres']}
        for genre, count in before_counts.items():
            assert after_counts[genre] >= count

    def test_record_show_added_unknown_show(self, aggregator, activity_feed):
        result = aggregator.record_show_added('user-1', show_id=999)

        assert result['shows_in_watchlist'] == 1
        assert result['favorite_genres'] == []
        assert activity_feed.get_recent_activity()[0]['type'] == 'show_added'


class TestRecordClubActivity:
    """Tests for record_club_activity."""

    def test_post(self, aggregator):
        result = aggregator.record_club_activity('user-1', ClubActivity.POST)

        assert result['club_posts'] == 1
        assert result['weekly_activity']['club_posts'] == 1
        assert result['monthly_activity']['club_posts'] == 1

    def test_like(self, aggregator):
        result = aggregator.record_club_activity('user-1', 'like')

        assert result['club_likes'] == 1
        assert result['engagement_score'] == 5

    def test_join_appends_activity(self, aggregator, activity_feed):
        # Act
        result = aggregator.record_club_activity('user-1', 'join')

        # Assert
        assert result['clubs_joined'] == 1
        activity = activity_feed.get_recent_activity()
        assert activity[0]['type'] == 'club_joined'
        assert activity[0]['show_id'] is None

    def test_poll_vote_counts_in_windows_only(self, aggregator, activity_feed):
        result = aggregator.record_club_activity('user-1', ClubActivity.POLL_VOTE)

        assert result['weekly_activity']['poll_votes'] == 1
        assert result['monthly_activity']['poll_votes'] == 1
        assert result['engagement_score'] == 0
        assert activity_feed.get_recent_activity() == []

    def test_unknown_type_raises(self, aggregator):
        with pytest.raises(ValueError):
            aggregator.record_club_activity('user-1', 'comment')


class TestWindowRollover:
    """Tests for weekly/monthly window rollover."""

    def test_weekly_window_resets_after_a_week(self, aggregator, clock):
        """Test that weekly counters restart while lifetime counters keep growing."""
        # Arrange
        aggregator.record_episode_watched('user-1', show_id=1)
        aggregator.record_episode_watched('user-1', show_id=1)
        clock.advance(days=8)

        # Act
        result = aggregator.record_episode_watched('user-1', show_id=1)

        # Assert
        assert result['episodes_watched'] == 3
        assert result['weekly_activity']['episodes_watched'] == 1
        assert result['weekly_activity']['window_start'] == clock.now
        assert result['monthly_activity']['episodes_watched'] == 3

    def test_get_user_analytics_rolls_expired_windows(self, aggregator, clock):
        aggregator.record_review_posted('user-1', show_id=1)
        clock.advance(days=31)

        result = aggregator.get_user_analytics('user-1')

        assert result['reviews_posted'] == 1
        assert result['weekly_activity']['reviews_posted'] == 0
        assert result['monthly_activity']['reviews_posted'] == 0

    def test_rollover_disabled_accumulates(self, session_factory, clock, activity_feed):
        # Arrange
        aggregator = UserAnalyticsAggregator(
            session_factory=session_factory,
            activity_feed=activity_feed,
            clock=clock,
            window_rollover=False
        )
        aggregator.record_episode_watched('user-1', show_id=1)
        clock.advance(days=40)

        # Act
        result = aggregator.record_episode_watched('user-1', show_id=1)

        # Assert
        assert result['weekly_activity']['episodes_watched'] == 2
        assert result['monthly_activity']['episodes_watched'] == 2


class TestReconcileWatchlistStatusCounts:
    """Tests for reconcile_watchlist_status_counts."""

    def test_matches_live_distribution(self, aggregator, test_db_session):
        # Arrange
        add_watch_record(test_db_session, 'user-1', 1, 'Watching')
        add_watch_record(test_db_session, 'user-1', 2, 'Completed')
        add_watch_record(test_db_session, 'user-1', 3, 'Completed')
        add_watch_record(test_db_session, 'user-1', 4, 'Plan to Watch')
        add_watch_record(test_db_session, 'user-2', 1, 'Dropped')

        # Act
        result = aggregator.reconcile_watchlist_status_counts('user-1')

        # Assert
        assert result['watching_shows'] == 1
        assert result['completed_shows'] == 2
        assert result['on_hold_shows'] == 0
        assert result['dropped_shows'] == 0
        assert result['plan_to_watch_shows'] == 1
        assert result['shows_in_watchlist'] == 4

    def test_is_idempotent(self, aggregator, test_db_session):
        """Test that repeating the reconcile gives the same counters."""
        # Arrange
        add_watch_record(test_db_session, 'user-1', 1, 'On Hold')
        add_watch_record(test_db_session, 'user-1', 2, 'Dropped')

        # Act
        first = aggregator.reconcile_watchlist_status_counts('user-1')
        second = aggregator.reconcile_watchlist_status_counts('user-1')

        # Assert
        keys = [
            'watching_shows', 'completed_shows', 'on_hold_shows',
            'dropped_shows', 'plan_to_watch_shows', 'shows_in_watchlist',
        ]
        assert {k: first[k] for k in keys} == {k: second[k] for k in keys}

    def test_without_touching_activity(self, aggregator, clock):
        aggregator.get_user_analytics('user-1')
        clock.advance(days=2)

        result = aggregator.reconcile_watchlist_status_counts('user-1', touch_activity=False)

        assert result['last_activity'] == NOW

    def test_rolls_expired_windows(self, aggregator, clock):
        """Test that reconciling after a window expires reports the fresh window."""
        # Arrange
        aggregator.record_episode_watched('user-1', show_id=1, episode_count=2)
        clock.advance(days=8)

        # Act
        result = aggregator.reconcile_watchlist_status_counts('user-1', touch_activity=False)

        # Assert
        assert result['weekly_activity']['episodes_watched'] == 0
        assert result['weekly_activity']['window_start'] == clock.now
        assert result['monthly_activity']['episodes_watched'] == 2

    def test_unknown_status_counts_toward_watchlist(self, aggregator, test_db_session):
        add_watch_record(test_db_session, 'user-1', 1, 'Watching')
        add_watch_record(test_db_session, 'user-1', 2, 'Rewatching')

        result = aggregator.reconcile_watchlist_status_counts('user-1')

        assert result['watching_shows'] == 1
        assert result['shows_in_watchlist'] == 2

    def test_empty_history_zeroes_counters(self, aggregator):
        aggregator.record_show_added('user-1', show_id=999)

        result = aggregator.reconcile_watchlist_status_counts('user-1')

        assert result['shows_in_watchlist'] == 0


class TestActivityFeedFailures:
    """Tests for best-effort activity feed updates."""

    def test_feed_failure_does_not_fail_counter_update(self, session_factory, clock):
        # Arrange
        feed = Mock()
        feed.append_activity.side_effect = RuntimeError("feed down")
        aggregator = UserAnalyticsAggregator(
            session_factory=session_factory,
            activity_feed=feed,
            clock=clock,
            window_rollover=True
        )

        # Act
        result = aggregator.record_episode_watched('user-1', show_id=1)

        # Assert
        assert result['episodes_watched'] == 1
        feed.append_activity.assert_called_once()


class TestGetUserAnalytics:
    """Tests for get_user_analytics."""

    def test_creates_empty_record(self, aggregator):
        result = aggregator.get_user_analytics('new-user')

        assert result['user_id'] == 'new-user'
        assert result['episodes_watched'] == 0
        assert result['engagement_score'] == 0
        assert result['avg_episodes_per_day'] == 0.0
        assert result['favorite_genres'] == []


class TestFireAndForget:
    """Tests for fire_and_forget."""

    def test_returns_operation_result(self, aggregator):
        result = aggregator.fire_and_forget(aggregator.record_review_posted, 'user-1', 3)

        assert result['reviews_posted'] == 1

    def test_swallows_failures(self, aggregator):
        """Test that a failing side effect returns None instead of raising."""
        # Arrange
        operation = Mock(side_effect=RuntimeError("boom"), __name__='record_episode_watched')

        # Act
        result = aggregator.fire_and_forget(operation, 'user-1', show_id=1)

        # Assert
        assert result is None
        operation.assert_called_once_with('user-1', show_id=1)

    def test_swallows_validation_errors(self, aggregator):
        assert aggregator.fire_and_forget(aggregator.record_club_activity, 'user-1', 'comment') is None
