"""Service for per-user activity analytics."""
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional
import logging

from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.config import get_default_episode_minutes, use_window_rollover
from tvbingefriend_engagement_service.models import ActivityType, STATUS_COUNTER_COLUMNS, utcnow
from tvbingefriend_engagement_service.models.database import SessionLocal
from tvbingefriend_engagement_service.repos import (
    ShowCatalogRepository,
    UserAnalyticsRepository,
    WatchHistoryRepository,
)
from tvbingefriend_engagement_service.services.global_analytics_service import GlobalAnalyticsAggregator

logger = logging.getLogger(__name__)


class ClubActivity(str, Enum):
    """Kinds of club participation that are tracked."""
    POST = "post"
    LIKE = "like"
    JOIN = "join"
    POLL_VOTE = "poll_vote"

    @classmethod
    def parse(cls, value: "ClubActivity | str") -> "ClubActivity":
        """
        Parse a club activity from its value or member name.

        Raises:
            ValueError: If the value is not a known club activity
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if normalized in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown club activity type: {value}")


# Counter increments applied for each club activity. Poll votes only count
# toward the weekly and monthly windows.
CLUB_ACTIVITY_COUNTERS: Dict[ClubActivity, Dict[str, int]] = {
    ClubActivity.POST: {'club_posts': 1, 'weekly_club_posts': 1, 'monthly_club_posts': 1},
    ClubActivity.LIKE: {'club_likes': 1},
    ClubActivity.JOIN: {'clubs_joined': 1},
    ClubActivity.POLL_VOTE: {'weekly_poll_votes': 1, 'monthly_poll_votes': 1},
}


class UserAnalyticsAggregator:
    """
    Maintains each user's lifetime counters, weekly/monthly windows and genre affinities.

    Every recording operation creates the user's record on first use, resets
    expired windows (unless window rollover is disabled) and then applies its
    increments as a single atomic UPDATE. Episode, review, watchlist and club
    join events are also appended to the site-wide recent activity feed; a
    failure there is logged and does not affect the counters.
    """

    def __init__(
            self,
            session_factory: Optional[Callable[[], Session]] = None,
            activity_feed: Optional[GlobalAnalyticsAggregator] = None,
            clock: Callable[[], datetime] = utcnow,
            window_rollover: Optional[bool] = None,
            default_episode_minutes: Optional[int] = None
    ):
        """
        Initialize the aggregator.

        Args:
            session_factory: Callable returning a database session (default: SessionLocal)
            activity_feed: Receiver of recent activity events (default: a
                GlobalAnalyticsAggregator on the same database)
            clock: Callable returning the current UTC time
            window_rollover: Reset expired weekly/monthly windows (default: from config)
            default_episode_minutes: Minutes per episode when none are given (default: from config)
        """
        self.session_factory = session_factory or SessionLocal
        self.clock = clock
        self.activity_feed = activity_feed or GlobalAnalyticsAggregator(
            session_factory=self.session_factory,
            clock=clock
        )
        self.window_rollover = use_window_rollover() if window_rollover is None else window_rollover
        if default_episode_minutes is None:
            default_episode_minutes = get_default_episode_minutes()
        if default_episode_minutes < 0:
            raise ValueError("default_episode_minutes must not be negative")
        self.default_episode_minutes = default_episode_minutes

    def _record(
            self,
            user_id: str,
            increments: Dict[str, int],
            activity: Optional[ActivityType] = None,
            show_id: Optional[int] = None,
            genres_from_show: bool = False
    ) -> Dict:
        """Apply counter increments for one event and return the updated record."""
        now = self.clock()
        db = self.session_factory()
        try:
            repo = UserAnalyticsRepository(db)
            repo.get_or_create(user_id, now)

            if self.window_rollover:
                repo.roll_windows(user_id, now)

            repo.increment_counters(user_id, increments, now)

            if genres_from_show and show_id is not None:
                show = ShowCatalogRepository(db).get_show(show_id)
                if show is not None:
                    repo.increment_genres(user_id, show.genre_set)
                else:
                    logger.warning(f"Show ID {show_id} not found, genre affinities unchanged")

            result = repo.get(user_id).to_dict(now)
        finally:
            db.close()

        if activity is not None:
            self._append_activity(activity, user_id, show_id)

        return result

    def _append_activity(self, activity: ActivityType, user_id: str, show_id: Optional[int]):
        try:
            self.activity_feed.append_activity(activity, user_id, show_id)
        except Exception as e:
            logger.warning(
                f"Failed to add {activity.value} for user {user_id} to recent activity: {e}",
                exc_info=True
            )

    def record_episode_watched(
            self,
            user_id: str,
            show_id: Optional[int],
            duration_minutes: Optional[int] = None,
            episode_count: int = 1
    ) -> Dict:
        """
        Record that a user watched one or more episodes of a show.

        Progress jumps (e.g. marking episodes 3-5 watched at once) are credited
        in a single update with one recent activity event.

        Args:
            user_id: User ID
            show_id: Show the episodes belong to
            duration_minutes: Length of each episode (default: configured episode minutes)
            episode_count: Number of episodes watched

        Returns:
            Updated user analytics dict
        """
        if duration_minutes is None:
            duration_minutes = self.default_episode_minutes
        if duration_minutes < 0:
            raise ValueError("duration_minutes must not be negative")
        if episode_count < 1:
            raise ValueError("episode_count must be at least 1")

        return self._record(
            user_id,
            {
                'episodes_watched': episode_count,
                'total_watch_time_minutes': int(duration_minutes) * episode_count,
                'weekly_episodes_watched': episode_count,
                'monthly_episodes_watched': episode_count,
            },
            activity=ActivityType.EPISODE_WATCHED,
            show_id=show_id,
        )

    def record_review_posted(self, user_id: str, show_id: Optional[int]) -> Dict:
        """Record that a user posted a review."""
        return self._record(
            user_id,
            {'reviews_posted': 1, 'weekly_reviews_posted': 1, 'monthly_reviews_posted': 1},
            activity=ActivityType.REVIEW_POSTED,
            show_id=show_id,
        )

    def record_show_added(self, user_id: str, show_id: int) -> Dict:
        """
        Record that a user added a show to their watchlist.

        Each of the show's genres counts once toward the user's favorite genres.
        """
        return self._record(
            user_id,
            {'shows_in_watchlist': 1, 'weekly_shows_added': 1, 'monthly_shows_added': 1},
            activity=ActivityType.SHOW_ADDED,
            show_id=show_id,
            genres_from_show=True,
        )

    def record_club_activity(self, user_id: str, activity_type: ClubActivity | str) -> Dict:
        """
        Record a club post, like, join or poll vote.

        Args:
            user_id: User ID
            activity_type: ClubActivity or its value

        Returns:
            Updated user analytics dict

        Raises:
            ValueError: If activity_type is not a known club activity
        """
        activity_type = ClubActivity.parse(activity_type)
        activity = ActivityType.CLUB_JOINED if activity_type is ClubActivity.JOIN else None

        return self._record(user_id, CLUB_ACTIVITY_COUNTERS[activity_type], activity=activity)

    def reconcile_watchlist_status_counts(self, user_id: str, touch_activity: bool = True) -> Dict:
        """
        Overwrite a user's per-status counters with the live watch history.

        Sets watching/completed/on hold/dropped/plan to watch counts and the
        watchlist size from the user's current watch records. Repeating the
        call without watch history changes yields the same counters.

        Args:
            user_id: User ID
            touch_activity: Also stamp the user's last activity

        Returns:
            Updated user analytics dict
        """
        now = self.clock()
        db = self.session_factory()
        try:
            repo = UserAnalyticsRepository(db)
            repo.get_or_create(user_id, now)

            if self.window_rollover:
                repo.roll_windows(user_id, now)

            status_counts =WatchHistoryRepository(db).aggregate_status_counts(user_id)
            unknown = set(status_counts) - set(STATUS_COUNTER_COLUMNS)
            if unknown:
                logger.warning(
                    f"Unknown watch statuses for user {user_id} count toward the watchlist only: {sorted(unknown)}"
                )

            repo.overwrite_status_counts(user_id, status_counts, now, touch_activity=touch_activity)
            return repo.get(user_id).to_dict(now)
        finally:
            db.close()

    def get_user_analytics(self, user_id: str) -> Dict:
        """Get a user's analytics, creating an empty record on first access."""
        now = self.clock()
        db = self.session_factory()
        try:
            repo = UserAnalyticsRepository(db)
            repo.get_or_create(user_id, now)

            if self.window_rollover:
                repo.roll_windows(user_id, now)

            return repo.get(user_id).to_dict(now)
        finally:
            db.close()

    def fire_and_forget(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run an analytics operation as a side effect of another write.

        Failures are logged and swallowed so they never affect the caller.

        Returns:
            The operation's result, or None if it failed
        """
        try:
            return operation(*args, **kwargs)
        except Exception as e:
            name = getattr(operation, '__name__', repr(operation))
            logger.warning(f"Analytics side effect {name}{args} failed: {e}", exc_info=True)
            return None

