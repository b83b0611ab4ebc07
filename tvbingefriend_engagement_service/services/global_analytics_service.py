"""Service for site-wide analytics and the recent activity feed."""
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.config import (
    get_default_episode_minutes,
    get_recent_activity_capacity,
)
from tvbingefriend_engagement_service.models import ActivityType, utcnow
from tvbingefriend_engagement_service.models.database import SessionLocal
from tvbingefriend_engagement_service.repos import (
    CommunityRepository,
    GlobalAnalyticsRepository,
    ShowCatalogRepository,
    UserAnalyticsRepository,
    WatchHistoryRepository,
)

logger = logging.getLogger(__name__)

# Active-user counters and the number of days each looks back
ACTIVE_USER_WINDOWS = {
    'daily_active_users': 1,
    'weekly_active_users': 7,
    'monthly_active_users': 30,
}


class GlobalAnalyticsAggregator:
    """
    Maintains the site-wide analytics snapshot and the recent activity feed.

    The snapshot is a cache: ``recompute_snapshot`` rebuilds every statistic
    from the catalog, the watch history and the user analytics table and
    overwrites the stored row, so repeated or concurrent recomputes converge.
    The activity feed is updated independently by ``append_activity``.
    """

    def __init__(
            self,
            session_factory: Optional[Callable[[], Session]] = None,
            clock: Callable[[], datetime] = utcnow,
            activity_capacity: Optional[int] = None,
            episode_minutes: Optional[int] = None,
            top_n: int = 10
    ):
        """
        Initialize the aggregator.

        Args:
            session_factory: Callable returning a database session (default: SessionLocal)
            clock: Callable returning the current UTC time
            activity_capacity: Size of the recent activity feed (default: from config)
            episode_minutes: Minutes per tracked episode (default: from config)
            top_n: Length of the most-watched and top-genre lists
        """
        self.session_factory = session_factory or SessionLocal
        self.clock = clock
        if activity_capacity is None:
            activity_capacity = get_recent_activity_capacity()
        if activity_capacity < 1:
            raise ValueError("activity_capacity must be at least 1")
        if episode_minutes is None:
            episode_minutes = get_default_episode_minutes()
        if episode_minutes < 0:
            raise ValueError("episode_minutes must not be negative")

        self.activity_capacity = activity_capacity
        self.episode_minutes = episode_minutes
        self.top_n = top_n

    def compute_statistics(self, db: Session, now: datetime) -> Dict:
        """
        Compute every snapshot statistic from the underlying data.

        Args:
            db: Database session
            now: Reference time for the active-user windows

        Returns:
            Dict keyed by snapshot field name
        """
        community_repo = CommunityRepository(db)
        history_repo = WatchHistoryRepository(db)
        analytics_repo = UserAnalyticsRepository(db)

        total_episodes = history_repo.aggregate_episode_totals()

        stats = {
            'total_users': community_repo.count_active_users(),
            'total_shows': ShowCatalogRepository(db).count_shows(),
            'total_episodes_tracked': total_episodes,
            'total_watch_time_minutes': total_episodes * self.episode_minutes,
            'total_reviews': community_repo.count_reviews(),
            'total_clubs': community_repo.count_clubs(),
            'most_watched_shows': history_repo.count_watchers_per_show(limit=self.top_n),
            'top_genres': history_repo.genre_frequencies(limit=self.top_n),
        }

        for field, days in ACTIVE_USER_WINDOWS.items():
            stats[field] = analytics_repo.count_active_since(now - timedelta(days=days))

        return stats

    def recompute_snapshot(self) -> Dict:
        """
        Rebuild and store the global analytics snapshot.

        Returns:
            Snapshot dict (including recent activity)
        """
        now = self.clock()
        db = self.session_factory()
        try:
            repo = GlobalAnalyticsRepository(db)
            snapshot = repo.get_or_create_snapshot()

            stats = self.compute_statistics(db, now)
            snapshot = repo.overwrite_snapshot(snapshot, stats, now=now)

            logger.info(
                f"✓ Recomputed global analytics snapshot v{snapshot.version}: "
                f"{stats['total_users']} users, {stats['total_shows']} shows, "
                f"{stats['total_episodes_tracked']} episodes tracked"
            )

            result = snapshot.to_dict()
            result['recent_activity'] = [event.to_dict() for event in repo.get_recent_activity()]
            return result
        finally:
            db.close()

    def get_snapshot(self) -> Dict:
        """Get the stored snapshot (without recomputing) plus recent activity."""
        db = self.session_factory()
        try:
            repo = GlobalAnalyticsRepository(db)
            result = repo.get_or_create_snapshot().to_dict()
            result['recent_activity'] = [event.to_dict() for event in repo.get_recent_activity()]
            return result
        finally:
            db.close()

    def append_activity(
            self,
            activity_type: ActivityType | str,
            user_id: str,
            show_id: Optional[int] = None
    ) -> Dict:
        """
        Add an event to the front of the recent activity feed.

        The feed keeps only the newest ``activity_capacity`` events.

        Args:
            activity_type: ActivityType or its value
            user_id: User who acted
            show_id: Show involved, if any

        Returns:
            The stored event as a dict

        Raises:
            ValueError: If activity_type is not a known activity type
        """
        activity_type = ActivityType(activity_type)

        db = self.session_factory()
        try:
            event = GlobalAnalyticsRepository(db).append_activity(
                activity_type.value,
                user_id,
                show_id,
                capacity=self.activity_capacity,
                timestamp=self.clock(),
            )
            return event.to_dict()
        finally:
            db.close()

    def get_recent_activity(self, limit: Optional[int] = None) -> List[Dict]:
        """Get recent activity events, newest first."""
        db = self.session_factory()
        try:
            events = GlobalAnalyticsRepository(db).get_recent_activity(limit=limit)
            return [event.to_dict() for event in events]
        finally:
            db.close()

    def get_public_summary(self, top_n: int = 5) -> Dict:
        """
        Get site statistics that are safe to show to anyone.

        Computed live and without any per-user data.

        Args:
            top_n: Length of the most-watched and top-genre lists

        Returns:
            Dict with totals and the top shows and genres
        """
        db = self.session_factory()
        try:
            community_repo = CommunityRepository(db)
            history_repo = WatchHistoryRepository(db)

            return {
                'total_users': community_repo.count_active_users(),
                'total_shows': ShowCatalogRepository(db).count_shows(),
                'total_reviews': community_repo.count_reviews(),
                'total_clubs': community_repo.count_clubs(),
                'most_watched_shows': history_repo.count_watchers_per_show(limit=top_n),
                'top_genres': history_repo.genre_frequencies(limit=top_n),
            }
        finally:
            db.close()
