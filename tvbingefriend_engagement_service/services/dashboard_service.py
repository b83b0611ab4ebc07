"""Service assembling the per-user analytics dashboard."""
from typing import Callable, Dict, Optional
import logging

from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.models import STATUS_COUNTER_COLUMNS
from tvbingefriend_engagement_service.models.database import SessionLocal
from tvbingefriend_engagement_service.repos import CommunityRepository, WatchHistoryRepository
from tvbingefriend_engagement_service.services.global_analytics_service import GlobalAnalyticsAggregator
from tvbingefriend_engagement_service.services.ranking_service import RankingService
from tvbingefriend_engagement_service.services.user_analytics_service import UserAnalyticsAggregator

logger = logging.getLogger(__name__)


class AnalyticsDashboardService:
    """Bundles a user's analytics, rank and recent activity with the site snapshot."""

    def __init__(
            self,
            session_factory: Optional[Callable[[], Session]] = None,
            user_analytics: Optional[UserAnalyticsAggregator] = None,
            global_analytics: Optional[GlobalAnalyticsAggregator] = None,
            ranking: Optional[RankingService] = None,
            recent_limit: int = 5
    ):
        self.session_factory = session_factory or SessionLocal
        self.global_analytics = global_analytics or GlobalAnalyticsAggregator(
            session_factory=self.session_factory
        )
        self.user_analytics = user_analytics or UserAnalyticsAggregator(
            session_factory=self.session_factory,
            activity_feed=self.global_analytics
        )
        self.ranking = ranking or RankingService(session_factory=self.session_factory)
        self.recent_limit = recent_limit

    def get_dashboard(self, user_id: str) -> Dict:
        """
        Build a user's dashboard.

        The user's status counters are reconciled with their watch history
        first; viewing the dashboard does not count as activity.

        Args:
            user_id: User ID

        Returns:
            Dict with user_analytics, global_analytics, user_rank, total_users,
            top_users, recent_watchlist, recent_reviews and
            watchlist_status_distribution
        """
        user_analytics = self.user_analytics.reconcile_watchlist_status_counts(
            user_id, touch_activity=False
        )
        global_analytics = self.global_analytics.get_snapshot()
        user_rank = self.ranking.get_user_rank(user_id)

        db = self.session_factory()
        try:
            recent_watchlist = WatchHistoryRepository(db).find_recent_for_user(
                user_id, limit=self.recent_limit
            )
            recent_reviews = CommunityRepository(db).find_recent_reviews(
                user_id, limit=self.recent_limit
            )
        finally:
            db.close()

        status_distribution = {
            status: user_analytics[column]
            for status, column in STATUS_COUNTER_COLUMNS.items()
        }

        logger.info(f"Built dashboard for user {user_id} (rank {user_rank.rank}/{user_rank.total_users})")

        return {
            'user_analytics': user_analytics,
            'global_analytics': global_analytics,
            'user_rank': user_rank.rank,
            'total_users': user_rank.total_users,
            'top_users': [entry.to_dict() for entry in user_rank.top_users],
            'recent_watchlist': recent_watchlist,
            'recent_reviews': recent_reviews,
            'watchlist_status_distribution': status_distribution,
        }
