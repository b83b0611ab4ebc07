"""Service classes"""

from .catalog_sync_service import CatalogSyncService, ShowCatalogClient
from .dashboard_service import AnalyticsDashboardService
from .global_analytics_service import GlobalAnalyticsAggregator
from .ranking_service import LeaderboardEntry, RankingService, UserRank
from .recommendation_service import RecommendationScorer
from .user_analytics_service import ClubActivity, UserAnalyticsAggregator

__all__ = [
    "AnalyticsDashboardService",
    "CatalogSyncService",
    "ClubActivity",
    "GlobalAnalyticsAggregator",
    "LeaderboardEntry",
    "RankingService",
    "RecommendationScorer",
    "ShowCatalogClient",
    "UserAnalyticsAggregator",
    "UserRank",
]
