"""Repository classes"""

from tvbingefriend_engagement_service.repos.community_repository import CommunityRepository
from tvbingefriend_engagement_service.repos.global_analytics_repository import GlobalAnalyticsRepository
from tvbingefriend_engagement_service.repos.show_catalog_repository import ShowCatalogRepository
from tvbingefriend_engagement_service.repos.user_analytics_repository import UserAnalyticsRepository
from tvbingefriend_engagement_service.repos.watch_history_repository import WatchHistoryRepository

__all__ = [
    "CommunityRepository",
    "GlobalAnalyticsRepository",
    "ShowCatalogRepository",
    "UserAnalyticsRepository",
    "WatchHistoryRepository",
]
