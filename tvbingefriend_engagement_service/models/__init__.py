"""SQLAlchemy models"""

from tvbingefriend_engagement_service.models.base import Base, utcnow
from tvbingefriend_engagement_service.models.club import Club
from tvbingefriend_engagement_service.models.global_analytics import (
    ActivityEvent,
    ActivityType,
    GlobalAnalyticsSnapshot,
)
from tvbingefriend_engagement_service.models.review import Review
from tvbingefriend_engagement_service.models.show_profile import ShowProfile
from tvbingefriend_engagement_service.models.user_account import UserAccount
from tvbingefriend_engagement_service.models.user_analytics import (
    STATUS_COUNTER_COLUMNS,
    WINDOW_COUNTERS,
    UserAnalytics,
    UserGenreAffinity,
)
from tvbingefriend_engagement_service.models.watch_record import WatchRecord, WatchStatus

__all__ = [
    "Base",
    "utcnow",
    "ActivityEvent",
    "ActivityType",
    "Club",
    "GlobalAnalyticsSnapshot",
    "Review",
    "ShowProfile",
    "UserAccount",
    "UserAnalytics",
    "UserGenreAffinity",
    "WatchRecord",
    "WatchStatus",
    "STATUS_COUNTER_COLUMNS",
    "WINDOW_COUNTERS",
]
