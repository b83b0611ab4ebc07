"""Site-wide analytics cache and the recent activity feed."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from tvbingefriend_engagement_service.models.base import Base, utcnow


class ActivityType(str, Enum):
    """Kinds of events shown in the recent activity feed."""
    EPISODE_WATCHED = "episode_watched"
    REVIEW_POSTED = "review_posted"
    SHOW_ADDED = "show_added"
    CLUB_JOINED = "club_joined"


class GlobalAnalyticsSnapshot(Base):
    """Recomputable site-wide statistics.

    Logically a single row: readers use the most recently created one. Every
    recompute overwrites all statistics and bumps ``version``.
    """

    __tablename__ = "global_analytics_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    version = Column(Integer, nullable=False, default=0)

    total_users = Column(Integer, nullable=False, default=0)
    total_shows = Column(Integer, nullable=False, default=0)
    total_episodes_tracked = Column(Integer, nullable=False, default=0)
    total_watch_time_minutes = Column(Integer, nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    total_clubs = Column(Integer, nullable=False, default=0)

    most_watched_shows = Column(JSON, nullable=False, default=list)
    top_genres = Column(JSON, nullable=False, default=list)

    daily_active_users = Column(Integer, nullable=False, default=0)
    weekly_active_users = Column(Integer, nullable=False, default=0)
    monthly_active_users = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    refreshed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_global_analytics_created", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "total_users": self.total_users,
            "total_shows": self.total_shows,
            "total_episodes_tracked": self.total_episodes_tracked,
            "total_watch_time_minutes": self.total_watch_time_minutes,
            "total_reviews": self.total_reviews,
            "total_clubs": self.total_clubs,
            "most_watched_shows": list(self.most_watched_shows or []),
            "top_genres": list(self.top_genres or []),
            "daily_active_users": self.daily_active_users,
            "weekly_active_users": self.weekly_active_users,
            "monthly_active_users": self.monthly_active_users,
            "created_at": self.created_at,
            "refreshed_at": self.refreshed_at,
        }

    def __repr__(self):
        return f"<GlobalAnalyticsSnapshot(id={self.id}, version={self.version})>"


class ActivityEvent(Base):
    """One entry of the bounded, newest-first recent activity feed."""

    __tablename__ = "recent_activity"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(20), nullable=False)
    user_id = Column(String(64), nullable=False)
    show_id = Column(Integer, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "user_id": self.user_id,
            "show_id": self.show_id,
            "timestamp": self.timestamp,
        }

    def __repr__(self):
        return f"<ActivityEvent(id={self.id}, type='{self.type}', user_id='{self.user_id}')>"
