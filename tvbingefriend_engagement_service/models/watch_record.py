"""Per-user watch progress, owned by the watchlist service"""
from enum import Enum

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from tvbingefriend_engagement_service.models.base import Base, utcnow


class WatchStatus(str, Enum):
    """Watchlist status values as stored by the watchlist service."""
    WATCHING = "Watching"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"
    DROPPED = "Dropped"
    PLAN_TO_WATCH = "Plan to Watch"


class WatchRecord(Base):
    """One user's status and progress on one show."""

    __tablename__ = "watch_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    show_id = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=WatchStatus.PLAN_TO_WATCH.value)
    current_episode = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "show_id", name="uq_watch_records_user_show"),
        Index("idx_watch_records_user", "user_id"),
        Index("idx_watch_records_show", "show_id"),
    )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "show_id": self.show_id,
            "status": self.status,
            "current_episode": self.current_episode,
            "updated_at": self.updated_at,
        }

    def __repr__(self):
        return (
            f"<WatchRecord(user_id='{self.user_id}', show_id={self.show_id}, "
            f"status='{self.status}')>"
        )
