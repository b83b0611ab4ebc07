"""Per-user activity counters and genre preferences."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from tvbingefriend_engagement_service.models.base import Base, utcnow
from tvbingefriend_engagement_service.models.watch_record import WatchStatus

# Counters kept in both the weekly and the monthly window
WINDOW_COUNTERS = (
    "episodes_watched",
    "shows_added",
    "reviews_posted",
    "club_posts",
    "poll_votes",
)

# Lifetime per-status counters, keyed by the watchlist status they count
STATUS_COUNTER_COLUMNS = {
    WatchStatus.WATCHING.value: "watching_shows",
    WatchStatus.COMPLETED.value: "completed_shows",
    WatchStatus.ON_HOLD.value: "on_hold_shows",
    WatchStatus.DROPPED.value: "dropped_shows",
    WatchStatus.PLAN_TO_WATCH.value: "plan_to_watch_shows",
}


class UserAnalytics(Base):
    """Activity statistics for one user.

    Holds lifetime counters, a weekly and a monthly window of counters (each
    anchored by the time the window started) and the time of the user's last
    tracked activity. Exactly one row per user.
    """

    __tablename__ = "user_analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, unique=True)

    # Lifetime counters
    episodes_watched = Column(Integer, nullable=False, default=0)
    total_watch_time_minutes = Column(Integer, nullable=False, default=0)
    reviews_posted = Column(Integer, nullable=False, default=0)
    club_posts = Column(Integer, nullable=False, default=0)
    club_likes = Column(Integer, nullable=False, default=0)
    clubs_joined = Column(Integer, nullable=False, default=0)
    shows_in_watchlist = Column(Integer, nullable=False, default=0)

    # Lifetime per-status counters (overwritten by reconciliation)
    watching_shows = Column(Integer, nullable=False, default=0)
    completed_shows = Column(Integer, nullable=False, default=0)
    on_hold_shows = Column(Integer, nullable=False, default=0)
    dropped_shows = Column(Integer, nullable=False, default=0)
    plan_to_watch_shows = Column(Integer, nullable=False, default=0)

    # Weekly window
    weekly_episodes_watched = Column(Integer, nullable=False, default=0)
    weekly_shows_added = Column(Integer, nullable=False, default=0)
    weekly_reviews_posted = Column(Integer, nullable=False, default=0)
    weekly_club_posts = Column(Integer, nullable=False, default=0)
    weekly_poll_votes = Column(Integer, nullable=False, default=0)
    weekly_window_start = Column(DateTime, nullable=False, default=utcnow)

    # Monthly window
    monthly_episodes_watched = Column(Integer, nullable=False, default=0)
    monthly_shows_added = Column(Integer, nullable=False, default=0)
    monthly_reviews_posted = Column(Integer, nullable=False, default=0)
    monthly_club_posts = Column(Integer, nullable=False, default=0)
    monthly_poll_votes = Column(Integer, nullable=False, default=0)
    monthly_window_start = Column(DateTime, nullable=False, default=utcnow)

    last_activity = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    favorite_genres = relationship(
        "UserGenreAffinity",
        order_by=lambda: [UserGenreAffinity.count.desc(), UserGenreAffinity.genre],
        lazy="selectin",
        viewonly=True,
    )

    __table_args__ = (
        Index("idx_user_analytics_last_activity", "last_activity"),
        Index("idx_user_analytics_episodes", "episodes_watched"),
    )

    @property
    def engagement_score(self) -> int:
        """Weighted sum of a user's lifetime activity."""
        episode_score = (self.episodes_watched or 0) * 10
        review_score = (self.reviews_posted or 0) * 50
        club_score = ((self.club_posts or 0) + (self.club_likes or 0)) * 5
        watchlist_score = (self.shows_in_watchlist or 0) * 2
        return episode_score + review_score + club_score + watchlist_score

    def avg_episodes_per_day(self, now: datetime | None = None) -> float:
        """Episodes per day since the record was created (at least one day)."""
        now = now or utcnow()
        created_at = self.created_at or now
        days = max(1, (now - created_at).days)
        return round((self.episodes_watched or 0) / days, 2)

    def window_to_dict(self, prefix: str) -> dict:
        """Counters of the weekly or monthly window as a dict."""
        counters = {name: getattr(self, f"{prefix}_{name}") or 0 for name in WINDOW_COUNTERS}
        counters["window_start"] = getattr(self, f"{prefix}_window_start")
        return counters

    def to_dict(self, now: datetime | None = None) -> dict:
        return {
            "user_id": self.user_id,
            "episodes_watched": self.episodes_watched,
            "total_watch_time_minutes": self.total_watch_time_minutes,
            "reviews_posted": self.reviews_posted,
            "club_posts": self.club_posts,
            "club_likes": self.club_likes,
            "clubs_joined": self.clubs_joined,
            "shows_in_watchlist": self.shows_in_watchlist,
            "watching_shows": self.watching_shows,
            "completed_shows": self.completed_shows,
            "on_hold_shows": self.on_hold_shows,
            "dropped_shows": self.dropped_shows,
            "plan_to_watch_shows": self.plan_to_watch_shows,
            "favorite_genres": [
                {"genre": affinity.genre, "count": affinity.count}
                for affinity in self.favorite_genres
            ],
            "weekly_activity": self.window_to_dict("weekly"),
            "monthly_activity": self.window_to_dict("monthly"),
            "last_activity": self.last_activity,
            "engagement_score": self.engagement_score,
            "avg_episodes_per_day": self.avg_episodes_per_day(now),
            "created_at": self.created_at,
        }

    def __repr__(self):
        return (
            f"<UserAnalytics(user_id='{self.user_id}', "
            f"episodes_watched={self.episodes_watched})>"
        )


class UserGenreAffinity(Base):
    """How many watchlist additions of a genre a user has made."""

    __tablename__ = "user_genre_affinities"

    user_id = Column(String(64), ForeignKey("user_analytics.user_id"), primary_key=True)
    genre = Column(String(50), primary_key=True)
    count = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<UserGenreAffinity(user_id='{self.user_id}', genre='{self.genre}', count={self.count})>"
