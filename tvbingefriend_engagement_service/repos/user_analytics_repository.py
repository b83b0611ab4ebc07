"""Repository for per-user analytics records."""

import logging
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.models import (
    STATUS_COUNTER_COLUMNS,
    WINDOW_COUNTERS,
    UserAnalytics,
    UserGenreAffinity,
    utcnow,
)

logger = logging.getLogger(__name__)

# Columns that may be incremented through increment_counters
COUNTER_COLUMNS = frozenset(
    [
        "episodes_watched",
        "total_watch_time_minutes",
        "reviews_posted",
        "club_posts",
        "club_likes",
        "clubs_joined",
        "shows_in_watchlist",
    ]
    + [f"weekly_{name}" for name in WINDOW_COUNTERS]
    + [f"monthly_{name}" for name in WINDOW_COUNTERS]
)


class UserAnalyticsRepository:
    """
    Repository for per-user analytics records.

    Counter updates are issued as single UPDATE statements
    (``SET col = col + n``) so concurrent updates for the same user never
    overwrite each other.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> UserAnalytics | None:
        """Get a user's analytics record."""
        return self.db.query(UserAnalytics).filter(UserAnalytics.user_id == user_id).first()

    def get_or_create(self, user_id: str, now: datetime | None = None) -> UserAnalytics:
        """
        Get a user's analytics record, creating it with both windows anchored at now.

        A concurrent creation for the same user loses on the unique constraint;
        the losing side rolls back and reads the winner's record.

        Args:
            user_id: User ID
            now: Creation timestamp (default: current UTC time)

        Returns:
            UserAnalytics object
        """
        existing = self.get(user_id)
        if existing:
            return existing

        now = now or utcnow()
        record = UserAnalytics(
            user_id=user_id,
            weekly_window_start=now,
            monthly_window_start=now,
            last_activity=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(record)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Analytics record for user {user_id} created concurrently, reusing it")
            existing = self.get(user_id)
            if existing is None:
                raise
            return existing

        self.db.refresh(record)
        logger.info(f"Created analytics record for user {user_id}")
        return record

    def roll_windows(
            self,
            user_id: str,
            now: datetime,
            weekly_days: int = 7,
            monthly_days: int = 30
    ) -> list[str]:
        """
        Reset expired weekly/monthly windows.

        A window whose start is at least its length in the past gets its
        counters zeroed and its start moved to now. Each reset is one
        conditional UPDATE, so concurrent callers reset a window at most once.

        Returns:
            Names of the windows that were reset ("weekly", "monthly")
        """
        rolled = []
        for prefix, days in (("weekly", weekly_days), ("monthly", monthly_days)):
            start_column = getattr(UserAnalytics, f"{prefix}_window_start")
            values = {getattr(UserAnalytics, f"{prefix}_{name}"): 0 for name in WINDOW_COUNTERS}
            values[start_column] = now

            count = (
                self.db.query(UserAnalytics)
                .filter(
                    UserAnalytics.user_id == user_id,
                    start_column <= now - timedelta(days=days),
                )
                .update(values, synchronize_session=False)
            )
            if count:
                rolled.append(prefix)

        self.db.commit()

        if rolled:
            logger.info(f"Rolled over {', '.join(rolled)} window(s) for user {user_id}")
        return rolled

    def increment_counters(
            self,
            user_id: str,
            increments: dict[str, int],
            now: datetime | None = None
    ) -> int:
        """
        Atomically add to counters and stamp last activity.

        Args:
            user_id: User ID
            increments: Dict mapping counter column name to amount
            now: Activity timestamp (default: current UTC time)

        Returns:
            Number of rows updated (0 if the user has no record)
        """
        unknown = set(increments) - COUNTER_COLUMNS
        if unknown:
            raise ValueError(f"Unknown analytics counters: {sorted(unknown)}")

        now = now or utcnow()
        values = {
            getattr(UserAnalytics, name): getattr(UserAnalytics, name) + amount
            for name, amount in increments.items()
        }
        values[UserAnalytics.last_activity] = now
        values[UserAnalytics.updated_at] = now

        count = (
            self.db.query(UserAnalytics)
            .filter(UserAnalytics.user_id == user_id)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        return count

    def increment_genres(self, user_id: str, genres: Iterable[str]) -> int:
        """
        Add one to each of a user's genre affinities, creating missing ones.

        Args:
            user_id: User ID (must already have an analytics record)
            genres: Genres to count

        Returns:
            Number of genre rows updated
        """
        genres = sorted(set(genres))
        if not genres:
            return 0

        self._ensure_genre_rows(user_id, genres)

        count = (
            self.db.query(UserGenreAffinity)
            .filter(
                UserGenreAffinity.user_id == user_id,
                UserGenreAffinity.genre.in_(genres),
            )
            .update(
                {UserGenreAffinity.count: UserGenreAffinity.count + 1},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return count

    def _ensure_genre_rows(self, user_id: str, genres: list[str]) -> None:
        existing = {
            row[0]
            for row in self.db.query(UserGenreAffinity.genre)
            .filter(
                UserGenreAffinity.user_id == user_id,
                UserGenreAffinity.genre.in_(genres),
            )
            .all()
        }

        for genre in genres:
            if genre in existing:
                continue
            self.db.add(UserGenreAffinity(user_id=user_id, genre=genre, count=0))
            try:
                self.db.commit()
            except IntegrityError:
                # Another request created it first
                self.db.rollback()

    def overwrite_status_counts(
            self,
            user_id: str,
            status_counts: dict[str, int],
            now: datetime | None = None,
            touch_activity: bool = True
    ) -> int:
        """
        Replace the per-status counters and watchlist size.

        Args:
            user_id: User ID
            status_counts: Dict mapping watchlist status to count; statuses not
                present are set to 0 and unknown statuses only count toward
                the watchlist size
            now: Activity timestamp (default: current UTC time)
            touch_activity: Also set last_activity to now

        Returns:
            Number of rows updated
        """
        now = now or utcnow()
        values = {
            getattr(UserAnalytics, column): int(status_counts.get(status, 0))
            for status, column in STATUS_COUNTER_COLUMNS.items()
        }
        values[UserAnalytics.shows_in_watchlist] = sum(int(count) for count in status_counts.values())
        if touch_activity:
            values[UserAnalytics.last_activity] = now
        values[UserAnalytics.updated_at] = now

        count = (
            self.db.query(UserAnalytics)
            .filter(UserAnalytics.user_id == user_id)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        return count

    # noinspection PyTypeChecker
    def get_leaderboard_rows(self) -> list[tuple]:
        """
        Get (id, user_id, episodes_watched, created_at) for every user.

        Returns:
            List of tuples, unordered
        """
        return [
            tuple(row)
            for row in self.db.query(
                UserAnalytics.id,
                UserAnalytics.user_id,
                UserAnalytics.episodes_watched,
                UserAnalytics.created_at,
            ).all()
        ]

    def count_active_since(self, cutoff: datetime) -> int:
        """Count users whose last activity is at or after cutoff."""
        return (
            self.db.query(UserAnalytics)
            .filter(UserAnalytics.last_activity >= cutoff)
            .count()
        )
