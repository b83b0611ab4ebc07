"""Repository for reading and aggregating users' watch records."""

import logging
from collections import Counter
from typing import Iterable

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.models import ShowProfile, WatchRecord

logger = logging.getLogger(__name__)


class WatchHistoryRepository:
    """
    Read/aggregate access to watch records owned by the watchlist service.
    """

    def __init__(self, db: Session):
        self.db = db

    # noinspection PyTypeChecker
    def find_by_user(
            self,
            user_id: str,
            statuses: Iterable[str] | None = None
    ) -> list[WatchRecord]:
        """
        Get a user's watch records.

        Args:
            user_id: User ID
            statuses: Only return records with one of these statuses (None = all)

        Returns:
            List of WatchRecord objects in show ID order
        """
        query = self.db.query(WatchRecord).filter(WatchRecord.user_id == user_id)

        if statuses is not None:
            values = [getattr(status, "value", status) for status in statuses]
            query = query.filter(WatchRecord.status.in_(values))

        return query.order_by(WatchRecord.show_id).all()

    def aggregate_status_counts(self, user_id: str) -> dict[str, int]:
        """
        Count a user's watch records per status.

        Returns:
            Dict mapping status to count (statuses with no records are absent)
        """
        rows = (
            self.db.query(WatchRecord.status, func.count(WatchRecord.id))
            .filter(WatchRecord.user_id == user_id)
            .group_by(WatchRecord.status)
            .all()
        )
        return {status: count for status, count in rows}

    def aggregate_episode_totals(self) -> int:
        """Sum of current episode progress across every watch record."""
        total = self.db.query(func.coalesce(func.sum(WatchRecord.current_episode), 0)).scalar()
        return int(total or 0)

    def count_watchers_per_show(self, limit: int = 10) -> list[dict]:
        """
        Get the shows referenced by the most watch records.

        Records pointing at shows missing from the catalog are ignored.

        Args:
            limit: Number of shows to return

        Returns:
            List of dicts with show_id, title and watch_count
        """
        watch_count = func.count(WatchRecord.id).label("watch_count")
        rows = (
            self.db.query(WatchRecord.show_id, ShowProfile.title, watch_count)
            .join(ShowProfile, WatchRecord.show_id == ShowProfile.show_id)
            .group_by(WatchRecord.show_id, ShowProfile.title)
            .order_by(desc(watch_count), WatchRecord.show_id)
            .limit(limit)
            .all()
        )

        return [
            {'show_id': show_id, 'title': title, 'watch_count': count}
            for show_id, title, count in rows
        ]

    def genre_frequencies(self, limit: int = 10) -> list[dict]:
        """
        Get the genres appearing most often across watched shows.

        Each watch record contributes one count to every genre of its show.

        Args:
            limit: Number of genres to return

        Returns:
            List of dicts with genre and count
        """
        watch_counts = dict(
            self.db.query(WatchRecord.show_id, func.count(WatchRecord.id))
            .group_by(WatchRecord.show_id)
            .all()
        )
        if not watch_counts:
            return []

        shows = (
            self.db.query(ShowProfile)
            .filter(ShowProfile.show_id.in_(list(watch_counts)))
            .all()
        )

        frequencies: Counter = Counter()
        for show in shows:
            for genre in show.genre_set:
                frequencies[genre] += watch_counts[show.show_id]

        ranked = sorted(frequencies.items(), key=lambda item: (-item[1], item[0]))
        return [{'genre': genre, 'count': count} for genre, count in ranked[:limit]]

    def find_recent_for_user(self, user_id: str, limit: int = 5) -> list[dict]:
        """
        Get a user's most recently updated watch records with show details.

        Args:
            user_id: User ID
            limit: Number of records

        Returns:
            List of dicts with watch progress plus title and genres
        """
        rows = (
            self.db.query(WatchRecord, ShowProfile)
            .outerjoin(ShowProfile, WatchRecord.show_id == ShowProfile.show_id)
            .filter(WatchRecord.user_id == user_id)
            .order_by(desc(WatchRecord.updated_at), desc(WatchRecord.id))
            .limit(limit)
            .all()
        )

        recent = []
        for record, show in rows:
            item = record.to_dict()
            item['title'] = show.title if show else None
            item['genres'] = list(show.genres or []) if show else []
            recent.append(item)

        return recent
