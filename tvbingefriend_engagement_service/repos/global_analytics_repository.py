"""Repository for the global analytics snapshot and recent activity feed."""

from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import desc
import logging

from tvbingefriend_engagement_service.models import (
    ActivityEvent,
    GlobalAnalyticsSnapshot,
    utcnow,
)

logger = logging.getLogger(__name__)

# Snapshot columns a recompute is allowed to overwrite
SNAPSHOT_FIELDS = (
    'total_users',
    'total_shows',
    'total_episodes_tracked',
    'total_watch_time_minutes',
    'total_reviews',
    'total_clubs',
    'most_watched_shows',
    'top_genres',
    'daily_active_users',
    'weekly_active_users',
    'monthly_active_users',
)


class GlobalAnalyticsRepository:
    """
    Repository for the global analytics snapshot and recent activity feed.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_latest_snapshot(self) -> GlobalAnalyticsSnapshot | None:
        """Get the most recently created snapshot."""
        return (
            self.db.query(GlobalAnalyticsSnapshot)
            .order_by(desc(GlobalAnalyticsSnapshot.created_at), desc(GlobalAnalyticsSnapshot.id))
            .first()
        )

    def get_or_create_snapshot(self) -> GlobalAnalyticsSnapshot:
        """Get the latest snapshot, creating an empty one if none exists."""
        snapshot = self.get_latest_snapshot()
        if snapshot:
            return snapshot

        snapshot = GlobalAnalyticsSnapshot(created_at=utcnow())
        self.db.add(snapshot)
        self.db.commit()
        self.db.refresh(snapshot)

        logger.info("Created empty global analytics snapshot")
        return snapshot

    def overwrite_snapshot(
            self,
            snapshot: GlobalAnalyticsSnapshot,
            stats: dict,
            now: datetime | None = None
    ) -> GlobalAnalyticsSnapshot:
        """
        Overwrite a snapshot's statistics and bump its version.

        Args:
            snapshot: Snapshot to overwrite
            stats: Dict with every key of SNAPSHOT_FIELDS
            now: Refresh timestamp (default: current UTC time)

        Returns:
            The refreshed snapshot
        """
        missing = [name for name in SNAPSHOT_FIELDS if name not in stats]
        if missing:
            raise ValueError(f"Snapshot statistics missing: {missing}")

        for name in SNAPSHOT_FIELDS:
            setattr(snapshot, name, stats[name])

        snapshot.version = GlobalAnalyticsSnapshot.version + 1  # type: ignore[assignment]
        snapshot.refreshed_at = now or utcnow()  # type: ignore[assignment]

        self.db.commit()
        self.db.refresh(snapshot)
        return snapshot

    def append_activity(
            self,
            activity_type: str,
            user_id: str,
            show_id: int | None,
            capacity: int = 50,
            timestamp: datetime | None = None
    ) -> ActivityEvent:
        """
        Add an event to the recent activity feed and drop the overflow.

        Args:
            activity_type: Activity type value
            user_id: User who acted
            show_id: Show involved, if any
            capacity: Number of newest events to keep
            timestamp: Event time (default: current UTC time)

        Returns:
            The stored ActivityEvent
        """
        event = ActivityEvent(
            type=activity_type,
            user_id=user_id,
            show_id=show_id,
            timestamp=timestamp or utcnow(),
        )
        self.db.add(event)
        self.db.flush()

        self.trim_activity(capacity)

        self.db.commit()
        self.db.refresh(event)
        return event

    def trim_activity(self, capacity: int) -> int:
        """
        Delete every event older than the newest ``capacity`` events.

        Newest means highest id, i.e. insertion order.

        Returns:
            Number of deleted events
        """
        cutoff_id = (
            self.db.query(ActivityEvent.id)
            .order_by(desc(ActivityEvent.id))
            .offset(capacity - 1)
            .limit(1)
            .scalar()
        )
        if cutoff_id is None:
            return 0

        count = (
            self.db.query(ActivityEvent)
            .filter(ActivityEvent.id < cutoff_id)
            .delete(synchronize_session=False)
        )
        if count:
            logger.debug(f"Trimmed {count} events from recent activity")
        return count

    # noinspection PyTypeChecker
    def get_recent_activity(self, limit: int | None = None) -> list[ActivityEvent]:
        """Get recent activity, newest first."""
        query = self.db.query(ActivityEvent).order_by(desc(ActivityEvent.id))
        if limit is not None:
            query = query.limit(limit)
        return query.all()
