"""Repository for the mirrored show catalog."""

import logging
from typing import Iterable

from sqlalchemy import desc
from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.models import ShowProfile, utcnow

logger = logging.getLogger(__name__)


def rating_sort_key(show: ShowProfile) -> tuple:
    """Sort key for rating average desc, then rating count desc, then show id."""
    return (-(show.rating_average or 0.0), -(show.rating_count or 0), show.show_id)


class ShowCatalogRepository:
    """
    Read access to show metadata, plus the upserts used by the catalog sync.

    Genre and tag membership queries filter in Python because genres and tags
    are stored as JSON lists.
    """

    def __init__(self, db: Session):
        self.db = db

    def store_show(self, show_data: dict) -> ShowProfile:
        """
        Store or update a show profile.

        Args:
            show_data: Dict with show information (show_id and title required)

        Returns:
            ShowProfile object
        """
        show_id = show_data["show_id"]

        existing = self.db.query(ShowProfile).filter(ShowProfile.show_id == show_id).first()

        if existing:
            existing.title = show_data["title"]  # type: ignore[assignment]
            existing.genres = show_data.get("genres")  # type: ignore[assignment]
            existing.tags = show_data.get("tags")  # type: ignore[assignment]
            existing.rating_average = show_data.get("rating_average") or 0.0  # type: ignore[assignment]
            existing.rating_count = show_data.get("rating_count") or 0  # type: ignore[assignment]
            existing.is_popular = bool(show_data.get("is_popular"))  # type: ignore[assignment]
            existing.release_year = show_data.get("release_year")  # type: ignore[assignment]
            existing.season = show_data.get("season")  # type: ignore[assignment]
            existing.synced_at = utcnow()  # type: ignore[assignment]
            show = existing
        else:
            show = self._build_show(show_data)
            self.db.add(show)

        self.db.commit()
        self.db.refresh(show)

        return show

    def bulk_store_shows(self, shows_data: list[dict], batch_size: int = 100) -> int:
        """
        Replace the catalog with the given shows.

        Args:
            shows_data: List of show data dicts
            batch_size: Batch size for inserts

        Returns:
            Number of shows stored
        """
        logger.info("Clearing existing show profiles...")
        self.db.query(ShowProfile).delete()
        self.db.commit()

        records = [self._build_show(show_data) for show_data in shows_data]

        count = 0
        for i in range(0, len(records), batch_size):
            batch = records[i : i + batch_size]
            self.db.bulk_save_objects(batch)
            self.db.commit()
            count += len(batch)

        logger.info(f"✓ Stored {count} show profiles")
        return count

    def _build_show(self, show_data: dict) -> ShowProfile:
        return ShowProfile(
            show_id=show_data["show_id"],
            title=show_data["title"],
            genres=show_data.get("genres"),
            tags=show_data.get("tags"),
            rating_average=show_data.get("rating_average") or 0.0,
            rating_count=show_data.get("rating_count") or 0,
            is_popular=bool(show_data.get("is_popular")),
            release_year=show_data.get("release_year"),
            season=show_data.get("season"),
            synced_at=utcnow(),
        )

    def get_show(self, show_id: int) -> ShowProfile | None:
        """Get a show profile by ID."""
        return self.db.query(ShowProfile).filter(ShowProfile.show_id == show_id).first()

    # noinspection PyTypeChecker
    def get_all_shows(self) -> list[ShowProfile]:
        """Get all show profiles in show ID order."""
        return self.db.query(ShowProfile).order_by(ShowProfile.show_id).all()

    # noinspection PyTypeChecker
    def find_by_ids(self, show_ids: Iterable[int]) -> list[ShowProfile]:
        """Get the show profiles for the given IDs (unknown IDs are skipped)."""
        show_ids = list(show_ids)
        if not show_ids:
            return []
        return (
            self.db.query(ShowProfile)
            .filter(ShowProfile.show_id.in_(show_ids))
            .order_by(ShowProfile.show_id)
            .all()
        )

    # noinspection PyTypeChecker
    def find_excluding(self, show_ids: Iterable[int]) -> list[ShowProfile]:
        """
        Get every show whose ID is not in the given set.

        Args:
            show_ids: Show IDs to exclude

        Returns:
            Show profiles in show ID order
        """
        show_ids = list(show_ids)
        query = self.db.query(ShowProfile)
        if show_ids:
            query = query.filter(ShowProfile.show_id.notin_(show_ids))
        return query.order_by(ShowProfile.show_id).all()

    # noinspection PyTypeChecker
    def find_popular(self, limit: int = 20) -> list[ShowProfile]:
        """Get the highest rated shows."""
        return (
            self.db.query(ShowProfile)
            .order_by(
                desc(ShowProfile.rating_average),
                desc(ShowProfile.rating_count),
                ShowProfile.show_id,
            )
            .limit(limit)
            .all()
        )

    # noinspection PyTypeChecker
    def find_trending(self, min_rating: float = 7.0, limit: int = 20) -> list[ShowProfile]:
        """Get well rated shows (rating average at least min_rating)."""
        return (
            self.db.query(ShowProfile)
            .filter(ShowProfile.rating_average >= min_rating)
            .order_by(
                desc(ShowProfile.rating_average),
                desc(ShowProfile.rating_count),
                ShowProfile.show_id,
            )
            .limit(limit)
            .all()
        )

    # noinspection PyTypeChecker
    def find_by_season(self, season: str, year: int, limit: int = 20) -> list[ShowProfile]:
        """Get the shows released in a given season of a given year."""
        return (
            self.db.query(ShowProfile)
            .filter(ShowProfile.season == season, ShowProfile.release_year == year)
            .order_by(
                desc(ShowProfile.rating_average),
                desc(ShowProfile.rating_count),
                ShowProfile.show_id,
            )
            .limit(limit)
            .all()
        )

    def find_by_genre(self, genre: str, limit: int = 20) -> list[ShowProfile]:
        """Get the highest rated shows carrying a genre."""
        matches = [show for show in self.get_all_shows() if genre in show.genre_set]
        return sorted(matches, key=rating_sort_key)[:limit]

    def find_by_tags(self, tags: Iterable[str], limit: int = 20) -> list[ShowProfile]:
        """Get the highest rated shows carrying any of the given tags."""
        wanted = set(tags)
        matches = [show for show in self.get_all_shows() if show.tag_set & wanted]
        return sorted(matches, key=rating_sort_key)[:limit]

    def find_similar(self, show: ShowProfile, limit: int = 10) -> list[ShowProfile]:
        """
        Get shows sharing at least one genre or tag with the given show.

        Args:
            show: Source show (excluded from the results)
            limit: Maximum number of shows

        Returns:
            Matching show profiles, highest rated first
        """
        genres = show.genre_set
        tags = show.tag_set
        matches = [
            other
            for other in self.get_all_shows()
            if other.show_id != show.show_id
            and (other.genre_set & genres or other.tag_set & tags)
        ]
        return sorted(matches, key=rating_sort_key)[:limit]

    def count_shows(self) -> int:
        """Count shows in the catalog."""
        return self.db.query(ShowProfile).count()
