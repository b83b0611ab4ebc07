"""Service for personalized and catalog-based show recommendations."""
from collections import Counter
from datetime import datetime
from typing import Callable, Iterable, List, Dict, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.models import ShowProfile, WatchStatus, utcnow
from tvbingefriend_engagement_service.models.database import SessionLocal
from tvbingefriend_engagement_service.repos import ShowCatalogRepository, WatchHistoryRepository

logger = logging.getLogger(__name__)

# Watch statuses that count as having watched a show
WATCHED_STATUSES = (WatchStatus.WATCHING, WatchStatus.COMPLETED)


def build_affinities(shows: Iterable[ShowProfile]) -> Tuple[Counter, Counter]:
    """
    Count genre and tag occurrences across a user's watched shows.

    Args:
        shows: Watched show profiles

    Returns:
        Tuple of (genre_affinity, tag_affinity) counters
    """
    genre_affinity: Counter = Counter()
    tag_affinity: Counter = Counter()

    for show in shows:
        genre_affinity.update(show.genre_set)
        tag_affinity.update(show.tag_set)

    return genre_affinity, tag_affinity


class RecommendationScorer:
    """
    Ranks unseen shows for a user by how well they match the user's watch history.

    Score of a candidate show:
        genre_weight * sum(genre affinity of its genres)
        + tag_weight * sum(tag affinity of its tags)
        + rating_weight * rating average
        + popular_boost if the show is flagged popular
        + recent_boost if it was released within the last recent_years years

    Ties keep candidate retrieval order (ascending show ID). Any failure
    while scoring falls back to the popularity list.
    """

    def __init__(
            self,
            session_factory: Optional[Callable[[], Session]] = None,
            clock: Callable[[], datetime] = utcnow,
            genre_weight: float = 2.0,
            tag_weight: float = 1.0,
            rating_weight: float = 0.5,
            popular_boost: float = 3.0,
            recent_boost: float = 2.0,
            recent_years: int = 2
    ):
        """
        Initialize the recommendation scorer.

        Args:
            session_factory: Callable returning a database session (default: SessionLocal)
            clock: Callable returning the current UTC time
            genre_weight: Weight per unit of genre affinity
            tag_weight: Weight per unit of tag affinity
            rating_weight: Weight of the rating average
            popular_boost: Bonus for shows flagged popular
            recent_boost: Bonus for recently released shows
            recent_years: How many years back a release still counts as recent
        """
        self.session_factory = session_factory or SessionLocal
        self.clock = clock
        self.genre_weight = genre_weight
        self.tag_weight = tag_weight
        self.rating_weight = rating_weight
        self.popular_boost = popular_boost
        self.recent_boost = recent_boost
        self.recent_years = recent_years

        logger.info(
            f"Initialized RecommendationScorer - Genre: {genre_weight}, Tag: {tag_weight}, "
            f"Rating: {rating_weight}, Popular: {popular_boost}, Recent: {recent_boost}"
        )

    def score_show(
            self,
            show: ShowProfile,
            genre_affinity: Counter,
            tag_affinity: Counter,
            current_year: int
    ) -> float:
        """Score one candidate show against a user's affinities."""
        score = 0.0
        score += sum(genre_affinity[genre] * self.genre_weight for genre in show.genre_set)
        score += sum(tag_affinity[tag] * self.tag_weight for tag in show.tag_set)
        score += (show.rating_average or 0.0) * self.rating_weight

        if show.is_popular:
            score += self.popular_boost

        if show.release_year and show.release_year >= current_year - self.recent_years:
            score += self.recent_boost

        return score

    def get_personalized_recommendations(self, user_id: str, limit: int = 10) -> List[Dict]:
        """
        Get the best scoring unseen shows for a user.

        Args:
            user_id: User ID
            limit: Number of shows to return

        Returns:
            List of show dicts, best match first. Users without watch history,
            and any internal failure, get the popularity list instead.
        """
        try:
            db = self.session_factory()
            try:
                history_repo = WatchHistoryRepository(db)
                catalog_repo = ShowCatalogRepository(db)

                records = history_repo.find_by_user(user_id, WATCHED_STATUSES)
                if not records:
                    logger.info(f"No watch history for user {user_id}, using popular shows")
                    return self.get_popular_shows(limit)

                watched_ids = {record.show_id for record in records}
                genre_affinity, tag_affinity = build_affinities(
                    catalog_repo.find_by_ids(watched_ids)
                )

                current_year = self.clock().year
                scored = [
                    (self.score_show(show, genre_affinity, tag_affinity, current_year), show)
                    for show in catalog_repo.find_excluding(watched_ids)
                ]
                # Stable sort: equal scores keep show ID order
                scored.sort(key=lambda item: item[0], reverse=True)

                return [show.to_dict() for _, show in scored[:limit]]
            finally:
                db.close()

        except Exception as e:
            logger.error(f"Error generating recommendations for user {user_id}: {e}", exc_info=True)
            return self.get_popular_shows(limit)

    def _query_catalog(
            self,
            description: str,
            query: Callable[[ShowCatalogRepository], List[ShowProfile]]
    ) -> List[Dict]:
        """Run a catalog query, returning an empty list on failure."""
        try:
            db = self.session_factory()
            try:
                return [show.to_dict() for show in query(ShowCatalogRepository(db))]
            finally:
                db.close()
        except Exception as e:
            logger.error(f"Error getting {description}: {e}", exc_info=True)
            return []

    def get_popular_shows(self, limit: int = 10) -> List[Dict]:
        """Get the highest rated shows."""
        return self._query_catalog(
            "popular shows",
            lambda repo: repo.find_popular(limit=limit)
        )

    def get_trending_shows(self, limit: int = 20, min_rating: float = 7.0) -> List[Dict]:
        """Get well rated shows."""
        return self._query_catalog(
            "trending shows",
            lambda repo: repo.find_trending(min_rating=min_rating, limit=limit)
        )

    def get_shows_by_genre(self, genre: str, limit: int = 20) -> List[Dict]:
        """Get the highest rated shows in a genre."""
        return self._query_catalog(
            f"shows by genre '{genre}'",
            lambda repo: repo.find_by_genre(genre, limit=limit)
        )

    def get_shows_by_tags(self, tags: List[str], limit: int = 20) -> List[Dict]:
        """Get the highest rated shows carrying any of the tags."""
        return self._query_catalog(
            f"shows by tags {tags}",
            lambda repo: repo.find_by_tags(tags, limit=limit)
        )

    def get_seasonal_shows(self, season: str, year: int, limit: int = 20) -> List[Dict]:
        """Get the highest rated shows of a season."""
        return self._query_catalog(
            f"seasonal shows for {season} {year}",
            lambda repo: repo.find_by_season(season, year, limit=limit)
        )

    def get_similar_shows(self, show_id: int, limit: int = 10) -> List[Dict]:
        """
        Get shows sharing a genre or tag with a show.

        Args:
            show_id: Source show ID
            limit: Number of shows

        Returns:
            List of show dicts (empty for unknown shows)
        """
        def query(repo: ShowCatalogRepository) -> List[ShowProfile]:
            show = repo.get_show(show_id)
            if show is None:
                logger.warning(f"Show ID {show_id} not found in catalog")
                return []
            return repo.find_similar(show, limit=limit)

        return self._query_catalog(f"shows similar to {show_id}", query)
