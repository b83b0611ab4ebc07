"""Repository for users, reviews and clubs owned by other services."""

import logging
from typing import Iterable

from sqlalchemy import desc
from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.models import Club, Review, ShowProfile, UserAccount

logger = logging.getLogger(__name__)


class CommunityRepository:
    """
    Read-only queries over mirrored users, reviews and clubs.
    """

    def __init__(self, db: Session):
        self.db = db

    def count_active_users(self) -> int:
        """Count active user accounts."""
        return self.db.query(UserAccount).filter(UserAccount.is_active.is_(True)).count()

    def count_reviews(self) -> int:
        """Count reviews."""
        return self.db.query(Review).count()

    def count_clubs(self) -> int:
        """Count clubs."""
        return self.db.query(Club).count()

    def get_user_names(self, user_ids: Iterable[str]) -> dict[str, str | None]:
        """
        Get display names for users.

        Returns:
            Dict mapping user ID to name (unknown users are absent)
        """
        user_ids = list(user_ids)
        if not user_ids:
            return {}

        rows = (
            self.db.query(UserAccount.user_id, UserAccount.name)
            .filter(UserAccount.user_id.in_(user_ids))
            .all()
        )
        return {user_id: name for user_id, name in rows}

    def find_recent_reviews(self, user_id: str, limit: int = 5) -> list[dict]:
        """
        Get a user's newest reviews with show titles.

        Args:
            user_id: User ID
            limit: Number of reviews

        Returns:
            List of review dicts with a title key
        """
        rows = (
            self.db.query(Review, ShowProfile.title)
            .outerjoin(ShowProfile, Review.show_id == ShowProfile.show_id)
            .filter(Review.user_id == user_id)
            .order_by(desc(Review.created_at), desc(Review.id))
            .limit(limit)
            .all()
        )

        reviews = []
        for review, title in rows:
            item = review.to_dict()
            item['title'] = title
            reviews.append(item)

        return reviews
