"""Service for the episodes-watched leaderboard."""
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from tvbingefriend_engagement_service.models.database import SessionLocal
from tvbingefriend_engagement_service.repos import CommunityRepository, UserAnalyticsRepository

logger = logging.getLogger(__name__)

UNKNOWN_USER_NAME = "Unknown User"


@dataclass
class LeaderboardEntry:
    """One user's position on the leaderboard."""
    rank: int
    user_id: str
    name: str
    episodes_watched: int

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class UserRank:
    """A user's rank plus the population size and the top of the leaderboard."""
    rank: Optional[int]
    total_users: int
    top_users: List[LeaderboardEntry] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'rank': self.rank,
            'total_users': self.total_users,
            'top_users': [entry.to_dict() for entry in self.top_users],
        }


def leaderboard_sort_key(row: tuple) -> tuple:
    """Episodes watched desc, then earliest created record, then lowest id."""
    record_id, _user_id, episodes_watched, created_at = row
    return -(episodes_watched or 0), created_at, record_id


class RankingService:
    """
    Ranks users by lifetime episodes watched.

    Every call loads and sorts the whole user analytics population, which is
    O(U log U) in the number of users.
    """

    def __init__(
            self,
            session_factory: Optional[Callable[[], Session]] = None,
            top_n: int = 3
    ):
        self.session_factory = session_factory or SessionLocal
        self.top_n = top_n

    def _ranked_rows(self, db: Session) -> List[tuple]:
        rows = UserAnalyticsRepository(db).get_leaderboard_rows()
        return sorted(rows, key=leaderboard_sort_key)

    def _build_entries(self, db: Session, rows: List[tuple]) -> List[LeaderboardEntry]:
        names = CommunityRepository(db).get_user_names(row[1] for row in rows)
        return [
            LeaderboardEntry(
                rank=position,
                user_id=user_id,
                name=names.get(user_id) or UNKNOWN_USER_NAME,
                episodes_watched=episodes_watched or 0,
            )
            for position, (_, user_id, episodes_watched, _) in enumerate(rows, start=1)
        ]

    def get_leaderboard(self, limit: Optional[int] = None) -> List[Dict]:
        """
        Get the leaderboard.

        Args:
            limit: Number of entries (default: top_n)

        Returns:
            List of entry dicts, rank 1 first
        """
        limit = limit or self.top_n
        db = self.session_factory()
        try:
            rows = self._ranked_rows(db)[:limit]
            return [entry.to_dict() for entry in self._build_entries(db, rows)]
        finally:
            db.close()

    def get_user_rank(self, user_id: str) -> UserRank:
        """
        Get a user's 1-based rank by episodes watched.

        Ties on episodes go to the user whose analytics record was created
        first, then to the lower record id.

        Args:
            user_id: User ID

        Returns:
            UserRank; rank is None if the user has no analytics record
        """
        db = self.session_factory()
        try:
            rows = self._ranked_rows(db)

            rank = None
            for position, row in enumerate(rows, start=1):
                if row[1] == user_id:
                    rank = position
                    break

            if rank is None:
                logger.info(f"User {user_id} has no analytics record, not ranked")

            return UserRank(
                rank=rank,
                total_users=len(rows),
                top_users=self._build_entries(db, rows[:self.top_n]),
            )
        finally:
            db.close()
