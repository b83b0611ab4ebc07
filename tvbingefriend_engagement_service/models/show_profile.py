"""Mirrored show metadata used for scoring and catalog queries"""
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String

from tvbingefriend_engagement_service.models.base import Base, utcnow


class ShowProfile(Base):
    """Show metadata as seen by the engagement service.

    Mirrors data from the show service. Genres and tags are stored as JSON
    lists but treated as sets.
    """
    __tablename__ = 'show_profiles'

    show_id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    genres = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    rating_average = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)
    is_popular = Column(Boolean, nullable=False, default=False)
    release_year = Column(Integer, nullable=True)
    season = Column(String(10), nullable=True)

    synced_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def genre_set(self) -> set[str]:
        return set(self.genres or [])

    @property
    def tag_set(self) -> set[str]:
        return set(self.tags or [])

    def to_dict(self) -> dict:
        return {
            'show_id': self.show_id,
            'title': self.title,
            'genres': list(self.genres or []),
            'tags': list(self.tags or []),
            'rating': {
                'average': self.rating_average or 0.0,
                'count': self.rating_count or 0,
            },
            'is_popular': bool(self.is_popular),
            'release_year': self.release_year,
            'season': self.season,
        }

    def __repr__(self):
        return f"<ShowProfile(show_id={self.show_id}, title='{self.title}')>"
