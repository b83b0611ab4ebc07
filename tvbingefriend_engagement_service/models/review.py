"""Read-only mirror of the review service's reviews"""
from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from tvbingefriend_engagement_service.models.base import Base, utcnow


class Review(Base):
    __tablename__ = 'reviews'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    show_id = Column(Integer, nullable=False)
    rating = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_reviews_user", "user_id"),
    )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'show_id': self.show_id,
            'rating': self.rating,
            'created_at': self.created_at,
        }

    def __repr__(self):
        return f"<Review(id={self.id}, user_id='{self.user_id}', show_id={self.show_id})>"
