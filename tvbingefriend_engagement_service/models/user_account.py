"""Read-only mirror of the user service's accounts"""
from sqlalchemy import Boolean, Column, String

from tvbingefriend_engagement_service.models.base import Base


class UserAccount(Base):
    """User identity used for active-user totals and leaderboard names."""
    __tablename__ = 'users'

    user_id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<UserAccount(user_id='{self.user_id}', name='{self.name}')>"
