"""Read-only mirror of the club service's clubs"""
from sqlalchemy import Column, Integer, String

from tvbingefriend_engagement_service.models.base import Base


class Club(Base):
    __tablename__ = 'clubs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)

    def __repr__(self):
        return f"<Club(id={self.id}, name='{self.name}')>"
