"""Declarative base shared by all models"""
from datetime import UTC, datetime

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form DateTime columns store."""
    return datetime.now(UTC).replace(tzinfo=None)
