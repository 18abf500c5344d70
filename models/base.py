# models/base.py
"""
Base model and mixins for all database tables.
"""
from datetime import datetime, timezone
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, DateTime

Base = declarative_base()


def _get_current_time():
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AuditMixin:
    createdAt = Column(DateTime, default=_get_current_time, index=True)
    updatedAt = Column(DateTime, default=_get_current_time, onupdate=_get_current_time)
