from datetime import datetime, timezone
from sqlalchemy.sql import func
from sqlalchemy import Column, DateTime


class CreatedAtMixin:
    created_at = Column(DateTime(timezone=True), default=func.now())


class UpdatedAtMixin:
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timezone-aware columns back naive
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
