"""UTC time helpers.

SQLite hands back naive datetimes for ``DateTime(timezone=True)`` columns, so
anything read from the database goes through ``as_utc`` before it is compared
with an aware ``now``.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
