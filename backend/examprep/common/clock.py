"""Time helpers.

All engine timestamps are naive UTC so that values read back from Postgres and
SQLite compare the same way.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
