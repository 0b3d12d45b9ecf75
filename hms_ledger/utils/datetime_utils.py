"""
Common date/time utility functions for consistent date/time handling across the application

Storage: All dates are stored in UTC in the backend.
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """
    Get current UTC datetime.
    """
    return datetime.now(timezone.utc)


def hours_from_now(hours: int) -> datetime:
    return utc_now() + timedelta(hours=hours)
