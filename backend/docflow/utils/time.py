"""Time Utilities - UTC timestamps and formatting"""
from datetime import datetime, timezone, timedelta
from typing import Optional
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC value

    MongoDB hands back naive datetimes unless the client is tz-aware,
    so anything read from the store goes through here before comparison.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 string

    Args:
        dt: Datetime object

    Returns:
        ISO formatted string with Z suffix for UTC
    """
    return as_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to datetime

    Args:
        iso_string: ISO formatted datetime string

    Returns:
        Datetime object in UTC
    """
    return as_utc(date_parser.isoparse(iso_string))


def add_hours(dt: datetime, hours: int) -> datetime:
    """Add hours to datetime"""
    return dt + timedelta(hours=hours)


def calculate_due_at(start_time: datetime, timeout_hours: Optional[int]) -> Optional[datetime]:
    """
    Calculate due datetime from start time and step timeout

    Args:
        start_time: Start datetime
        timeout_hours: Hours until due, or None when the step has no timeout

    Returns:
        Due datetime, or None
    """
    if not timeout_hours:
        return None
    return add_hours(start_time, timeout_hours)


def is_overdue(due_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Check if due datetime has passed

    Args:
        due_at: Due datetime or None
        now: Reference time (defaults to current UTC time)

    Returns:
        True if overdue, False otherwise
    """
    if due_at is None:
        return False
    return as_utc(now or utc_now()) > as_utc(due_at)
