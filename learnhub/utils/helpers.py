"""
Common utility functions for LearnHub.

This module provides reusable helper functions for:
- Date/time handling (UTC storage, ISO-8601 parsing and formatting)
- URL validation for announcement links
- Coercion of loosely typed request values (booleans, string lists)
"""

from datetime import datetime, timezone
from urllib.parse import urlparse

from learnhub.errors import ValidationError


def utc_now():
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_naive_utc(dt):
    """Convert a datetime to naive UTC, the form stored in the database.

    Naive input is assumed to already be UTC and is returned unchanged.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def format_utc_iso(dt):
    """Return a UTC ISO-8601 string (with trailing Z) for a datetime or None."""
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def parse_datetime(value, field_name):
    """Parse an ISO-8601 string into a naive UTC datetime.

    Accepts datetimes as-is. Blank values map to ``None``.
    """
    if value is None or isinstance(value, datetime):
        return to_naive_utc(value)
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be an ISO-8601 date string")
    value = value.strip()
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO-8601 date string")
    return to_naive_utc(parsed)


def parse_bool(value, field_name):
    """Parse JSON booleans and the query-string spellings 'true'/'false'."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "1", "yes", "on"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "0", "no", "off"}:
        return False
    raise ValidationError(f"{field_name} must be a boolean")


def parse_string_list(value, field_name):
    """Return a de-duplicated list of stripped, non-empty strings.

    Accepts a list of strings or a comma-separated string. Order of first
    appearance is preserved.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(',')
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list of strings")

    cleaned = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{field_name} must be a list of strings")
        item = item.strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


def is_http_url(target):
    """Return True for absolute http(s) URLs with a host."""
    if not target or not isinstance(target, str):
        return False
    parsed = urlparse(target)
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)
