"""
Visibility rule for announcements.

An announcement is visible when it is active, has started (``starts_at``
is NULL or not after now) and has not expired (``expires_at`` is NULL or
after now). ``is_visible`` evaluates the rule on a loaded instance and
``visible_clause`` renders the same rule as a SQL expression; every read
path goes through one of the two.
"""

from sqlalchemy import and_, or_

from learnhub.models import Announcement
from learnhub.utils.helpers import utc_now, to_naive_utc


def _resolve_now(now):
    return to_naive_utc(now if now is not None else utc_now())


def has_started(announcement, now=None):
    now = _resolve_now(now)
    starts_at = to_naive_utc(announcement.starts_at)
    return starts_at is None or starts_at <= now


def has_expired(announcement, now=None):
    now = _resolve_now(now)
    expires_at = to_naive_utc(announcement.expires_at)
    return expires_at is not None and expires_at <= now


def is_visible(announcement, now=None):
    """Return True when ``announcement`` may be shown at ``now``.

    ``starts_at == now`` is visible, ``expires_at == now`` is not.
    """
    if not announcement.is_active:
        return False
    now = _resolve_now(now)
    return has_started(announcement, now) and not has_expired(announcement, now)


def not_expired_clause(now):
    now = _resolve_now(now)
    return or_(Announcement.expires_at.is_(None), Announcement.expires_at > now)


def visible_clause(now=None):
    """SQL counterpart of :func:`is_visible`."""
    now = _resolve_now(now)
    return and_(
        Announcement.is_active.is_(True),
        or_(Announcement.starts_at.is_(None), Announcement.starts_at <= now),
        not_expired_clause(now),
    )
