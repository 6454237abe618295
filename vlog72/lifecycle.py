"""
Expiration rules for vlogs.

A vlog is active while ``now < expires_at``. Expiry is never written to the
database: everything here derives it from the stored ``expires_at`` and the
caller's clock. ``is_active`` and ``active_clause`` are the Python and SQL
spellings of the same predicate and must stay in step.
"""
from datetime import datetime, timedelta, timezone

from .models.vlogs import Vlog

VLOG_LIFETIME = timedelta(hours=72)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def expiry_from(now: datetime) -> datetime:
    return now + VLOG_LIFETIME


def is_active(vlog, now: datetime) -> bool:
    return now < vlog.expires_at


def active_clause(now: datetime):
    return Vlog.expires_at > now


def expired_clause(now: datetime):
    return Vlog.expires_at <= now


def can_view(vlog, viewer_id: int, now: datetime) -> bool:
    """
    Owners always see their vlogs. Everyone else only sees active ones;
    restricting the feed to followed creators is the feed query's job.
    """
    if viewer_id == vlog.user_id:
        return True
    return is_active(vlog, now)


def seconds_left(vlog, now: datetime) -> int:
    if not is_active(vlog, now):
        return 0
    return int((vlog.expires_at - now).total_seconds())
