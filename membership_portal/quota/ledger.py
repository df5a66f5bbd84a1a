"""
Day rollover and access recording for the per-user access ledger.

Both operations are pure: they take "today" explicitly and return a new
ledger, leaving the input untouched. Persisting the result is the caller's job.
"""

import logging
from datetime import date, datetime

from .models import AccessLedger, ContentType

logger = logging.getLogger(__name__)


def _as_day(value: date) -> date:
    # datetime is a subclass of date; compare calendar days only
    if isinstance(value, datetime):
        return value.date()
    return value


def reconcile(ledger: AccessLedger, today: date) -> AccessLedger:
    """
    Reset the ledger if it belongs to a different calendar day.

    Days are compared by calendar date, not elapsed time: 23:59 and 00:01
    the next minute are different days. Lifetime counters survive.

    Args:
        ledger: Ledger as loaded from the user document
        today: The current calendar day

    Returns:
        The same ledger if it is already dated today, else a fresh one
    """
    today = _as_day(today)
    if _as_day(ledger.last_rollover_date) == today:
        return ledger

    logger.debug(
        f"Ledger rollover {ledger.last_rollover_date} -> {today}: "
        f"dropping {ledger.daily_article_count} articles, {ledger.daily_video_count} videos"
    )
    return AccessLedger(
        last_rollover_date=today,
        lifetime_articles_read=ledger.lifetime_articles_read,
        lifetime_videos_watched=ledger.lifetime_videos_watched,
    )


def record_access(
    ledger: AccessLedger,
    content_type: ContentType,
    content_id: str,
    today: date,
) -> AccessLedger:
    """
    Count a content item against today's quota.

    Recording the same item twice on one day is a no-op.

    Args:
        ledger: Current ledger
        content_type: Article or video
        content_id: Id of the viewed item
        today: The current calendar day

    Returns:
        Updated ledger
    """
    today = _as_day(today)
    ledger = reconcile(ledger, today)
    content_id = str(content_id)

    if ledger.has_accessed(content_type, content_id):
        return ledger

    updated = ledger.clone()
    updated.accessed_today(content_type).add(content_id)
    if content_type == ContentType.ARTICLE:
        updated.lifetime_articles_read += 1
    else:
        updated.lifetime_videos_watched += 1
    updated.last_rollover_date = today
    return updated
