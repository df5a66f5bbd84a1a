"""
Quota evaluation: decides whether a user may open a content item.
"""

from datetime import date
from typing import Union

from .ledger import reconcile
from .models import (
    AccessLedger,
    AccessDecision,
    ContentType,
    MembershipTier,
    UNLIMITED,
    DAILY_LIMIT_REACHED,
)
from .policy import MembershipPolicy


def limit_reached_message(content_type: ContentType, used: int, limit: int) -> str:
    return (
        f"Daily {content_type.value} limit reached ({used}/{limit}). "
        "Try again tomorrow or upgrade your membership."
    )


def can_access(
    ledger: AccessLedger,
    tier: Union[MembershipTier, str],
    content_type: ContentType,
    content_id: str,
    today: date,
    policy: MembershipPolicy,
) -> AccessDecision:
    """
    Decide whether the content item may be opened today.

    Content already counted today is always free to re-open, even when the
    quota is exhausted. Denial is returned, never raised.

    Raises:
        InvalidTierError: If the tier is not in the policy table
    """
    resolved_tier = policy.resolve_tier(tier)
    ledger = reconcile(ledger, today)
    used = ledger.daily_count(content_type)
    limit = policy.limit_for(resolved_tier, content_type)
    daily_limit = None if limit == UNLIMITED else limit

    if ledger.has_accessed(content_type, content_id):
        return AccessDecision(
            allowed=True,
            content_type=content_type,
            tier=resolved_tier,
            already_counted=True,
            daily_limit=daily_limit,
            used_today=used,
        )

    if limit == UNLIMITED or used < limit:
        return AccessDecision(
            allowed=True,
            content_type=content_type,
            tier=resolved_tier,
            daily_limit=daily_limit,
            used_today=used,
        )

    return AccessDecision(
        allowed=False,
        content_type=content_type,
        tier=resolved_tier,
        reason=limit_reached_message(content_type, used, limit),
        code=DAILY_LIMIT_REACHED,
        daily_limit=daily_limit,
        used_today=used,
    )
