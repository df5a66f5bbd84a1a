"""
Quota manager: serializes evaluate + record + persist per user.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, Optional

from .evaluator import can_access
from .ledger import reconcile, record_access
from .models import AccessDecision, ContentType, UNLIMITED
from .policy import MembershipPolicy

logger = logging.getLogger(__name__)


class QuotaManager:
    """
    Applies the daily quota to content detail views.

    The ledger lives in the user document. Every read-modify-write of that
    document happens under the user's lock from the store, so two requests
    from one user can never both spend the last unit of quota.
    """

    def __init__(
        self,
        policy: MembershipPolicy,
        user_store,
        today_provider: Callable[[], date] = date.today,
    ):
        """
        Initialize QuotaManager.

        Args:
            policy: Membership policy table
            user_store: Store providing load/save/lock for user documents
            today_provider: Returns the current calendar day
        """
        self.policy = policy
        self.user_store = user_store
        self.today_provider = today_provider

    def today(self) -> date:
        return self.today_provider()

    def check_and_record(self, uid: str, content_type: ContentType, content_id: str) -> AccessDecision:
        """
        Main entry point - evaluate access and count the item if allowed.

        Args:
            uid: User ID
            content_type: Article or video
            content_id: Id of the requested item

        Returns:
            AccessDecision; denial is a normal result

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidTierError: If the user's tier is not in the policy table
            PersistenceFailure: If the ledger could not be written
        """
        content_id = str(content_id)
        with self.user_store.lock(uid):
            user = self.user_store.load(uid)
            today = self.today()
            reconciled = reconcile(user.ledger, today)

            decision = can_access(
                reconciled, user.membership_tier, content_type, content_id, today, self.policy
            )
            logger.info(
                f"Quota check: uid={uid}, tier={user.membership_tier}, "
                f"{content_type.value}={content_id}, allowed={decision.allowed}, "
                f"used={decision.used_today}/{decision.daily_limit if decision.daily_limit is not None else 'unlimited'}"
            )

            if decision.allowed and not decision.already_counted:
                updated = record_access(reconciled, content_type, content_id, today)
            else:
                updated = reconciled

            if updated != user.ledger:
                user.ledger = updated
                user.touch()
                self.user_store.save(user)
                if updated is not reconciled:
                    logger.info(
                        f"Recorded {content_type.value} {content_id} for {uid}: "
                        f"{updated.daily_count(content_type)} today"
                    )

            return replace(decision, used_today=updated.daily_count(content_type))

    def get_quota_info(self, uid: str, content_type: Optional[ContentType] = None) -> dict:
        """
        Get quota status for display. Never mutates the ledger.

        Args:
            uid: User ID
            content_type: Limit the report to one content type

        Returns dict with:
        - tier: Membership tier name
        - date: Day the counts refer to
        - article / video: {daily_limit, used_today, remaining, is_unlimited}
        """
        user = self.user_store.load(uid)
        tier = self.policy.resolve_tier(user.membership_tier)
        ledger = reconcile(user.ledger, self.today())

        info = {
            "tier": tier.value,
            "date": ledger.last_rollover_date.isoformat(),
        }
        types = [content_type] if content_type else list(ContentType)
        for ct in types:
            limit = self.policy.limit_for(tier, ct)
            used = ledger.daily_count(ct)
            if user.is_admin or limit == UNLIMITED:
                info[ct.value] = {
                    "daily_limit": None,
                    "used_today": used,
                    "remaining": None,
                    "is_unlimited": True,
                }
            else:
                info[ct.value] = {
                    "daily_limit": limit,
                    "used_today": used,
                    "remaining": max(0, limit - used),
                    "is_unlimited": False,
                }
        return info

    def get_usage_stats(self, uid: str) -> dict:
        """Lifetime and today's usage counts for a user."""
        user = self.user_store.load(uid)
        ledger = reconcile(user.ledger, self.today())
        return {
            "articles_read": ledger.lifetime_articles_read,
            "videos_watched": ledger.lifetime_videos_watched,
            "articles_today": ledger.daily_article_count,
            "videos_today": ledger.daily_video_count,
            "date": ledger.last_rollover_date.isoformat(),
        }
