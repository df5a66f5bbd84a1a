"""
Factory for creating quota management components.
"""

from datetime import date
from typing import Any, Callable, Dict, Mapping, Optional

from .manager import QuotaManager
from .policy import MembershipPolicy


def create_quota_module(
    user_store,
    membership_limits: Optional[Mapping[str, Mapping[str, Any]]] = None,
    today_provider: Callable[[], date] = date.today,
) -> Dict[str, Any]:
    """
    Create quota management module.

    Args:
        user_store: Store holding the user documents (and their ledgers)
        membership_limits: Tier limits from configuration; defaults to the built-in table
        today_provider: Returns the current calendar day

    Returns:
        Dictionary with:
        - manager: QuotaManager instance
        - policy: MembershipPolicy instance
    """
    if membership_limits is None:
        policy = MembershipPolicy.default()
    else:
        policy = MembershipPolicy.from_config(membership_limits)

    manager = QuotaManager(
        policy=policy,
        user_store=user_store,
        today_provider=today_provider,
    )

    return {
        "manager": manager,
        "policy": policy,
    }
