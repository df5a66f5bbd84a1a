"""
Daily content-access quota engine.
Rations article and video detail views per membership tier, per calendar day.
"""

from .models import MembershipTier, ContentType, AccessLedger, AccessDecision, UNLIMITED
from .policy import MembershipPolicy
from .manager import QuotaManager

__all__ = [
    "MembershipTier",
    "ContentType",
    "AccessLedger",
    "AccessDecision",
    "UNLIMITED",
    "MembershipPolicy",
    "QuotaManager",
]
