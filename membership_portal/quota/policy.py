"""
Membership policy table: tier -> daily allowance per content type.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Union

from membership_portal.errors import InvalidTierError
from .models import MembershipTier, ContentType, UNLIMITED


DEFAULT_LIMITS: Dict[str, Dict[str, Any]] = {
    "TIER_1": {"article": 3, "video": 3},
    "TIER_2": {"article": 10, "video": 10},
    "TIER_3": {"article": "unlimited", "video": "unlimited"},
}


def parse_limit(value: Any) -> int:
    """
    Parse a configured daily limit.

    Accepts a non-negative integer, or "unlimited" / -1 / None for no cap.

    Raises:
        ValueError: If the value is not a valid limit
    """
    if value is None or value == UNLIMITED:
        return UNLIMITED
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "unlimited":
            return UNLIMITED
        value = text
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"Invalid daily limit: {value!r}")
    try:
        limit = int(value)
    except ValueError:
        raise ValueError(f"Invalid daily limit: {value!r}")
    if limit == UNLIMITED:
        return UNLIMITED
    if limit < 0:
        raise ValueError(f"Daily limit must be >= 0, got {limit}")
    return limit


@dataclass(frozen=True)
class TierLimits:
    """Daily allowance of one tier."""
    article: int
    video: int

    def for_type(self, content_type: ContentType) -> int:
        if content_type == ContentType.ARTICLE:
            return self.article
        return self.video


class MembershipPolicy:
    """Read-only mapping from tier to daily allowances."""

    def __init__(self, limits: Mapping[MembershipTier, TierLimits]):
        self._limits = MappingProxyType(dict(limits))

    @classmethod
    def from_config(cls, config: Mapping[str, Mapping[str, Any]]) -> "MembershipPolicy":
        """
        Build a policy from the "membership" configuration section.

        Args:
            config: {"TIER_1": {"article": 3, "video": 3}, ...}

        Raises:
            ValueError: On unknown tier names or malformed limits
        """
        limits = {}
        for tier_name, values in config.items():
            try:
                tier = MembershipTier(tier_name)
            except ValueError:
                raise ValueError(f"Unknown membership tier in config: {tier_name!r}")
            missing = [ct.value for ct in ContentType if ct.value not in values]
            if missing:
                raise ValueError(f"Tier {tier_name} is missing limits for: {', '.join(missing)}")
            limits[tier] = TierLimits(
                article=parse_limit(values["article"]),
                video=parse_limit(values["video"]),
            )
        return cls(limits)

    @classmethod
    def default(cls) -> "MembershipPolicy":
        return cls.from_config(DEFAULT_LIMITS)

    def resolve_tier(self, tier: Union[MembershipTier, str]) -> MembershipTier:
        """
        Resolve a stored tier value against the table.

        Raises:
            InvalidTierError: If the tier is unknown or has no entry in the table
        """
        if not isinstance(tier, MembershipTier):
            try:
                tier = MembershipTier(tier)
            except ValueError:
                raise InvalidTierError(tier)
        if tier not in self._limits:
            raise InvalidTierError(tier.value)
        return tier

    def limit_for(self, tier: Union[MembershipTier, str], content_type: ContentType) -> int:
        """Daily limit for a tier and content type, or UNLIMITED."""
        return self._limits[self.resolve_tier(tier)].for_type(content_type)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization ("unlimited" for no cap)."""
        result = {}
        for tier, limits in self._limits.items():
            result[tier.value] = {
                ct.value: ("unlimited" if limits.for_type(ct) == UNLIMITED else limits.for_type(ct))
                for ct in ContentType
            }
        return result
