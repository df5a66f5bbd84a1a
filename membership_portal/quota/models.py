"""
Data models for the daily content-access quota engine.
"""

from enum import Enum
from dataclasses import dataclass
from datetime import date
from typing import Optional, Set, List

from pydantic import BaseModel, Field, computed_field, field_serializer

# Sentinel allowance meaning no daily cap is enforced
UNLIMITED = -1

DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"


class MembershipTier(Enum):
    """Membership levels that determine daily content allowances."""
    TIER_1 = "TIER_1"
    TIER_2 = "TIER_2"
    TIER_3 = "TIER_3"


class ContentType(Enum):
    """Kinds of content rationed by the quota."""
    ARTICLE = "article"
    VIDEO = "video"


class AccessLedger(BaseModel):
    """Per-user record of today's content access.

    The daily counts are derived from the accessed-id sets, so they always
    equal the set cardinality. They are still written out with the document
    for cheap reads by other consumers; on load the stored values are ignored.
    """
    last_rollover_date: date = Field(description="Calendar day the sets belong to")
    articles_accessed_today: Set[str] = Field(default_factory=set, description="Article ids counted today")
    videos_accessed_today: Set[str] = Field(default_factory=set, description="Video ids counted today")
    lifetime_articles_read: int = Field(default=0, ge=0, description="Total articles ever counted")
    lifetime_videos_watched: int = Field(default=0, ge=0, description="Total videos ever counted")

    @computed_field
    @property
    def daily_article_count(self) -> int:
        return len(self.articles_accessed_today)

    @computed_field
    @property
    def daily_video_count(self) -> int:
        return len(self.videos_accessed_today)

    @field_serializer("articles_accessed_today", "videos_accessed_today")
    def _serialize_ids(self, ids: Set[str]) -> List[str]:
        return sorted(ids)

    @classmethod
    def new(cls, today: date) -> "AccessLedger":
        """Create an empty ledger dated today."""
        return cls(last_rollover_date=today)

    def accessed_today(self, content_type: ContentType) -> Set[str]:
        if content_type == ContentType.ARTICLE:
            return self.articles_accessed_today
        return self.videos_accessed_today

    def daily_count(self, content_type: ContentType) -> int:
        return len(self.accessed_today(content_type))

    def has_accessed(self, content_type: ContentType, content_id: str) -> bool:
        return str(content_id) in self.accessed_today(content_type)

    def clone(self) -> "AccessLedger":
        """Copy with independent id sets."""
        return self.model_copy(update={
            "articles_accessed_today": set(self.articles_accessed_today),
            "videos_accessed_today": set(self.videos_accessed_today),
        })


@dataclass
class AccessDecision:
    """Result of a quota evaluation."""
    allowed: bool
    content_type: ContentType
    tier: Optional[MembershipTier] = None
    reason: Optional[str] = None  # User-facing message when denied
    code: Optional[str] = None  # Machine-readable denial code
    already_counted: bool = False  # Content was already counted today (free re-view)
    daily_limit: Optional[int] = None  # None when the tier is unlimited
    used_today: int = 0

    @property
    def is_unlimited(self) -> bool:
        return self.daily_limit is None

    @property
    def remaining(self) -> Optional[int]:
        if self.daily_limit is None:
            return None
        return max(0, self.daily_limit - self.used_today)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "allowed": self.allowed,
            "content_type": self.content_type.value,
            "tier": self.tier.value if self.tier else None,
            "reason": self.reason,
            "code": self.code,
            "already_counted": self.already_counted,
            "daily_limit": self.daily_limit,
            "used_today": self.used_today,
            "remaining": self.remaining,
            "is_unlimited": self.is_unlimited,
        }
