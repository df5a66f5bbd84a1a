"""
Tests for the membership policy table.
"""
import pytest

from membership_portal.errors import InvalidTierError
from membership_portal.quota.models import MembershipTier, ContentType, UNLIMITED
from membership_portal.quota.policy import MembershipPolicy, parse_limit, DEFAULT_LIMITS


class TestParseLimit:
    """Test parsing of configured limits."""

    @pytest.mark.parametrize("value", ["unlimited", "UNLIMITED", " Unlimited ", None, -1, "-1"])
    def test_unlimited_spellings(self, value):
        assert parse_limit(value) == UNLIMITED

    @pytest.mark.parametrize("value,expected", [(0, 0), (3, 3), ("10", 10)])
    def test_integer_limits(self, value, expected):
        assert parse_limit(value) == expected

    @pytest.mark.parametrize("value", [-2, "abc", 2.5, True, [3]])
    def test_invalid_limits(self, value):
        with pytest.raises(ValueError):
            parse_limit(value)


class TestMembershipPolicy:
    """Test limit lookups."""

    def setup_method(self):
        self.policy = MembershipPolicy.default()

    def test_default_table(self):
        assert self.policy.limit_for(MembershipTier.TIER_1, ContentType.ARTICLE) == 3
        assert self.policy.limit_for(MembershipTier.TIER_1, ContentType.VIDEO) == 3
        assert self.policy.limit_for(MembershipTier.TIER_2, ContentType.ARTICLE) == 10
        assert self.policy.limit_for(MembershipTier.TIER_2, ContentType.VIDEO) == 10
        assert self.policy.limit_for(MembershipTier.TIER_3, ContentType.ARTICLE) == UNLIMITED
        assert self.policy.limit_for(MembershipTier.TIER_3, ContentType.VIDEO) == UNLIMITED

    def test_accepts_tier_names(self):
        assert self.policy.limit_for("TIER_2", ContentType.VIDEO) == 10

    def test_unknown_tier_fails_fast(self):
        with pytest.raises(InvalidTierError) as exc_info:
            self.policy.limit_for("TYPE_Z", ContentType.ARTICLE)
        assert exc_info.value.tier == "TYPE_Z"

    def test_tier_missing_from_table(self):
        policy = MembershipPolicy.from_config({"TIER_1": {"article": 1, "video": 2}})
        assert policy.limit_for(MembershipTier.TIER_1, ContentType.VIDEO) == 2
        with pytest.raises(InvalidTierError):
            policy.limit_for(MembershipTier.TIER_3, ContentType.VIDEO)

    def test_config_with_unknown_tier_rejected(self):
        with pytest.raises(ValueError, match="Unknown membership tier"):
            MembershipPolicy.from_config({"GOLD": {"article": 1, "video": 1}})

    def test_config_missing_content_type_rejected(self):
        with pytest.raises(ValueError, match="video"):
            MembershipPolicy.from_config({"TIER_1": {"article": 1}})

    def test_to_dict_round_trips_default_table(self):
        assert self.policy.to_dict() == DEFAULT_LIMITS

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            self.policy._limits[MembershipTier.TIER_1] = None
