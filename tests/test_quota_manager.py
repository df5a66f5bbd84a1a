"""
Tests for the quota manager: persistence, rollover and concurrency.
"""
import gc
import json
import threading
import time
from datetime import date, timedelta
from unittest.mock import patch

import pytest

from membership_portal.errors import InvalidTierError, PersistenceFailure, UserNotFoundError
from membership_portal.quota.factory import create_quota_module
from membership_portal.quota.models import ContentType, MembershipTier
from membership_portal.user_management.models import UserRecord, UserRole, UserStore

TODAY = date(2025, 3, 14)


class FakeClock:
    """Mutable "today" for tests."""

    def __init__(self, today):
        self.today = today

    def __call__(self):
        return self.today


class SlowUserStore(UserStore):
    """Widens the window between reading and writing a document."""

    def load(self, uid):
        record = super().load(uid)
        time.sleep(0.05)
        return record


@pytest.fixture()
def clock():
    return FakeClock(TODAY)


@pytest.fixture()
def store(tmp_path):
    return UserStore(tmp_path / "user_data")


@pytest.fixture()
def manager(store, clock):
    return create_quota_module(user_store=store, today_provider=clock)["manager"]


def add_user(store, tier=MembershipTier.TIER_1, today=TODAY, role=UserRole.USER):
    user = UserRecord.create(
        email=f"{tier.value.lower()}-{role.value}@example.com",
        name="Reader",
        today=today,
        membership_tier=tier,
        role=role,
    )
    store.save(user)
    return user.uid


class TestScenarios:
    """End-to-end quota flows through the manager."""

    def test_scenario_a_daily_article_limit(self, manager, store):
        uid = add_user(store)

        first = manager.check_and_record(uid, ContentType.ARTICLE, "a1")
        assert first.allowed and first.used_today == 1

        again = manager.check_and_record(uid, ContentType.ARTICLE, "a1")
        assert again.allowed and again.already_counted
        assert again.used_today == 1

        assert manager.check_and_record(uid, ContentType.ARTICLE, "a2").allowed
        third = manager.check_and_record(uid, ContentType.ARTICLE, "a3")
        assert third.allowed and third.used_today == 3

        denied = manager.check_and_record(uid, ContentType.ARTICLE, "a4")
        assert denied.allowed is False
        assert "3/3" in denied.reason

        assert manager.check_and_record(uid, ContentType.ARTICLE, "a1").allowed

        ledger = store.load(uid).ledger
        assert ledger.articles_accessed_today == {"a1", "a2", "a3"}
        assert ledger.daily_article_count == 3
        assert ledger.lifetime_articles_read == 3

    def test_scenario_b_rollover_restores_quota(self, manager, store, clock):
        uid = add_user(store, today=TODAY - timedelta(days=1))
        clock.today = TODAY - timedelta(days=1)
        for content_id in ("a1", "a2", "a3"):
            assert manager.check_and_record(uid, ContentType.ARTICLE, content_id).allowed
        assert not manager.check_and_record(uid, ContentType.ARTICLE, "a4").allowed

        clock.today = TODAY
        decision = manager.check_and_record(uid, ContentType.ARTICLE, "a4")

        assert decision.allowed is True
        assert decision.already_counted is False
        assert decision.used_today == 1
        ledger = store.load(uid).ledger
        assert ledger.last_rollover_date == TODAY
        assert ledger.articles_accessed_today == {"a4"}
        assert ledger.lifetime_articles_read == 4

    def test_unlimited_tier_still_tracks_usage(self, manager, store):
        uid = add_user(store, tier=MembershipTier.TIER_3)

        for i in range(25):
            assert manager.check_and_record(uid, ContentType.VIDEO, f"v{i}").allowed
        manager.check_and_record(uid, ContentType.VIDEO, "v0")

        ledger = store.load(uid).ledger
        assert ledger.daily_video_count == 25
        assert ledger.lifetime_videos_watched == 25

    def test_tier_downgrade_keeps_counted_content(self, manager, store):
        uid = add_user(store, tier=MembershipTier.TIER_2)
        for i in range(5):
            manager.check_and_record(uid, ContentType.ARTICLE, f"a{i}")

        user = store.load(uid)
        user.membership_tier = MembershipTier.TIER_1.value
        store.save(user)

        assert manager.check_and_record(uid, ContentType.ARTICLE, "a4").allowed
        denied = manager.check_and_record(uid, ContentType.ARTICLE, "new")
        assert denied.allowed is False
        assert "5/3" in denied.reason
        assert store.load(uid).ledger.daily_article_count == 5


class TestPersistence:
    """Test durable writes and failure propagation."""

    def test_repeat_view_does_not_rewrite_document(self, manager, store):
        uid = add_user(store)
        manager.check_and_record(uid, ContentType.ARTICLE, "a1")

        with patch.object(store, "save", wraps=store.save) as save:
            manager.check_and_record(uid, ContentType.ARTICLE, "a1")
            save.assert_not_called()

    def test_denied_view_does_not_write(self, manager, store):
        uid = add_user(store)
        for content_id in ("a1", "a2", "a3"):
            manager.check_and_record(uid, ContentType.ARTICLE, content_id)

        with patch.object(store, "save", wraps=store.save) as save:
            manager.check_and_record(uid, ContentType.ARTICLE, "a4")
            save.assert_not_called()

    def test_rollover_is_persisted_once(self, manager, store, clock):
        uid = add_user(store, today=TODAY - timedelta(days=2))

        with patch.object(store, "save", wraps=store.save) as save:
            manager.check_and_record(uid, ContentType.ARTICLE, "a1")
            manager.check_and_record(uid, ContentType.ARTICLE, "a1")
            assert save.call_count == 1

    def test_write_failure_propagates(self, manager, store):
        uid = add_user(store)
        user_file = store.user_data_dir / f"{uid}.json"
        before = user_file.read_text(encoding="utf-8")

        with patch("membership_portal.user_management.models.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceFailure):
                manager.check_and_record(uid, ContentType.ARTICLE, "a1")

        assert user_file.read_text(encoding="utf-8") == before
        assert store.load(uid).ledger.daily_article_count == 0
        assert list(store.user_data_dir.glob("*.tmp")) == []

    def test_corrupt_document_is_a_persistence_failure(self, manager, store):
        uid = add_user(store)
        (store.user_data_dir / f"{uid}.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceFailure):
            manager.check_and_record(uid, ContentType.ARTICLE, "a1")

    def test_invalid_tier_in_document_fails_fast(self, manager, store):
        uid = add_user(store)
        path = store.user_data_dir / f"{uid}.json"
        doc = json.loads(path.read_text(encoding="utf-8"))
        doc["membership_tier"] = "TYPE_GOLD"
        path.write_text(json.dumps(doc), encoding="utf-8")

        with pytest.raises(InvalidTierError):
            manager.check_and_record(uid, ContentType.ARTICLE, "a1")
        assert store.load(uid).ledger.daily_article_count == 0

    def test_unknown_user(self, manager):
        with pytest.raises(UserNotFoundError):
            manager.check_and_record("nobody", ContentType.ARTICLE, "a1")


class TestConcurrency:
    """Concurrent requests from the same user."""

    def test_last_unit_is_spent_once(self, tmp_path, clock):
        store = SlowUserStore(tmp_path / "user_data")
        manager = create_quota_module(user_store=store, today_provider=clock)["manager"]
        uid = add_user(store)
        manager.check_and_record(uid, ContentType.ARTICLE, "a1")
        manager.check_and_record(uid, ContentType.ARTICLE, "a2")

        barrier = threading.Barrier(2)
        results = {}

        def view(content_id):
            barrier.wait()
            results[content_id] = manager.check_and_record(uid, ContentType.ARTICLE, content_id)

        threads = [threading.Thread(target=view, args=(cid,)) for cid in ("x", "y")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        allowed = [cid for cid, decision in results.items() if decision.allowed]
        assert len(allowed) == 1
        ledger = store.load(uid).ledger
        assert ledger.daily_article_count == 3
        assert ledger.articles_accessed_today == {"a1", "a2", allowed[0]}

    def test_many_parallel_views_never_exceed_limit(self, tmp_path, clock):
        store = UserStore(tmp_path / "user_data")
        manager = create_quota_module(user_store=store, today_provider=clock)["manager"]
        uid = add_user(store, tier=MembershipTier.TIER_2)

        barrier = threading.Barrier(20)
        allowed = []
        allowed_lock = threading.Lock()

        def view(content_id):
            barrier.wait()
            if manager.check_and_record(uid, ContentType.VIDEO, content_id).allowed:
                with allowed_lock:
                    allowed.append(content_id)

        threads = [threading.Thread(target=view, args=(f"v{i}",)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(allowed) == 10
        assert store.load(uid).ledger.videos_accessed_today == set(allowed)

    def test_users_do_not_share_locks(self, store):
        assert store.lock("alice") is store.lock("alice")
        assert store.lock("alice") is not store.lock("bob")

    def test_held_lock_is_shared(self, store):
        held = store.lock("alice")
        with held:
            assert store.lock("alice") is held

    def test_lock_registry_is_bounded(self, store):
        for i in range(100):
            with store.lock(f"user{i}"):
                pass
        gc.collect()

        assert len(store._locks) == 0


class TestQuotaInfo:
    """Status reporting never mutates the ledger."""

    def test_quota_info_on_stale_ledger(self, manager, store, clock):
        uid = add_user(store, today=TODAY - timedelta(days=1))
        clock.today = TODAY - timedelta(days=1)
        manager.check_and_record(uid, ContentType.ARTICLE, "a1")
        clock.today = TODAY

        info = manager.get_quota_info(uid)

        assert info["tier"] == "TIER_1"
        assert info["date"] == TODAY.isoformat()
        assert info["article"] == {"daily_limit": 3, "used_today": 0, "remaining": 3, "is_unlimited": False}
        # Not persisted: the stored ledger still belongs to yesterday
        assert store.load(uid).ledger.last_rollover_date == TODAY - timedelta(days=1)

    def test_quota_info_single_type(self, manager, store):
        uid = add_user(store)
        manager.check_and_record(uid, ContentType.VIDEO, "v1")

        info = manager.get_quota_info(uid, ContentType.VIDEO)

        assert "article" not in info
        assert info["video"]["used_today"] == 1
        assert info["video"]["remaining"] == 2

    def test_quota_info_unlimited_and_admin(self, manager, store):
        unlimited_uid = add_user(store, tier=MembershipTier.TIER_3)
        admin_uid = add_user(store, role=UserRole.ADMIN)

        assert manager.get_quota_info(unlimited_uid)["article"]["is_unlimited"] is True
        assert manager.get_quota_info(admin_uid)["video"]["is_unlimited"] is True

    def test_usage_stats(self, manager, store, clock):
        uid = add_user(store)
        manager.check_and_record(uid, ContentType.ARTICLE, "a1")
        manager.check_and_record(uid, ContentType.VIDEO, "v1")
        clock.today = TODAY + timedelta(days=1)
        manager.check_and_record(uid, ContentType.ARTICLE, "a2")

        stats = manager.get_usage_stats(uid)

        assert stats["articles_read"] == 2
        assert stats["videos_watched"] == 1
        assert stats["articles_today"] == 1
        assert stats["videos_today"] == 0
