"""
Migration of legacy user documents to the canonical ledger shape.

Older exports keep quota state in one of these shapes:

- plain counters: {"dailyArticlesAccessed": 2, "lastAccessDate": "..."}
- timestamped entries: {"accessedContentToday": {"articles": [{"contentId": "a1", "accessDate": "..."}]}}
- bare id lists: {"accessedContentToday": {"articles": ["a1", "a2"]}}

All of them become a single "ledger" object. Only entries dated on the
document's last access day are kept; counters without ids cannot be turned
into id sets and are dropped (the user starts that day with a fresh quota).
"""
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Set, Tuple

from pydantic import ValidationError

from membership_portal.errors import PersistenceFailure
from .models import UserRecord, UserStore

logger = logging.getLogger(__name__)

LEGACY_TIERS = {
    "TYPE_A": "TIER_1",
    "TYPE_B": "TIER_2",
    "TYPE_C": "TIER_3",
}

LEGACY_KEYS = (
    "_id", "__v", "password", "membershipTier", "isActive", "createdAt", "updatedAt",
    "articlesRead", "videosWatched", "dailyArticlesAccessed", "dailyVideosAccessed",
    "lastAccessDate", "accessedContentToday", "socialProvider", "socialId", "avatar",
)


def _parse_day(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, dict):
        # Mongo extended JSON: {"$date": "..."}
        value = value.get("$date")
        if not value:
            return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None


def _collect_ids(entries: Any, day: date) -> Set[str]:
    ids = set()
    if not isinstance(entries, list):
        return ids
    for entry in entries:
        if isinstance(entry, dict):
            content_id = entry.get("contentId")
            if content_id and _parse_day(entry.get("accessDate")) == day:
                ids.add(str(content_id))
        elif entry:
            ids.add(str(entry))
    return ids


def migrate_user_document(doc: Dict[str, Any], uid: str, today: date) -> Tuple[Dict[str, Any], bool]:
    """
    Convert one user document to the canonical shape.

    Args:
        doc: Raw JSON document
        uid: User id (the document file stem)
        today: Day used for documents without any access date

    Returns:
        Tuple of (document, changed)
    """
    if isinstance(doc.get("ledger"), dict):
        return doc, False

    day = _parse_day(doc.get("lastAccessDate")) or today
    accessed = doc.get("accessedContentToday") or {}
    articles = _collect_ids(accessed.get("articles"), day)
    videos = _collect_ids(accessed.get("videos"), day)

    dropped = (
        max(0, int(doc.get("dailyArticlesAccessed") or 0) - len(articles))
        + max(0, int(doc.get("dailyVideosAccessed") or 0) - len(videos))
    )
    if dropped:
        logger.info(f"{uid}: {dropped} counted accesses have no content ids and were dropped")

    now = datetime.now().astimezone().isoformat(timespec="seconds")
    migrated = {k: v for k, v in doc.items() if k not in LEGACY_KEYS}
    migrated["uid"] = uid
    migrated.setdefault("email", "")
    migrated.setdefault("name", "")
    if doc.get("password") and not migrated.get("password_hash"):
        migrated["password_hash"] = doc["password"]
    if "membership_tier" not in migrated:
        legacy_tier = doc.get("membershipTier", "TYPE_A")
        migrated["membership_tier"] = LEGACY_TIERS.get(legacy_tier, legacy_tier)
    migrated.setdefault("role", "user")
    migrated.setdefault("is_active", doc.get("isActive", True))
    migrated.setdefault("created_at", str(doc.get("createdAt") or now))
    migrated.setdefault("updated_at", now)
    migrated["ledger"] = {
        "last_rollover_date": day.isoformat(),
        "articles_accessed_today": sorted(articles),
        "videos_accessed_today": sorted(videos),
        "lifetime_articles_read": max(int(doc.get("articlesRead") or 0), len(articles)),
        "lifetime_videos_watched": max(int(doc.get("videosWatched") or 0), len(videos)),
    }
    return migrated, True


def migrate_ledgers(user_data_dir: Path, dry_run: bool = False, today: date = None) -> dict:
    """
    Migrate every user document under user_data_dir.

    Returns:
        Migration result dict with statistics
    """
    today = today or date.today()
    store = UserStore(user_data_dir)
    result = {
        "migrated_entries": 0,
        "skipped_entries": 0,
        "errors": []
    }

    for path in sorted(Path(user_data_dir).glob("*.json")):
        uid = path.stem
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            result["errors"].append(f"{path.name}: {e}")
            continue

        migrated, changed = migrate_user_document(doc, uid, today)
        if not changed:
            result["skipped_entries"] += 1
            continue

        try:
            record = UserRecord.model_validate(migrated)
        except ValidationError as e:
            result["errors"].append(f"{path.name}: {e}")
            continue

        if not dry_run:
            with store.lock(uid):
                try:
                    store.save(record)
                except PersistenceFailure as e:
                    result["errors"].append(f"{path.name}: {e}")
                    continue
        result["migrated_entries"] += 1

    return result
