"""
Content services for loading and rendering articles and videos.
"""
import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import markdown
from pydantic import ValidationError

from membership_portal.quota.models import ContentType
from .models import Article, Video

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

ContentItem = Union[Article, Video]

_MODELS = {
    ContentType.ARTICLE: Article,
    ContentType.VIDEO: Video,
}

_SUBDIRS = {
    ContentType.ARTICLE: "articles",
    ContentType.VIDEO: "videos",
}


class ContentLoader:
    """Loads content documents from <content_dir>/articles and <content_dir>/videos."""

    def __init__(self, content_dir: Path):
        self.content_dir = Path(content_dir)
        for subdir in _SUBDIRS.values():
            (self.content_dir / subdir).mkdir(parents=True, exist_ok=True)

    def _item_file(self, content_type: ContentType, content_id: str) -> Path:
        return self.content_dir / _SUBDIRS[content_type] / f"{content_id}.json"

    def _read(self, path: Path, content_type: ContentType) -> Optional[ContentItem]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading {content_type.value} {path.name}: {e}")
            return None
        data.setdefault("id", path.stem)
        try:
            return _MODELS[content_type].model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid {content_type.value} document {path.name}: {e}")
            return None

    def load(self, content_type: ContentType, content_id: str) -> Optional[ContentItem]:
        """Load a published item, or None if it is missing, invalid or unpublished."""
        if not content_id or not _ID_PATTERN.match(content_id):
            return None
        item = self._read(self._item_file(content_type, content_id), content_type)
        if item is None or not item.is_published:
            return None
        return item

    def list_published(self, content_type: ContentType) -> List[ContentItem]:
        """All published items, newest first."""
        items = []
        for path in (self.content_dir / _SUBDIRS[content_type]).glob("*.json"):
            item = self._read(path, content_type)
            if item is not None and item.is_published:
                items.append(item)
        items.sort(key=lambda i: (i.published_at or "", i.id), reverse=True)
        return items

    def save(self, content_type: ContentType, item: ContentItem) -> None:
        """Write a content document (used by seeding and tests)."""
        path = self._item_file(content_type, item.id)
        path.write_text(
            json.dumps(item.model_dump(mode="json"), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )


class ContentRenderer:
    """Service for rendering content payloads."""

    def render_markdown(self, md_text: str) -> str:
        """Convert Markdown → HTML."""
        return markdown.markdown(
            md_text,
            extensions=[
                "fenced_code",
                "tables",
                "toc",
                "attr_list",
            ],
        )

    def render(self, item: ContentItem) -> Dict:
        """Detail payload for an article or video."""
        payload = item.model_dump(mode="json")
        if isinstance(item, Article):
            payload["html_content"] = self.render_markdown(item.content)
        return payload
