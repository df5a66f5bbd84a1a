"""
Tests for content loading and rendering.
"""
import shutil
import tempfile
from pathlib import Path

from membership_portal.content.models import Article, Video
from membership_portal.content.services import ContentLoader, ContentRenderer
from membership_portal.quota.models import ContentType


class TestContentLoader:
    """Test reading content documents from disk."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.loader = ContentLoader(self.temp_dir / "content")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_creates_subdirectories(self):
        assert (self.temp_dir / "content" / "articles").is_dir()
        assert (self.temp_dir / "content" / "videos").is_dir()

    def test_save_and_load(self):
        self.loader.save(ContentType.ARTICLE, Article(id="intro", title="Intro", content="Hello"))

        article = self.loader.load(ContentType.ARTICLE, "intro")

        assert article.title == "Intro"
        assert self.loader.load(ContentType.VIDEO, "intro") is None

    def test_id_defaults_to_file_name(self):
        path = self.temp_dir / "content" / "videos" / "clip.json"
        path.write_text('{"title": "Clip", "url": "https://example.com/clip.mp4"}', encoding="utf-8")

        assert self.loader.load(ContentType.VIDEO, "clip").id == "clip"

    def test_rejects_unsafe_ids(self):
        assert self.loader.load(ContentType.ARTICLE, "../secret") is None
        assert self.loader.load(ContentType.ARTICLE, "") is None

    def test_unpublished_and_invalid_documents(self):
        self.loader.save(ContentType.ARTICLE, Article(id="draft", title="Draft", is_published=False))
        (self.temp_dir / "content" / "articles" / "broken.json").write_text("{", encoding="utf-8")
        (self.temp_dir / "content" / "videos" / "nourl.json").write_text('{"title": "x"}', encoding="utf-8")

        assert self.loader.load(ContentType.ARTICLE, "draft") is None
        assert self.loader.load(ContentType.ARTICLE, "broken") is None
        assert self.loader.load(ContentType.VIDEO, "nourl") is None
        assert self.loader.list_published(ContentType.ARTICLE) == []

    def test_list_published_newest_first(self):
        self.loader.save(ContentType.ARTICLE, Article(id="old", title="Old", published_at="2024-01-01T00:00:00"))
        self.loader.save(ContentType.ARTICLE, Article(id="new", title="New", published_at="2025-01-01T00:00:00"))

        ids = [a.id for a in self.loader.list_published(ContentType.ARTICLE)]

        assert ids == ["new", "old"]


class TestContentRenderer:
    """Test detail payload rendering."""

    def test_article_gets_html(self):
        renderer = ContentRenderer()
        article = Article(id="a", title="A", content="# Title\n\n| a | b |\n|---|---|\n| 1 | 2 |")

        payload = renderer.render(article)

        assert payload["content"] == article.content
        assert "<h1" in payload["html_content"]
        assert "<table>" in payload["html_content"]

    def test_video_has_no_html(self):
        payload = ContentRenderer().render(Video(id="v", title="V", url="https://example.com/v.mp4"))

        assert "html_content" not in payload
        assert payload["url"] == "https://example.com/v.mp4"

    def test_summaries_hide_body_and_url(self):
        assert "content" not in Article(id="a", title="A", content="body").to_summary()
        assert "url" not in Video(id="v", title="V", url="https://example.com/v.mp4").to_summary()
