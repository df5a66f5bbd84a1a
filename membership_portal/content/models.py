"""
Content catalog models.

This module contains Pydantic models for articles and videos as stored in
the content directory.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Article(BaseModel):
    """A published (or draft) article."""
    id: str = Field(description="Article id, also the document file name")
    title: str = Field(description="Article title")
    content: str = Field(default="", description="Markdown body")
    excerpt: str = Field(default="", description="Short teaser shown in listings")
    author: Optional[str] = Field(default=None, description="Author display name")
    category: Optional[str] = Field(default=None, description="Category name")
    tags: List[str] = Field(default_factory=list)
    featured: bool = Field(default=False)
    is_published: bool = Field(default=True)
    published_at: Optional[str] = Field(default=None, description="Publication time (ISO format)")

    def to_summary(self) -> dict:
        """Listing payload without the body."""
        return self.model_dump(mode="json", exclude={"content"})


class Video(BaseModel):
    """A published (or draft) video."""
    id: str = Field(description="Video id, also the document file name")
    title: str = Field(description="Video title")
    description: str = Field(default="")
    url: str = Field(description="Playback URL")
    thumbnail: Optional[str] = Field(default=None, description="Thumbnail image URL")
    duration: int = Field(default=0, ge=0, description="Length in seconds")
    category: Optional[str] = Field(default=None, description="Category name")
    tags: List[str] = Field(default_factory=list)
    featured: bool = Field(default=False)
    is_published: bool = Field(default=True)
    published_at: Optional[str] = Field(default=None, description="Publication time (ISO format)")

    def to_summary(self) -> dict:
        """Listing payload without the playback URL."""
        return self.model_dump(mode="json", exclude={"url"})
