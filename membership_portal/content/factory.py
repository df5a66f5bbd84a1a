"""
Factory for creating the content module.
"""
from pathlib import Path
from typing import Any, Dict

from .services import ContentLoader, ContentRenderer
from .routes import create_content_routes


def create_content_module(
    content_dir: Path,
    user_service,
    quota_manager,
) -> Dict[str, Any]:
    """Create content module with loader, renderer and routes."""
    content_loader = ContentLoader(content_dir)
    content_renderer = ContentRenderer()

    blueprint = create_content_routes(
        content_loader=content_loader,
        content_renderer=content_renderer,
        user_service=user_service,
        quota_manager=quota_manager,
    )

    return {
        "loader": content_loader,
        "renderer": content_renderer,
        "blueprint": blueprint
    }
