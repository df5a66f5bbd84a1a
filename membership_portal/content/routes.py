"""
Content routes for article and video listing and detail views.
"""
import logging

from flask import Blueprint, jsonify

from membership_portal.quota.models import ContentType
from .services import ContentLoader, ContentRenderer

logger = logging.getLogger(__name__)


def create_content_routes(
    content_loader: ContentLoader,
    content_renderer: ContentRenderer,
    user_service,
    quota_manager,
) -> Blueprint:
    """Create content routes."""
    bp = Blueprint('content', __name__)

    def list_content(content_type: ContentType):
        items = [item.to_summary() for item in content_loader.list_published(content_type)]
        response = {"success": True, "data": items, "total": len(items)}

        # Status only: listing never denies and never touches the ledger
        user = user_service.get_current_user()
        if user:
            response["quota"] = quota_manager.get_quota_info(user.uid, content_type)
        return jsonify(response)

    def view_content(content_type: ContentType, content_id: str):
        user, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        item = content_loader.load(content_type, content_id)
        if not item:
            return jsonify({"success": False, "message": f"{content_type.value.capitalize()} not found"}), 404

        if user.is_admin:
            logger.debug(f"Admin {user.uid} bypasses quota for {content_type.value} {content_id}")
            quota = {"bypassed": True}
        else:
            decision = quota_manager.check_and_record(user.uid, content_type, content_id)
            if not decision.allowed:
                return jsonify({
                    "success": False,
                    "code": decision.code,
                    "message": decision.reason,
                    "quota": decision.to_dict(),
                }), 403
            quota = decision.to_dict()

        return jsonify({
            "success": True,
            "data": content_renderer.render(item),
            "quota": quota,
        })

    @bp.route("/articles", methods=["GET"])
    def list_articles():
        """List published articles."""
        return list_content(ContentType.ARTICLE)

    @bp.route("/articles/<content_id>", methods=["GET"])
    def view_article(content_id):
        """View one article, counting it against the daily quota."""
        return view_content(ContentType.ARTICLE, content_id)

    @bp.route("/videos", methods=["GET"])
    def list_videos():
        """List published videos."""
        return list_content(ContentType.VIDEO)

    @bp.route("/videos/<content_id>", methods=["GET"])
    def view_video(content_id):
        """View one video, counting it against the daily quota."""
        return view_content(ContentType.VIDEO, content_id)

    @bp.route("/api/quota", methods=["GET"])
    def quota_status():
        """Quota status of the current user for both content types."""
        user, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401
        return jsonify({"success": True, "data": quota_manager.get_quota_info(user.uid)})

    return bp
