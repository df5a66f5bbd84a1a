import logging
import secrets
from datetime import date, timedelta
from pathlib import Path
from typing import Callable, Optional

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from config_manager import ConfigManager
from membership_portal.errors import InvalidTierError, PersistenceFailure, UserNotFoundError

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent.parent


def _resolve_dir(path_value: str) -> Path:
    path = Path(path_value)
    if not path.is_absolute():
        path = BASE_DIR / path
    path.mkdir(parents=True, exist_ok=True)
    return path


def create_app(
    config_manager: Optional[ConfigManager] = None,
    today_provider: Callable[[], date] = date.today,
) -> Flask:
    """Build the Flask application and wire the feature modules.

    Args:
        config_manager: Configuration source; a fresh ConfigManager if omitted
        today_provider: Returns the current calendar day for quota accounting
    """
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_proto = 1,     # trust 1 hop for X-Forwarded-Proto
            x_host  = 1,     # trust 1 hop for X-Forwarded-Host
            x_prefix= 1)     # trust 1 hop for X-Forwarded-Prefix

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    config_manager = config_manager or ConfigManager()
    app_config = config_manager.get_app_config()
    paths_config = config_manager.get_paths_config()
    membership_config = config_manager.get_membership_config()

    secret_key = app_config.secret_key
    if not secret_key:
        # Sessions carry the uid; never sign them with a well-known key
        secret_key = secrets.token_hex(32)
        logger.warning("SECRET_KEY is not set; using a random per-process key (sessions end on restart)")

    app.config.update(
        SECRET_KEY=secret_key,
        PERMANENT_SESSION_LIFETIME=timedelta(days=30),
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
    )

    user_data_dir = _resolve_dir(paths_config.user_data_dir)
    content_dir = _resolve_dir(paths_config.content_dir)

    # -------------------------------------------------------------------------
    # Modules
    # -------------------------------------------------------------------------

    from membership_portal.user_management.models import UserStore
    from membership_portal.quota.factory import create_quota_module
    from membership_portal.user_management.factory import create_user_management_module
    from membership_portal.content.factory import create_content_module

    user_store = UserStore(user_data_dir)

    quota_module = create_quota_module(
        user_store=user_store,
        membership_limits=membership_config.limits,
        today_provider=today_provider,
    )

    user_management_module = create_user_management_module(
        user_store=user_store,
        policy=quota_module["policy"],
        quota_manager=quota_module["manager"],
        admin_emails=app_config.admin_emails,
        bcrypt_rounds=app_config.bcrypt_rounds,
        today_provider=today_provider,
    )

    content_module = create_content_module(
        content_dir=content_dir,
        user_service=user_management_module["service"],
        quota_manager=quota_module["manager"],
    )

    # Register blueprints
    app.register_blueprint(user_management_module["blueprint"])
    app.register_blueprint(content_module["blueprint"])

    app.extensions["membership_portal"] = {
        "user_store": user_store,
        "quota": quota_module,
        "user_management": user_management_module,
        "content": content_module,
    }

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(PersistenceFailure)
    def handle_persistence_failure(e):
        # The access was not durably counted, so it must not look like a success
        logger.error(f"Persistence failure (uid={e.uid}): {e}")
        return jsonify({"success": False, "message": "Internal server error"}), 500

    @app.errorhandler(InvalidTierError)
    def handle_invalid_tier(e):
        logger.error(f"Data integrity fault: {e}")
        return jsonify({"success": False, "message": "Internal server error"}), 500

    @app.errorhandler(UserNotFoundError)
    def handle_user_not_found(e):
        logger.warning(f"{e}")
        return jsonify({"success": False, "message": "User not found"}), 404

    logger.info(
        f"Membership portal ready: users={user_data_dir}, content={content_dir}, "
        f"tiers={quota_module['policy'].to_dict()}"
    )
    return app
