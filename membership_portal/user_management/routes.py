"""
User management routes for authentication, profile and admin operations.
"""
from flask import Blueprint, request, jsonify

from membership_portal.errors import InvalidTierError, UserNotFoundError
from .services import UserService, DuplicateEmailError


def _non_string_fields(data: dict, *names: str) -> list:
    """Names of fields present in a JSON body whose value is not a string."""
    return [name for name in names if name in data and not isinstance(data[name], str)]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _type_error(fields: list):
    return jsonify({"success": False, "message": f"Fields must be strings: {', '.join(fields)}"}), 400


def create_user_routes(user_service: UserService, quota_manager) -> Blueprint:
    """Create user management routes."""
    bp = Blueprint('user_management', __name__)

    @bp.route("/auth/register", methods=["POST"])
    def register():
        """Create an account and log it in."""
        data = _json_body()
        bad = _non_string_fields(data, "email", "name", "password", "membership_tier")
        if bad:
            return _type_error(bad)
        try:
            user = user_service.register(
                email=data.get("email", ""),
                name=data.get("name", ""),
                password=data.get("password", ""),
                membership_tier=data.get("membership_tier") or "TIER_1",
            )
        except DuplicateEmailError:
            return jsonify({"success": False, "message": "Email already registered"}), 409
        except InvalidTierError as e:
            return jsonify({"success": False, "message": str(e)}), 400
        except ValueError as e:
            return jsonify({"success": False, "message": str(e)}), 400

        user_service.start_session(user)
        return jsonify({"success": True, "data": user.to_profile()}), 201

    @bp.route("/auth/login", methods=["POST"])
    def login():
        """Log in with email and password."""
        data = _json_body()
        bad = _non_string_fields(data, "email", "password")
        if bad:
            return _type_error(bad)
        user = user_service.authenticate(data.get("email", ""), data.get("password", ""))
        if not user:
            return jsonify({"success": False, "message": "Invalid email or password"}), 401

        user_service.start_session(user)
        return jsonify({"success": True, "data": user.to_profile()})

    @bp.route("/auth/logout", methods=["POST"])
    def logout():
        user_service.end_session()
        return jsonify({"success": True})

    @bp.route("/auth/me", methods=["GET"])
    def me():
        """Current user's profile with quota status."""
        user, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        return jsonify({
            "success": True,
            "data": user.to_profile(),
            "quota": quota_manager.get_quota_info(user.uid),
        })

    @bp.route("/users/me/stats", methods=["GET"])
    def my_stats():
        """Lifetime and today's usage for the current user."""
        user, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        return jsonify({"success": True, "data": quota_manager.get_usage_stats(user.uid)})

    @bp.route("/auth/membership", methods=["PUT"])
    def change_my_membership():
        """Switch the current user to another tier. Today's usage is kept."""
        user, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        data = _json_body()
        bad = _non_string_fields(data, "membership_tier")
        if bad:
            return _type_error(bad)
        tier = data.get("membership_tier")
        if not tier:
            return jsonify({"success": False, "message": "membership_tier is required"}), 400

        try:
            user = user_service.change_membership(user.uid, tier)
        except InvalidTierError as e:
            return jsonify({"success": False, "message": str(e)}), 400

        return jsonify({
            "success": True,
            "data": user.to_profile(),
            "quota": quota_manager.get_quota_info(user.uid),
            "message": "Membership updated successfully",
        })

    @bp.route("/users", methods=["GET"])
    def list_users():
        """List all users (admin only)."""
        _, error, status = user_service.require_admin_json()
        if error:
            return jsonify(error), status

        users = [u.to_profile() for u in user_service.list_users()]
        return jsonify({"success": True, "data": users, "total": len(users)})

    @bp.route("/users/stats", methods=["GET"])
    def user_stats():
        """User counts by tier and role (admin only)."""
        _, error, status = user_service.require_admin_json()
        if error:
            return jsonify(error), status

        return jsonify({"success": True, "data": user_service.get_membership_stats()})

    @bp.route("/users/<uid>", methods=["GET"])
    def get_user(uid):
        """One user's profile and usage (admin only)."""
        _, error, status = user_service.require_admin_json()
        if error:
            return jsonify(error), status

        try:
            user = user_service.get_user(uid)
        except UserNotFoundError:
            return jsonify({"success": False, "message": "User not found"}), 404

        return jsonify({
            "success": True,
            "data": user.to_profile(),
            "usage": quota_manager.get_usage_stats(uid),
        })

    @bp.route("/users/<uid>", methods=["DELETE"])
    def delete_user(uid):
        """Delete a user (admin only)."""
        _, error, status = user_service.require_admin_json()
        if error:
            return jsonify(error), status

        try:
            user_service.delete_user(uid)
        except UserNotFoundError:
            return jsonify({"success": False, "message": "User not found"}), 404

        return jsonify({"success": True, "message": "User deleted successfully"})

    @bp.route("/users/<uid>/membership", methods=["PUT"])
    def update_membership(uid):
        """Change a user's membership tier (admin only)."""
        _, error, status = user_service.require_admin_json()
        if error:
            return jsonify(error), status

        data = _json_body()
        bad = _non_string_fields(data, "membership_tier")
        if bad:
            return _type_error(bad)
        tier = data.get("membership_tier")
        if not tier:
            return jsonify({"success": False, "message": "membership_tier is required"}), 400

        try:
            user = user_service.change_membership(uid, tier)
        except InvalidTierError as e:
            return jsonify({"success": False, "message": str(e)}), 400
        except UserNotFoundError:
            return jsonify({"success": False, "message": "User not found"}), 404

        return jsonify({"success": True, "data": user.to_profile(), "message": "Membership updated"})

    @bp.route("/users/<uid>/role", methods=["PUT"])
    def update_role(uid):
        """Change a user's role (admin only)."""
        _, error, status = user_service.require_admin_json()
        if error:
            return jsonify(error), status

        data = _json_body()
        bad = _non_string_fields(data, "role")
        if bad:
            return _type_error(bad)
        role = data.get("role")
        if not role:
            return jsonify({"success": False, "message": "role is required"}), 400

        try:
            user = user_service.change_role(uid, role)
        except UserNotFoundError:
            return jsonify({"success": False, "message": "User not found"}), 404
        except ValueError:
            return jsonify({"success": False, "message": f"Invalid role: {role}"}), 400

        return jsonify({"success": True, "data": user.to_profile(), "message": "Role updated"})

    return bp
