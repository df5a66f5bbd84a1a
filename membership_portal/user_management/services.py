"""
User management services for registration, sessions and admin operations.
"""
import logging
from collections import Counter
from datetime import date
from typing import Callable, List, Optional, Tuple

from flask import session

from membership_portal.quota.models import MembershipTier
from membership_portal.quota.policy import MembershipPolicy
from .models import UserRecord, UserRole, UserStore, hash_password, check_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class DuplicateEmailError(ValueError):
    """An account with this email already exists."""


class UserService:
    """Service for user accounts, sessions and membership changes."""

    def __init__(
        self,
        user_store: UserStore,
        policy: MembershipPolicy,
        admin_emails: List[str] = None,
        bcrypt_rounds: int = None,
        today_provider: Callable[[], date] = date.today,
    ):
        self.user_store = user_store
        self.policy = policy
        self.admin_emails = [e.strip().lower() for e in (admin_emails or [])]
        self.bcrypt_rounds = bcrypt_rounds
        self.today_provider = today_provider

    # ---------------------
    # Sessions
    # ---------------------

    def get_current_user_id(self) -> Optional[str]:
        """Get the current user ID from the session."""
        return session.get("uid")

    def get_current_user(self) -> Optional[UserRecord]:
        """Load the logged-in user, or None when nobody (or an unknown id) is logged in."""
        uid = self.get_current_user_id()
        if not uid or not self.user_store.exists(uid):
            return None
        return self.user_store.load(uid)

    def require_auth_json(self) -> Tuple[Optional[UserRecord], Optional[dict]]:
        """Require authentication for JSON endpoints, return error if not authenticated."""
        user = self.get_current_user()
        if not user:
            return None, {"success": False, "message": "Authentication required"}
        if not user.is_active:
            return None, {"success": False, "message": "Account is disabled"}
        return user, None

    def require_admin_json(self) -> Tuple[Optional[UserRecord], Optional[dict], int]:
        """Require an authenticated admin. Returns (user, error, status)."""
        user, error = self.require_auth_json()
        if error:
            return None, error, 401
        if not user.is_admin:
            return None, {"success": False, "message": "Admin access required"}, 403
        return user, None, 200

    def start_session(self, user: UserRecord) -> None:
        session.clear()
        session["uid"] = user.uid
        session.permanent = True

    def end_session(self) -> None:
        session.clear()

    # ---------------------
    # Accounts
    # ---------------------

    def register(
        self,
        email: str,
        name: str,
        password: str,
        membership_tier: str = MembershipTier.TIER_1.value,
    ) -> UserRecord:
        """
        Create a user account with an empty ledger dated today.

        Raises:
            ValueError: On missing or invalid fields
            DuplicateEmailError: If the email is already registered
            InvalidTierError: If the tier is not in the policy table
            PersistenceFailure: If the document could not be written
        """
        email = (email or "").strip().lower()
        name = (name or "").strip()
        if not email or "@" not in email:
            raise ValueError("A valid email is required")
        if not name:
            raise ValueError("Name cannot be empty")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        tier = self.policy.resolve_tier(membership_tier or MembershipTier.TIER_1.value)
        role = UserRole.ADMIN if email in self.admin_emails else UserRole.USER

        with self.user_store.registration_lock:
            if self.user_store.find_by_email(email):
                raise DuplicateEmailError(f"Email already registered: {email}")
            user = UserRecord.create(
                email=email,
                name=name,
                today=self.today_provider(),
                membership_tier=tier,
                role=role,
                password_hash=hash_password(password, self.bcrypt_rounds),
            )
            self.user_store.save(user)

        logger.info(f"Registered user {user.uid} ({email}) tier={tier.value} role={role.value}")
        return user

    def authenticate(self, email: str, password: str) -> Optional[UserRecord]:
        """Return the user if the email/password pair is valid."""
        email = (email or "").strip().lower()
        if not email or not password:
            return None
        user = self.user_store.find_by_email(email)
        if not user or not user.is_active:
            return None
        if not check_password(password, user.password_hash):
            logger.info(f"Failed login for {email}")
            return None
        return user

    def get_user(self, uid: str) -> UserRecord:
        return self.user_store.load(uid)

    def list_users(self) -> List[UserRecord]:
        return self.user_store.list_users()

    # ---------------------
    # Admin methods
    # ---------------------

    def change_membership(self, uid: str, membership_tier: str) -> UserRecord:
        """
        Move a user to another tier.

        The ledger is left as is: only later limit lookups see the new tier,
        so a downgrade below today's usage blocks new content until rollover.

        Raises:
            InvalidTierError: If the tier is not in the policy table
            UserNotFoundError: If the user does not exist
        """
        tier = self.policy.resolve_tier(membership_tier)
        with self.user_store.lock(uid):
            user = self.user_store.load(uid)
            previous = user.membership_tier
            user.membership_tier = tier.value
            user.touch()
            user.membership_start_date = user.updated_at
            self.user_store.save(user)
        logger.info(f"Changed tier of {uid}: {previous} -> {tier.value}")
        return user

    def change_role(self, uid: str, role: str) -> UserRecord:
        """
        Change a user's role.

        Raises:
            ValueError: If the role is unknown
            UserNotFoundError: If the user does not exist
        """
        new_role = UserRole(role)
        with self.user_store.lock(uid):
            user = self.user_store.load(uid)
            previous = user.role
            user.role = new_role
            user.touch()
            self.user_store.save(user)
        logger.info(f"Changed role of {uid}: {previous.value} -> {new_role.value}")
        return user

    def delete_user(self, uid: str) -> None:
        """
        Delete a user account and its ledger.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        with self.user_store.lock(uid):
            self.user_store.delete(uid)
        logger.info(f"Deleted user {uid}")

    def get_membership_stats(self) -> dict:
        """User counts grouped by membership tier and role."""
        users = self.list_users()
        by_tier = Counter(u.membership_tier for u in users)
        by_role = Counter(u.role.value for u in users)
        return {
            "total_users": len(users),
            "active_users": sum(1 for u in users if u.is_active),
            "by_membership_tier": {tier.value: by_tier.get(tier.value, 0) for tier in MembershipTier},
            "by_role": {role.value: by_role.get(role.value, 0) for role in UserRole},
        }
