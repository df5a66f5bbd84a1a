"""
Factory for creating user management module.
"""
from datetime import date
from typing import Callable, List

from .services import UserService
from .routes import create_user_routes


def create_user_management_module(
    user_store,
    policy,
    quota_manager,
    admin_emails: List[str] = None,
    bcrypt_rounds: int = None,
    today_provider: Callable[[], date] = date.today,
) -> dict:
    """Create user management module with service and routes.

    Args:
        user_store: Store holding the user documents
        policy: Membership policy used to validate tiers
        quota_manager: QuotaManager for quota status on profile endpoints
        admin_emails: Emails that register with the admin role
        bcrypt_rounds: Optional bcrypt cost (lower in tests)
        today_provider: Returns the current calendar day

    Returns:
        Dictionary containing the service and blueprint
    """
    user_service = UserService(
        user_store=user_store,
        policy=policy,
        admin_emails=admin_emails,
        bcrypt_rounds=bcrypt_rounds,
        today_provider=today_provider,
    )

    blueprint = create_user_routes(user_service, quota_manager)

    return {
        "service": user_service,
        "blueprint": blueprint
    }
