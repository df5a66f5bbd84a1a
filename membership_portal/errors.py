"""
Error types shared by the quota engine and the user store.

Quota denial is not an error: it is returned as an AccessDecision.
These exceptions cover infrastructure and data-integrity faults that must
reach the request boundary.
"""
from typing import Any


class QuotaError(Exception):
    """Base class for faults raised by the quota engine and its storage."""


class PersistenceFailure(QuotaError):
    """A user document could not be durably read or written."""

    def __init__(self, message: str, uid: str = None):
        super().__init__(message)
        self.uid = uid


class InvalidTierError(QuotaError):
    """A tier is not present in the membership policy table."""

    def __init__(self, tier: Any):
        super().__init__(f"Unknown membership tier: {tier!r}")
        self.tier = tier


class UserNotFoundError(QuotaError):
    """No user document exists for the given id."""

    def __init__(self, uid: str):
        super().__init__(f"User not found: {uid}")
        self.uid = uid
