"""
User management models and the per-user document store.

Each user is one JSON document (<uid>.json) that embeds the access ledger.
"""
import json
import logging
import os
import re
import tempfile
import threading
import uuid
import weakref
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

import bcrypt
from pydantic import BaseModel, Field, ValidationError

from membership_portal.errors import PersistenceFailure, UserNotFoundError
from membership_portal.quota.models import AccessLedger, MembershipTier

logger = logging.getLogger(__name__)

_UID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class UserRole(Enum):
    """Roles attached to a user account."""
    USER = "user"
    EDITOR = "editor"
    ADMIN = "admin"


def hash_password(password: str, bcrypt_rounds: int = None) -> str:
    """Hash a password with bcrypt.

    Args:
        password: The password to hash
        bcrypt_rounds: Optional bcrypt rounds (for testing). Default uses bcrypt default.
    """
    if not password:
        raise ValueError("Password cannot be empty")
    if bcrypt_rounds is not None:
        salt = bcrypt.gensalt(rounds=bcrypt_rounds)
    else:
        salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def check_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored bcrypt hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


class UserRecord(BaseModel):
    """Persisted user document."""
    uid: str = Field(description="Stable user id, also the document file name")
    email: str = Field(description="Login email, unique across users")
    name: str = Field(description="Display name")
    password_hash: Optional[str] = Field(default=None, description="bcrypt hash, absent for external logins")
    membership_tier: str = Field(default=MembershipTier.TIER_1.value, description="Tier name, checked against the policy table on use")
    membership_start_date: Optional[str] = Field(default=None, description="When the current tier was chosen (ISO format)")
    role: UserRole = Field(default=UserRole.USER, description="Account role")
    is_active: bool = Field(default=True)
    created_at: str = Field(description="Creation time (ISO format)")
    updated_at: str = Field(description="Last update time (ISO format)")
    ledger: AccessLedger = Field(description="Today's content access ledger")

    @classmethod
    def create(
        cls,
        email: str,
        name: str,
        today: date,
        membership_tier: MembershipTier = MembershipTier.TIER_1,
        role: UserRole = UserRole.USER,
        password_hash: Optional[str] = None,
    ) -> "UserRecord":
        """Create a new user with an empty ledger dated today."""
        now = datetime.now().astimezone().isoformat(timespec="seconds")
        return cls(
            uid=uuid.uuid4().hex,
            email=email.strip().lower(),
            name=name.strip(),
            password_hash=password_hash,
            membership_tier=membership_tier.value,
            membership_start_date=now,
            role=role,
            created_at=now,
            updated_at=now,
            ledger=AccessLedger.new(today),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_profile(self) -> dict:
        """Public profile fields (no password hash, no ledger internals)."""
        return {
            "uid": self.uid,
            "email": self.email,
            "name": self.name,
            "membership_tier": self.membership_tier,
            "membership_start_date": self.membership_start_date,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def touch(self) -> None:
        self.updated_at = datetime.now().astimezone().isoformat(timespec="seconds")


class UserStore:
    """JSON document store with one file per user.

    Writes go to a temporary file that replaces the document atomically.
    Callers that read-modify-write a document must hold ``lock(uid)``.
    """

    def __init__(self, user_data_dir: Path):
        self.user_data_dir = Path(user_data_dir)
        self.user_data_dir.mkdir(parents=True, exist_ok=True)
        # Entries disappear once no request holds the lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()
        # Serializes email uniqueness check + create
        self.registration_lock = threading.Lock()

    @staticmethod
    def is_valid_uid(uid: Optional[str]) -> bool:
        return bool(uid) and bool(_UID_PATTERN.match(uid))

    def _user_file(self, uid: str) -> Path:
        """Get user data file path."""
        return self.user_data_dir / f"{uid}.json"

    def lock(self, uid: str) -> threading.Lock:
        """Get the mutual-exclusion lock for one user's document."""
        with self._registry_lock:
            user_lock = self._locks.get(uid)
            if user_lock is None:
                user_lock = threading.Lock()
                self._locks[uid] = user_lock
            return user_lock

    def exists(self, uid: str) -> bool:
        return self.is_valid_uid(uid) and self._user_file(uid).exists()

    def load(self, uid: str) -> UserRecord:
        """
        Load a user document.

        Raises:
            UserNotFoundError: If the user does not exist
            PersistenceFailure: If the document cannot be read or is corrupt
        """
        if not self.is_valid_uid(uid):
            raise UserNotFoundError(uid)
        user_file = self._user_file(uid)
        try:
            raw = user_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise UserNotFoundError(uid)
        except OSError as e:
            raise PersistenceFailure(f"Error reading user document {uid}: {e}", uid=uid) from e

        try:
            return UserRecord.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise PersistenceFailure(f"Corrupt user document {uid}: {e}", uid=uid) from e

    def save(self, record: UserRecord) -> None:
        """
        Durably write a user document.

        Raises:
            PersistenceFailure: If the write did not complete
        """
        if not self.is_valid_uid(record.uid):
            raise PersistenceFailure(f"Invalid user id: {record.uid!r}", uid=record.uid)
        payload = json.dumps(record.model_dump(mode="json"), ensure_ascii=False, indent=2)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{record.uid}.", suffix=".tmp", dir=self.user_data_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._user_file(record.uid))
            tmp_path = None
        except OSError as e:
            logger.error(f"Error saving user document {record.uid}: {e}")
            raise PersistenceFailure(f"Error saving user document {record.uid}: {e}", uid=record.uid) from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def delete(self, uid: str) -> None:
        """
        Remove a user document.

        Raises:
            UserNotFoundError: If the user does not exist
            PersistenceFailure: If the file could not be removed
        """
        if not self.is_valid_uid(uid):
            raise UserNotFoundError(uid)
        try:
            self._user_file(uid).unlink()
        except FileNotFoundError:
            raise UserNotFoundError(uid)
        except OSError as e:
            raise PersistenceFailure(f"Error deleting user document {uid}: {e}", uid=uid) from e

    def list_users(self) -> List[UserRecord]:
        """Load every user document, skipping unreadable ones."""
        users = []
        for path in sorted(self.user_data_dir.glob("*.json")):
            try:
                users.append(self.load(path.stem))
            except (UserNotFoundError, PersistenceFailure) as e:
                logger.warning(f"Skipping user document {path.name}: {e}")
        return users

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        email = email.strip().lower()
        for user in self.list_users():
            if user.email == email:
                return user
        return None
