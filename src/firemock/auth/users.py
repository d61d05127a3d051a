from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping
import logging
import secrets
import string
import threading

LOGGER = logging.getLogger(__name__)

LOCAL_ID_ALPHABET = string.ascii_letters + string.digits
LOCAL_ID_LENGTH = 28
UPDATABLE_ATTRIBUTES = ("email", "display_name", "photo_url", "phone_number", "password_hash", "disabled", "email_verified")


class UserDirectoryError(ValueError):
    """Base user directory error. ``code`` is the Identity Toolkit error message."""

    code = "INVALID_ARGUMENT"


class UserNotFoundError(UserDirectoryError):
    code = "USER_NOT_FOUND"


class EmailExistsError(UserDirectoryError):
    code = "EMAIL_EXISTS"


class DuplicateLocalIdError(UserDirectoryError):
    code = "DUPLICATE_LOCAL_ID"


class InvalidEmailError(UserDirectoryError):
    code = "INVALID_EMAIL"


def _now_millis() -> str:
    return str(int(datetime.now(timezone.utc).timestamp() * 1000))


def generate_local_id() -> str:
    return "".join(secrets.choice(LOCAL_ID_ALPHABET) for _ in range(LOCAL_ID_LENGTH))


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    normalized = email.strip()
    if not normalized:
        return None
    if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
        raise InvalidEmailError(f"Invalid email: {email}")
    return normalized


@dataclass(frozen=True)
class UserRecord:
    local_id: str
    email: str | None = None
    email_verified: bool = False
    display_name: str | None = None
    photo_url: str | None = None
    phone_number: str | None = None
    password_hash: str | None = None
    disabled: bool = False
    created_at: str = field(default_factory=_now_millis)
    last_login_at: str | None = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "localId": self.local_id,
            "emailVerified": self.email_verified,
            "disabled": self.disabled,
            "createdAt": self.created_at,
            "lastLoginAt": self.last_login_at or self.created_at,
            "providerUserInfo": [],
        }
        optional = {
            "email": self.email,
            "displayName": self.display_name,
            "photoUrl": self.photo_url,
            "phoneNumber": self.phone_number,
            "passwordHash": self.password_hash,
        }
        document.update({key: value for key, value in optional.items() if value is not None})
        if self.email is not None:
            provider: dict[str, Any] = {"providerId": "password", "rawId": self.local_id, "email": self.email}
            if self.display_name is not None:
                provider["displayName"] = self.display_name
            document["providerUserInfo"] = [provider]
        return document


class UserDirectory:
    """Flat in-memory user table keyed by local id, with a case-insensitive email index."""

    def __init__(self) -> None:
        self._users: dict[str, UserRecord] = {}
        self._uid_by_email: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_by_uid(self, local_id: str) -> UserRecord | None:
        return self._users.get(local_id)

    def get_by_email(self, email: str) -> UserRecord | None:
        local_id = self._uid_by_email.get(email.strip().lower())
        return self._users.get(local_id) if local_id is not None else None

    def add(self, user: UserRecord) -> UserRecord:
        email = normalize_email(user.email)
        user = replace(user, email=email)
        with self._lock:
            if user.local_id in self._users:
                raise DuplicateLocalIdError(f"localId already exists: {user.local_id}")
            if email is not None and email.lower() in self._uid_by_email:
                raise EmailExistsError(f"email already exists: {email}")
            self._store(user)
        LOGGER.info("user created: %s (%s)", user.local_id, user.email or "no email")
        return user

    def update(self, local_id: str, changes: Mapping[str, Any]) -> UserRecord:
        unknown = set(changes) - set(UPDATABLE_ATTRIBUTES)
        if unknown:
            raise UserDirectoryError(f"Unsupported attributes: {', '.join(sorted(unknown))}")
        with self._lock:
            existing = self._users.get(local_id)
            if existing is None:
                raise UserNotFoundError(f"user not found: {local_id}")
            updated = replace(existing, **changes)
            if "email" in changes:
                updated = replace(updated, email=normalize_email(updated.email))
                if updated.email is not None:
                    owner = self._uid_by_email.get(updated.email.lower())
                    if owner is not None and owner != local_id:
                        raise EmailExistsError(f"email already exists: {updated.email}")
            self._discard(existing)
            self._store(updated)
        return updated

    def delete(self, local_id: str) -> bool:
        with self._lock:
            existing = self._users.get(local_id)
            if existing is None:
                return False
            self._discard(existing)
        LOGGER.info("user deleted: %s", local_id)
        return True

    def clear(self) -> int:
        with self._lock:
            count = len(self._users)
            self._users.clear()
            self._uid_by_email.clear()
        LOGGER.info("user directory cleared: %s users removed", count)
        return count

    def _store(self, user: UserRecord) -> None:
        self._users[user.local_id] = user
        if user.email is not None:
            self._uid_by_email[user.email.lower()] = user.local_id

    def _discard(self, user: UserRecord) -> None:
        self._users.pop(user.local_id, None)
        if user.email is not None:
            self._uid_by_email.pop(user.email.lower(), None)
