"""Student signup and login."""
from __future__ import annotations

import logging
import re
from functools import partial

import anyio

from .database import Database
from .errors import AuthError, ConflictError, ValidationError
from .models import SessionIdentity, User
from .security import BCRYPT_MAX_PASSWORD_BYTES, dummy_verify, hash_password, verify_password

logger = logging.getLogger("registrar.auth")

INVALID_CREDENTIALS = "Invalid credentials"

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


def _require(value: object, label: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{label} is required")
    return text


class AuthenticationService:
    """Validate signups, hash passwords and verify login attempts."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def signup(
        self,
        username: str,
        email: str,
        phone: str,
        password: str,
        confirm_password: str,
    ) -> User:
        username = _require(username, "Username")
        email = _require(email, "Email").lower()
        phone = _require(phone, "Phone")
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required")
        if password != confirm_password:
            raise ValidationError("Passwords do not match")
        if not _EMAIL_PATTERN.match(email):
            raise ValidationError("Email address is not valid")
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes long"
            )

        existing = await anyio.to_thread.run_sync(self._database.get_user_by_email, email)
        if existing is not None:
            raise ConflictError("A user with that email already exists")

        password_hash = await anyio.to_thread.run_sync(hash_password, password)
        user = await anyio.to_thread.run_sync(
            partial(self._database.create_user, username, email, phone, password_hash)
        )
        logger.info("Registered student %s", user.id)
        return user

    async def login(self, email: str, password: str) -> SessionIdentity:
        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            raise AuthError(INVALID_CREDENTIALS)

        credentials = await anyio.to_thread.run_sync(self._database.get_credentials, email)
        if credentials is None:
            await anyio.to_thread.run_sync(dummy_verify)
            logger.warning("Failed login attempt for %s", email)
            raise AuthError(INVALID_CREDENTIALS)

        user, password_hash = credentials
        matches = await anyio.to_thread.run_sync(verify_password, password, password_hash)
        if not matches:
            logger.warning("Failed login attempt for %s", email)
            raise AuthError(INVALID_CREDENTIALS)

        return SessionIdentity(id=user.id, username=user.username, email=user.email)


__all__ = ["AuthenticationService", "INVALID_CREDENTIALS"]
