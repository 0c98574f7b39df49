"""Password hashing helpers for student accounts."""
from __future__ import annotations

from passlib.context import CryptContext

# bcrypt only considers the first 72 bytes of a password.
BCRYPT_MAX_PASSWORD_BYTES = 72

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Return a salted one-way hash of ``password``."""

    if not password:
        raise ValueError("Password must not be empty")
    return _pwd_context.hash(password)


def dummy_verify() -> None:
    """Spend the same bcrypt work as a real check when there is no stored hash."""

    _pwd_context.dummy_verify()


def verify_password(password: str, hashed: str) -> bool:
    """Compare ``password`` against a stored hash using passlib's constant-time check."""

    if not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


__all__ = ["BCRYPT_MAX_PASSWORD_BYTES", "dummy_verify", "hash_password", "verify_password"]
