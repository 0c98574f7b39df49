"""In-memory session handling for signed-in students."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from .config import Settings
from .errors import UnauthorizedError
from .models import SessionIdentity


@dataclass(frozen=True)
class _SessionRecord:
    identity: SessionIdentity
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Issue, authorize, and revoke browser sessions.

    Expiry is absolute: a session lives for exactly ``settings.session_ttl``
    after it was created, however often it is used.
    """

    def __init__(self, settings: Settings, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._ttl = settings.session_ttl
        self._clock = clock
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for record in self._sessions.values() if record.expires_at > now)

    def create(self, identity: SessionIdentity) -> str:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        record = _SessionRecord(identity=identity, expires_at=now + self._ttl)
        with self._lock:
            self._evict_expired(now)
            self._sessions[token] = record
        return token

    def resolve(self, token: Optional[str]) -> Optional[SessionIdentity]:
        if not token:
            return None
        now = self._clock()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._sessions.pop(token, None)
                return None
            return record.identity

    def authorize(self, token: Optional[str]) -> SessionIdentity:
        identity = self.resolve(token)
        if identity is None:
            raise UnauthorizedError("Unauthorized")
        return identity

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def purge_expired(self) -> int:
        """Drop expired sessions and return how many were removed."""

        now = self._clock()
        with self._lock:
            return self._evict_expired(now)

    def stored_count(self) -> int:
        """Number of records held, live or not yet evicted."""

        with self._lock:
            return len(self._sessions)

    def _evict_expired(self, now: datetime) -> int:
        # Caller must hold the lock.
        expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
        for token in expired:
            del self._sessions[token]
        return len(expired)


__all__ = ["SessionManager"]
