from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from registrar.config import Settings
from registrar.errors import UnauthorizedError
from registrar.models import SessionIdentity
from registrar.sessions import SessionManager

IDENTITY = SessionIdentity(id="abc123", username="alice", email="alice@example.com")


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> _Clock:
    return _Clock()


@pytest.fixture()
def sessions(tmp_path: Path, clock: _Clock) -> SessionManager:
    return SessionManager(Settings(database_path=tmp_path / "db.sqlite3"), clock=clock)


def test_default_lifetime_is_one_day(sessions: SessionManager) -> None:
    assert sessions.ttl == timedelta(hours=24)
    assert sessions.cookie_max_age == 24 * 60 * 60


def test_create_and_authorize_round_trip(sessions: SessionManager) -> None:
    token = sessions.create(IDENTITY)

    assert len(token) >= 32
    assert sessions.authorize(token) == IDENTITY
    assert len(sessions) == 1


def test_tokens_are_unique(sessions: SessionManager) -> None:
    assert sessions.create(IDENTITY) != sessions.create(IDENTITY)


@pytest.mark.parametrize("token", [None, "", "unknown-token"])
def test_authorize_rejects_missing_or_unknown_tokens(sessions: SessionManager, token) -> None:
    with pytest.raises(UnauthorizedError):
        sessions.authorize(token)


def test_expiry_is_absolute(sessions: SessionManager, clock: _Clock) -> None:
    token = sessions.create(IDENTITY)

    clock.now += timedelta(hours=23)
    assert sessions.authorize(token) == IDENTITY

    clock.now += timedelta(hours=1)
    with pytest.raises(UnauthorizedError):
        sessions.authorize(token)
    assert sessions.resolve(token) is None


def test_destroy_is_idempotent(sessions: SessionManager) -> None:
    token = sessions.create(IDENTITY)

    sessions.destroy(token)
    sessions.destroy(token)
    sessions.destroy(None)

    assert sessions.resolve(token) is None


def test_purge_expired(sessions: SessionManager, clock: _Clock) -> None:
    sessions.create(IDENTITY)
    clock.now += timedelta(hours=12)
    fresh = sessions.create(IDENTITY)
    clock.now += timedelta(hours=13)

    assert sessions.purge_expired() == 1
    assert sessions.resolve(fresh) == IDENTITY
    assert len(sessions) == 1


def test_create_evicts_expired_sessions(sessions: SessionManager, clock: _Clock) -> None:
    for _ in range(50):
        sessions.create(IDENTITY)
    clock.now += timedelta(days=2)

    live = [sessions.create(IDENTITY) for _ in range(5)]

    assert len(sessions) == 5
    assert sessions.stored_count() == 5
    assert all(sessions.resolve(token) == IDENTITY for token in live)
