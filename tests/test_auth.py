import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from registrar.auth import AuthenticationService, INVALID_CREDENTIALS
from registrar.database import Database
from registrar.errors import AuthError, ConflictError, ValidationError


EMAIL = "student@example.edu"
PASSWORD = "correct-horse-battery"


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "auth.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def auth(database: Database) -> AuthenticationService:
    return AuthenticationService(database)


def _signup(auth: AuthenticationService, **overrides):
    fields = {
        "username": "student",
        "email": EMAIL,
        "phone": "555-0100",
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    }
    fields.update(overrides)
    return asyncio.run(auth.signup(**fields))


def test_signup_stores_hash_and_login_succeeds(auth: AuthenticationService, database: Database) -> None:
    user = _signup(auth)

    credentials = database.get_credentials(EMAIL)
    assert credentials is not None
    _, stored_hash = credentials
    assert stored_hash != PASSWORD
    assert user.registered_courses == ()

    identity = asyncio.run(auth.login(EMAIL, PASSWORD))
    assert identity.id == user.id
    assert identity.username == "student"
    assert identity.email == EMAIL


def test_signup_password_mismatch_creates_nothing(auth: AuthenticationService, database: Database) -> None:
    with pytest.raises(ValidationError, match="Passwords do not match"):
        _signup(auth, confirm_password="something-else")

    assert database.list_users() == []


@pytest.mark.parametrize("field", ["username", "email", "phone", "password"])
def test_signup_requires_every_field(auth: AuthenticationService, database: Database, field: str) -> None:
    overrides = {field: "   " if field != "password" else ""}
    if field == "password":
        overrides["confirm_password"] = ""

    with pytest.raises(ValidationError):
        _signup(auth, **overrides)

    assert database.list_users() == []


def test_signup_rejects_malformed_email(auth: AuthenticationService) -> None:
    with pytest.raises(ValidationError):
        _signup(auth, email="not-an-email")


def test_signup_rejects_passwords_bcrypt_would_truncate(auth: AuthenticationService) -> None:
    long_password = "x" * 73
    with pytest.raises(ValidationError):
        _signup(auth, password=long_password, confirm_password=long_password)


def test_signup_duplicate_email_conflicts(auth: AuthenticationService, database: Database) -> None:
    _signup(auth)

    with pytest.raises(ConflictError):
        _signup(auth, username="someone-else", email=EMAIL.upper())

    assert len(database.list_users()) == 1


def test_login_errors_do_not_reveal_which_part_was_wrong(auth: AuthenticationService) -> None:
    _signup(auth)

    with pytest.raises(AuthError) as unknown_email:
        asyncio.run(auth.login("nobody@example.edu", PASSWORD))
    with pytest.raises(AuthError) as wrong_password:
        asyncio.run(auth.login(EMAIL, "wrong-password"))

    assert unknown_email.value.message == INVALID_CREDENTIALS
    assert wrong_password.value.message == INVALID_CREDENTIALS
    assert unknown_email.value.status_code == wrong_password.value.status_code == 401


def test_login_is_case_insensitive_on_email(auth: AuthenticationService) -> None:
    user = _signup(auth)

    identity = asyncio.run(auth.login("  STUDENT@example.edu", PASSWORD))

    assert identity.id == user.id


def test_unknown_email_still_spends_a_hash_check(
    auth: AuthenticationService, monkeypatch: pytest.MonkeyPatch
) -> None:
    _signup(auth)
    calls = []
    monkeypatch.setattr("registrar.auth.dummy_verify", lambda: calls.append(True))

    with pytest.raises(AuthError):
        asyncio.run(auth.login("nobody@example.edu", PASSWORD))
    assert calls == [True]

    with pytest.raises(AuthError):
        asyncio.run(auth.login(EMAIL, "wrong-password"))
    asyncio.run(auth.login(EMAIL, PASSWORD))
    assert calls == [True]
