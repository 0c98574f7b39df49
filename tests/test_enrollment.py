import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from registrar.config import Settings
from registrar.database import Database
from registrar.enrollment import EnrollmentService
from registrar.errors import CapacityError, DuplicateEnrollmentError, NotFoundError
from registrar.models import Course, User


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "enrollment.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def student(database: Database) -> User:
    return database.create_user("alice", "alice@example.edu", "555-0100", "hash")


def _service(database: Database, strategy: str, *, allow_duplicate: bool = True) -> EnrollmentService:
    settings = Settings(
        database_path=database.path,
        enrollment_strategy=strategy,
        allow_duplicate_enrollment=allow_duplicate,
    )
    return EnrollmentService(database, settings)


def _course(database: Database, *, capacity: int, enrolled: int = 0, code: str = "CS101") -> Course:
    return database.create_course(
        code=code,
        title="Intro to CS",
        description="Basics",
        credits=3,
        instructor="Dr. Smith",
        schedule="Mon/Wed 10:00",
        capacity=capacity,
        enrolled=enrolled,
    )


STRATEGIES = pytest.mark.parametrize("strategy", ["atomic", "sequential"])


@STRATEGIES
def test_enroll_takes_one_seat(database: Database, student: User, strategy: str) -> None:
    course = _course(database, capacity=2)
    service = _service(database, strategy)

    updated = asyncio.run(service.enroll(student.id, course.id))

    assert updated.enrolled == 1
    assert database.get_course(course.id).enrolled == 1
    assert database.get_user(student.id).registered_courses.count(course.id) == 1


@STRATEGIES
def test_full_course_rejects_and_changes_nothing(database: Database, student: User, strategy: str) -> None:
    course = _course(database, capacity=3, enrolled=3)
    service = _service(database, strategy)

    with pytest.raises(CapacityError, match="Course full"):
        asyncio.run(service.enroll(student.id, course.id))

    assert database.get_course(course.id).enrolled == 3
    assert database.get_user(student.id).registered_courses == ()


@STRATEGIES
def test_unknown_course_is_not_found(database: Database, student: User, strategy: str) -> None:
    course = _course(database, capacity=2)
    service = _service(database, strategy)

    with pytest.raises(NotFoundError, match="Course not found"):
        asyncio.run(service.enroll(student.id, "does-not-exist"))

    assert database.get_course(course.id).enrolled == 0
    assert database.get_user(student.id).registered_courses == ()


@STRATEGIES
def test_missing_user_is_not_found(database: Database, strategy: str) -> None:
    course = _course(database, capacity=2)
    service = _service(database, strategy)

    with pytest.raises(NotFoundError, match="User not found"):
        asyncio.run(service.enroll("ghost", course.id))

    assert database.get_course(course.id).enrolled == 0


@STRATEGIES
def test_duplicates_allowed_by_default(database: Database, student: User, strategy: str) -> None:
    course = _course(database, capacity=5)
    service = _service(database, strategy)

    asyncio.run(service.enroll(student.id, course.id))
    asyncio.run(service.enroll(student.id, course.id))

    assert database.get_course(course.id).enrolled == 2
    assert database.get_user(student.id).registered_courses == (course.id, course.id)


@STRATEGIES
def test_duplicates_rejected_when_disabled(database: Database, student: User, strategy: str) -> None:
    course = _course(database, capacity=5)
    service = _service(database, strategy, allow_duplicate=False)

    asyncio.run(service.enroll(student.id, course.id))
    with pytest.raises(DuplicateEnrollmentError):
        asyncio.run(service.enroll(student.id, course.id))

    assert database.get_course(course.id).enrolled == 1
    assert database.get_user(student.id).registered_courses == (course.id,)


@STRATEGIES
def test_registration_order_is_preserved(database: Database, student: User, strategy: str) -> None:
    math = _course(database, capacity=5, code="MATH201")
    cs = _course(database, capacity=5, code="CS101")
    service = _service(database, strategy)

    asyncio.run(service.enroll(student.id, math.id))
    asyncio.run(service.enroll(student.id, cs.id))

    registered = asyncio.run(service.registered_courses(student.id))
    assert [course.code for course in registered] == ["MATH201", "CS101"]


def test_list_courses_returns_whole_catalog(database: Database) -> None:
    _course(database, capacity=5, code="MATH201")
    _course(database, capacity=5, code="CS101")
    service = _service(database, "atomic")

    courses = asyncio.run(service.list_courses())

    assert [course.code for course in courses] == ["CS101", "MATH201"]


def test_sequential_strategy_keeps_check_then_act_race(
    database: Database, student: User, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A stale capacity read lets a second student in and loses an increment."""

    course = _course(database, capacity=1)
    other = database.create_user("bob", "bob@example.edu", "555-0101", "hash")
    service = _service(database, "sequential")
    stale = database.get_course(course.id)

    asyncio.run(service.enroll(student.id, course.id))
    monkeypatch.setattr(database, "get_course", lambda _course_id: stale)
    asyncio.run(service.enroll(other.id, course.id))
    monkeypatch.undo()

    assert database.get_course(course.id).enrolled == 1
    assert database.get_user(student.id).registered_courses == (course.id,)
    assert database.get_user(other.id).registered_courses == (course.id,)


def test_atomic_strategy_rechecks_capacity_inside_the_write(
    database: Database, student: User, monkeypatch: pytest.MonkeyPatch
) -> None:
    course = _course(database, capacity=1)
    other = database.create_user("bob", "bob@example.edu", "555-0101", "hash")
    service = _service(database, "atomic")
    stale = database.get_course(course.id)

    asyncio.run(service.enroll(student.id, course.id))
    monkeypatch.setattr(database, "get_course", lambda _course_id: stale)
    with pytest.raises(CapacityError):
        asyncio.run(service.enroll(other.id, course.id))
    monkeypatch.undo()

    assert database.get_course(course.id).enrolled == 1
    assert database.get_user(other.id).registered_courses == ()
