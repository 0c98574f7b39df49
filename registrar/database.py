"""SQLite-backed persistence for students, courses and course registrations."""
from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import CapacityError, ConflictError, DuplicateEnrollmentError, NotFoundError
from .models import Course, User


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _generate_id() -> str:
    return uuid.uuid4().hex


class Database:
    """Simple wrapper around SQLite for persisting users and courses."""

    def __init__(self, path: Path, *, timeout: float = 30.0) -> None:
        _ensure_directory(path)
        self._path = path
        self._timeout = timeout

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=self._timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one explicit transaction, committed on success."""

        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        conn = self._connect()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    phone TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS courses (
                    id TEXT PRIMARY KEY,
                    code TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    credits INTEGER NOT NULL,
                    instructor TEXT NOT NULL,
                    schedule TEXT NOT NULL,
                    capacity INTEGER NOT NULL CHECK (capacity >= 0),
                    enrolled INTEGER NOT NULL DEFAULT 0 CHECK (enrolled >= 0)
                );

                CREATE TABLE IF NOT EXISTS user_courses (
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    course_id TEXT NOT NULL REFERENCES courses(id),
                    PRIMARY KEY (user_id, position)
                );

                CREATE INDEX IF NOT EXISTS idx_user_courses_course_id ON user_courses(course_id);
                """
            )
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, username: str, email: str, phone: str, password_hash: str) -> User:
        """Insert a new user. ``password_hash`` must already be hashed."""

        user_id = _generate_id()
        created_at = _current_timestamp()
        normalized_email = email.strip().lower()

        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO users (id, username, email, phone, password_hash, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        username,
                        normalized_email,
                        phone,
                        password_hash,
                        _serialize_datetime(created_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ConflictError("A user with that email already exists") from exc

        return User(
            id=user_id,
            username=username,
            email=normalized_email,
            phone=phone,
            created_at=created_at,
        )

    def get_user(self, user_id: str) -> Optional[User]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                return None
            return self._row_to_user(row, self._registered_course_ids(conn, user_id))
        finally:
            conn.close()

    def get_user_by_email(self, email: str) -> Optional[User]:
        credentials = self.get_credentials(email)
        return credentials[0] if credentials else None

    def get_credentials(self, email: str) -> Optional[Tuple[User, str]]:
        """Return the user registered under ``email`` together with the stored hash."""

        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
            if row is None:
                return None
            user = self._row_to_user(row, self._registered_course_ids(conn, row["id"]))
            return user, row["password_hash"]
        finally:
            conn.close()

    def list_users(self) -> List[User]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at, id").fetchall()
            return [
                self._row_to_user(row, self._registered_course_ids(conn, row["id"]))
                for row in rows
            ]
        finally:
            conn.close()

    def save_user_courses(self, user_id: str, course_ids: Sequence[str]) -> None:
        """Overwrite the user's registered course list with ``course_ids``."""

        with self._transaction() as conn:
            exists = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
            if exists is None:
                raise NotFoundError("User not found")
            conn.execute("DELETE FROM user_courses WHERE user_id = ?", (user_id,))
            conn.executemany(
                "INSERT INTO user_courses (user_id, position, course_id) VALUES (?, ?, ?)",
                [(user_id, position, course_id) for position, course_id in enumerate(course_ids)],
            )

    # ------------------------------------------------------------------
    # Course catalog
    # ------------------------------------------------------------------
    def count_courses(self) -> int:
        conn = self._connect()
        try:
            row = conn.execute("SELECT COUNT(*) AS total FROM courses").fetchone()
        finally:
            conn.close()
        return int(row["total"])

    def create_courses(self, courses: Iterable[Mapping[str, object]]) -> List[Course]:
        """Insert several courses in a single transaction."""

        created: List[Course] = []
        try:
            with self._transaction() as conn:
                for data in courses:
                    course = Course(
                        id=_generate_id(),
                        code=str(data["code"]),
                        title=str(data["title"]),
                        description=str(data["description"]),
                        credits=int(data["credits"]),  # type: ignore[arg-type]
                        instructor=str(data["instructor"]),
                        schedule=str(data["schedule"]),
                        capacity=int(data["capacity"]),  # type: ignore[arg-type]
                        enrolled=int(data.get("enrolled", 0)),  # type: ignore[arg-type]
                    )
                    conn.execute(
                        """
                        INSERT INTO courses (
                            id, code, title, description, credits,
                            instructor, schedule, capacity, enrolled
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            course.id,
                            course.code,
                            course.title,
                            course.description,
                            course.credits,
                            course.instructor,
                            course.schedule,
                            course.capacity,
                            course.enrolled,
                        ),
                    )
                    created.append(course)
        except sqlite3.IntegrityError as exc:
            raise ConflictError("A course with that code already exists") from exc
        return created

    def create_course(self, **fields: object) -> Course:
        return self.create_courses([fields])[0]

    def get_course(self, course_id: str) -> Optional[Course]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return self._row_to_course(row)

    def list_courses(self) -> List[Course]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT * FROM courses ORDER BY code").fetchall()
        finally:
            conn.close()
        return [self._row_to_course(row) for row in rows]

    def list_courses_by_id(self, course_ids: Sequence[str]) -> List[Course]:
        """Return courses in the order of ``course_ids``, skipping unknown ids."""

        if not course_ids:
            return []
        placeholders = ", ".join("?" for _ in course_ids)
        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT * FROM courses WHERE id IN ({placeholders})",
                tuple(course_ids),
            ).fetchall()
        finally:
            conn.close()
        by_id = {row["id"]: self._row_to_course(row) for row in rows}
        return [by_id[course_id] for course_id in course_ids if course_id in by_id]

    def save_course(self, course: Course) -> None:
        """Persist every field of ``course``; the last writer wins."""

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE courses
                SET code = ?, title = ?, description = ?, credits = ?,
                    instructor = ?, schedule = ?, capacity = ?, enrolled = ?
                WHERE id = ?
                """,
                (
                    course.code,
                    course.title,
                    course.description,
                    course.credits,
                    course.instructor,
                    course.schedule,
                    course.capacity,
                    course.enrolled,
                    course.id,
                ),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Course not found")

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------
    def enroll_atomic(
        self,
        user_id: str,
        course_id: str,
        *,
        allow_duplicate: bool = True,
    ) -> Course:
        """Claim a seat and record it on the user's course list in one transaction.

        The seat is taken with a conditional increment, so ``enrolled`` can
        never pass ``capacity`` no matter how many writers race.
        """

        with self._transaction(immediate=True) as conn:
            row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
            if row is None:
                raise NotFoundError("Course not found")

            claimed = conn.execute(
                "UPDATE courses SET enrolled = enrolled + 1 WHERE id = ? AND enrolled < capacity",
                (course_id,),
            )
            if claimed.rowcount == 0:
                raise CapacityError("Course full")

            user = conn.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone()
            if user is None:
                raise NotFoundError("User not found")

            registered = self._registered_course_ids(conn, user_id)
            if not allow_duplicate and course_id in registered:
                raise DuplicateEnrollmentError("Already registered for this course")

            conn.execute(
                "INSERT INTO user_courses (user_id, position, course_id) VALUES (?, ?, ?)",
                (user_id, len(registered), course_id),
            )
            updated = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()

        return self._row_to_course(updated)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _registered_course_ids(conn: sqlite3.Connection, user_id: str) -> Tuple[str, ...]:
        rows = conn.execute(
            "SELECT course_id FROM user_courses WHERE user_id = ? ORDER BY position",
            (user_id,),
        ).fetchall()
        return tuple(row["course_id"] for row in rows)

    @staticmethod
    def _row_to_user(row: sqlite3.Row, registered_courses: Tuple[str, ...]) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            phone=row["phone"],
            created_at=_parse_datetime(row["created_at"]),
            registered_courses=registered_courses,
        )

    @staticmethod
    def _row_to_course(row: sqlite3.Row) -> Course:
        return Course(
            id=row["id"],
            code=row["code"],
            title=row["title"],
            description=row["description"],
            credits=int(row["credits"]),
            instructor=row["instructor"],
            schedule=row["schedule"],
            capacity=int(row["capacity"]),
            enrolled=int(row["enrolled"]),
        )


__all__ = ["Database"]
