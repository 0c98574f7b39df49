"""Course listing and capacity-limited enrollment."""
from __future__ import annotations

import logging
from dataclasses import replace
from functools import partial
from typing import List

import anyio

from .config import Settings
from .database import Database
from .errors import CapacityError, DuplicateEnrollmentError, NotFoundError
from .models import Course

logger = logging.getLogger("registrar.enrollment")


class EnrollmentService:
    """Admit students into courses without exceeding each course's capacity.

    ``settings.enrollment_strategy`` selects how a seat is claimed:

    ``"atomic"``
        One storage transaction with a conditional increment. Concurrent
        enrollments can never overfill a course.
    ``"sequential"``
        Read the course, check it, then save the course and the user as two
        independent writes. Concurrent requests may both pass the capacity
        check, and the later write wins.

    The default is ``"atomic"`` so a fresh deployment cannot overfill a
    course. Set ``REGISTRAR_ENROLLMENT_STRATEGY=sequential`` to get the
    check-then-act behaviour instead.
    """

    def __init__(self, database: Database, settings: Settings) -> None:
        self._database = database
        self._strategy = settings.enrollment_strategy
        self._allow_duplicate = settings.allow_duplicate_enrollment

    @property
    def strategy(self) -> str:
        return self._strategy

    async def list_courses(self) -> List[Course]:
        return await anyio.to_thread.run_sync(self._database.list_courses)

    async def registered_courses(self, user_id: str) -> List[Course]:
        user = await anyio.to_thread.run_sync(self._database.get_user, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return await anyio.to_thread.run_sync(
            self._database.list_courses_by_id, list(user.registered_courses)
        )

    async def enroll(self, user_id: str, course_id: str) -> Course:
        if self._strategy == "atomic":
            course = await anyio.to_thread.run_sync(
                partial(
                    self._database.enroll_atomic,
                    user_id,
                    course_id,
                    allow_duplicate=self._allow_duplicate,
                )
            )
        else:
            course = await self._enroll_sequential(user_id, course_id)

        logger.info(
            "Student %s registered for %s (%s/%s seats taken)",
            user_id,
            course.code,
            course.enrolled,
            course.capacity,
        )
        return course

    async def _enroll_sequential(self, user_id: str, course_id: str) -> Course:
        course = await anyio.to_thread.run_sync(self._database.get_course, course_id)
        if course is None:
            raise NotFoundError("Course not found")
        if course.is_full:
            raise CapacityError("Course full")

        user = await anyio.to_thread.run_sync(self._database.get_user, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not self._allow_duplicate and course_id in user.registered_courses:
            raise DuplicateEnrollmentError("Already registered for this course")

        updated = replace(course, enrolled=course.enrolled + 1)
        registered = [*user.registered_courses, course_id]

        # Two independent writes: course first, then the user's list.
        await anyio.to_thread.run_sync(self._database.save_course, updated)
        await anyio.to_thread.run_sync(self._database.save_user_courses, user_id, registered)
        return updated


__all__ = ["EnrollmentService"]
