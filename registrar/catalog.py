"""Initial course catalog."""
from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .database import Database
from .models import Course

logger = logging.getLogger("registrar.catalog")

DEFAULT_COURSES: Tuple[Dict[str, object], ...] = (
    {
        "code": "CS101",
        "title": "Intro to CS",
        "description": "Basics",
        "credits": 3,
        "instructor": "Dr. Smith",
        "schedule": "Mon/Wed 10:00",
        "capacity": 50,
    },
    {
        "code": "MATH201",
        "title": "Calculus I",
        "description": "Math",
        "credits": 4,
        "instructor": "Prof. John",
        "schedule": "Tue/Thu 1:00",
        "capacity": 40,
    },
)


def seed_courses(database: Database) -> List[Course]:
    """Insert the default courses when the catalog is empty.

    Returns the courses that were created, which is an empty list whenever
    the catalog already holds at least one course.
    """

    if database.count_courses() > 0:
        return []
    created = database.create_courses(DEFAULT_COURSES)
    logger.info("Courses seeded: %s", ", ".join(course.code for course in created))
    return created


__all__ = ["DEFAULT_COURSES", "seed_courses"]
