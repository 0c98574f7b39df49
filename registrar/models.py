"""Domain models for students, courses and signed-in identities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple


@dataclass(frozen=True)
class User:
    """Represents a student account stored in the registration database."""

    id: str
    username: str
    email: str
    phone: str
    created_at: datetime
    registered_courses: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Course:
    """A catalog entry with a fixed seat capacity."""

    id: str
    code: str
    title: str
    description: str
    credits: int
    instructor: str
    schedule: str
    capacity: int
    enrolled: int = 0

    @property
    def is_full(self) -> bool:
        return self.enrolled >= self.capacity


@dataclass(frozen=True)
class SessionIdentity:
    """The minimal identity bound to a browser session."""

    id: str
    username: str
    email: str


__all__ = ["Course", "SessionIdentity", "User"]
