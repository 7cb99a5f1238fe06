from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Profile:
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    role: str = "student"  # student|instructor|admin


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A user's membership in a course.

    ``profile`` is None when the enrolled user no longer has a profile
    row (deleted account). Such enrollments are dropped from reports.
    """

    id: str
    user_id: str
    course_id: str
    enrolled_at: datetime
    role: str = "student"  # student|instructor
    profile: Profile | None = None
