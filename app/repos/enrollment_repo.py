from __future__ import annotations

from collections.abc import Collection
from dataclasses import replace
from typing import Protocol

from app.models.enrollment import Enrollment, Profile


class EnrollmentRepo(Protocol):
    async def list_students(
        self,
        course_id: str,
        *,
        user_ids: Collection[str] | None = None,
        limit: int = 100,
    ) -> list[Enrollment]:
        """Student enrollments of a course, oldest first, with profiles joined.

        ``user_ids`` narrows the result to those users.  An enrollment
        whose profile is gone comes back with ``profile=None``.
        """
        ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}
        self._enrollments: list[Enrollment] = []

    def add_profile(self, profile: Profile) -> None:
        self._profiles[profile.id] = profile

    def remove_profile(self, user_id: str) -> None:
        self._profiles.pop(user_id, None)

    def add_enrollment(self, enrollment: Enrollment) -> None:
        # Profiles are joined on read, like the store does
        self._enrollments.append(replace(enrollment, profile=None))

    def clear(self) -> None:
        self._profiles.clear()
        self._enrollments.clear()

    async def list_students(
        self,
        course_id: str,
        *,
        user_ids: Collection[str] | None = None,
        limit: int = 100,
    ) -> list[Enrollment]:
        wanted = set(user_ids) if user_ids is not None else None
        rows = [
            e
            for e in self._enrollments
            if e.course_id == course_id
            and e.role == "student"
            and (wanted is None or e.user_id in wanted)
        ]
        rows.sort(key=lambda e: (e.enrolled_at, e.id))
        return [replace(e, profile=self._profiles.get(e.user_id)) for e in rows[:limit]]
