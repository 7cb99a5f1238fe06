"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseEnrollmentRow, ProfileRow, parse_uuid, parse_uuids
from app.models.enrollment import Enrollment, Profile


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_students(
        self,
        course_id: str,
        *,
        user_ids: Collection[str] | None = None,
        limit: int = 100,
    ) -> list[Enrollment]:
        cid = parse_uuid(course_id)
        if cid is None:
            return []

        stmt = (
            select(CourseEnrollmentRow, ProfileRow)
            .outerjoin(ProfileRow, ProfileRow.id == CourseEnrollmentRow.user_id)
            .where(
                CourseEnrollmentRow.course_id == cid,
                CourseEnrollmentRow.role == "student",
            )
        )
        if user_ids is not None:
            stmt = stmt.where(CourseEnrollmentRow.user_id.in_(parse_uuids(user_ids)))
        stmt = stmt.order_by(
            CourseEnrollmentRow.enrolled_at, CourseEnrollmentRow.id
        ).limit(limit)

        rows = (await self._session.execute(stmt)).all()
        return [_row_to_enrollment(enrollment, profile) for enrollment, profile in rows]


def _row_to_profile(row: ProfileRow) -> Profile:
    return Profile(
        id=str(row.id),
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        avatar_url=row.avatar_url,
        role=row.role,
    )


def _row_to_enrollment(row: CourseEnrollmentRow, profile: ProfileRow | None) -> Enrollment:
    return Enrollment(
        id=str(row.id),
        user_id=str(row.user_id),
        course_id=str(row.course_id),
        enrolled_at=row.enrolled_at,
        role=row.role,
        profile=_row_to_profile(profile) if profile is not None else None,
    )
