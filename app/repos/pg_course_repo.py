"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import (
    CourseInstructorRow,
    CourseRow,
    LessonRow,
    ModuleRow,
    parse_uuid,
)
from app.models.course import Course, CourseHierarchy, CourseModule, Lesson, ModuleOutline


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: str) -> Course | None:
        cid = parse_uuid(course_id)
        if cid is None:
            return None
        row = await self._session.get(CourseRow, cid)
        if row is None:
            return None
        return _row_to_course(row)

    async def get_hierarchy(self, course_id: str) -> CourseHierarchy | None:
        course = await self.get_course(course_id)
        if course is None:
            return None

        module_rows = (
            (
                await self._session.execute(
                    select(ModuleRow)
                    .where(ModuleRow.course_id == parse_uuid(course_id))
                    .order_by(ModuleRow.position, ModuleRow.id)
                )
            )
            .scalars()
            .all()
        )
        if not module_rows:
            return CourseHierarchy(course=course)

        lesson_rows = (
            (
                await self._session.execute(
                    select(LessonRow)
                    .where(LessonRow.module_id.in_([m.id for m in module_rows]))
                    .order_by(LessonRow.position, LessonRow.id)
                )
            )
            .scalars()
            .all()
        )
        lessons_by_module: dict[str, list[Lesson]] = defaultdict(list)
        for row in lesson_rows:
            lesson = _row_to_lesson(row)
            lessons_by_module[lesson.module_id].append(lesson)

        outlines = tuple(
            ModuleOutline(
                module=_row_to_module(m),
                lessons=tuple(lessons_by_module.get(str(m.id), [])),
            )
            for m in module_rows
        )
        return CourseHierarchy(course=course, modules=outlines)

    async def list_course_ids(self) -> list[str]:
        rows = await self._session.execute(select(CourseRow.id).order_by(CourseRow.title))
        return [str(cid) for cid in rows.scalars().all()]

    async def list_instructor_course_ids(self, user_id: str) -> set[str]:
        uid = parse_uuid(user_id)
        if uid is None:
            return set()
        rows = await self._session.execute(
            select(CourseInstructorRow.course_id).where(
                CourseInstructorRow.instructor_id == uid
            )
        )
        return {str(cid) for cid in rows.scalars().all()}


def _row_to_course(row: CourseRow) -> Course:
    return Course(id=str(row.id), title=row.title)


def _row_to_module(row: ModuleRow) -> CourseModule:
    return CourseModule(
        id=str(row.id),
        course_id=str(row.course_id),
        position=row.position,
        title=row.title or "",
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=str(row.id),
        module_id=str(row.module_id),
        title=row.title,
        kind=row.kind,
        position=row.position,
        duration_minutes=row.duration_minutes or 0,
    )
