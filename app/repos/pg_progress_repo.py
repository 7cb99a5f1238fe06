"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.metrics import ORPHANED_RECORDS
from app.db.tables import (
    LessonProgressRow,
    LessonRow,
    ModuleRow,
    QuizAttemptRow,
    QuizRow,
    parse_uuid,
    parse_uuids,
)
from app.models.progress import LessonProgress, QuizAttempt

logger = logging.getLogger(__name__)


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_lesson_progress(
        self, user_ids: Collection[str], lesson_ids: Collection[str]
    ) -> list[LessonProgress]:
        users = parse_uuids(user_ids)
        lessons = parse_uuids(lesson_ids)
        if not users or not lessons:
            return []

        # Outer join so progress rows whose lesson vanished can be counted
        stmt = (
            select(LessonProgressRow, LessonRow.title)
            .outerjoin(LessonRow, LessonRow.id == LessonProgressRow.lesson_id)
            .where(
                LessonProgressRow.user_id.in_(users),
                LessonProgressRow.lesson_id.in_(lessons),
            )
        )
        rows = (await self._session.execute(stmt)).all()

        results: list[LessonProgress] = []
        orphaned = 0
        for row, lesson_title in rows:
            if lesson_title is None:
                orphaned += 1
                continue
            results.append(_row_to_lesson_progress(row, lesson_title))

        if orphaned:
            ORPHANED_RECORDS.labels(kind="lesson_progress").inc(orphaned)
            logger.warning("Skipped %d orphaned lesson progress records", orphaned)
        return results

    async def list_quiz_attempts(
        self, user_ids: Collection[str], course_id: str, *, limit: int = 500
    ) -> list[QuizAttempt]:
        users = parse_uuids(user_ids)
        cid = parse_uuid(course_id)
        if not users or cid is None:
            return []

        # Inner joins: attempts whose quiz no longer reaches a course through
        # lesson and module are left out here and counted separately.
        recency = func.coalesce(QuizAttemptRow.completed_at, QuizAttemptRow.started_at)
        stmt = (
            select(QuizAttemptRow, QuizRow.title, LessonRow.title)
            .join(QuizRow, QuizRow.id == QuizAttemptRow.quiz_id)
            .join(LessonRow, LessonRow.id == QuizRow.lesson_id)
            .join(ModuleRow, ModuleRow.id == LessonRow.module_id)
            .where(QuizAttemptRow.user_id.in_(users), ModuleRow.course_id == cid)
            .order_by(recency.desc().nulls_last(), QuizAttemptRow.id)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).all()

        orphaned = await self._count_orphaned_attempts(users)
        if orphaned:
            ORPHANED_RECORDS.labels(kind="quiz_attempt").inc(orphaned)
            logger.warning("Skipped %d orphaned quiz attempts", orphaned)

        return [
            _row_to_quiz_attempt(row, quiz_title, lesson_title)
            for row, quiz_title, lesson_title in rows
        ]

    async def _count_orphaned_attempts(self, users: list[uuid.UUID]) -> int:
        """Attempts by these users whose quiz, lesson or module row is gone."""
        stmt = (
            select(func.count(QuizAttemptRow.id))
            .outerjoin(QuizRow, QuizRow.id == QuizAttemptRow.quiz_id)
            .outerjoin(LessonRow, LessonRow.id == QuizRow.lesson_id)
            .outerjoin(ModuleRow, ModuleRow.id == LessonRow.module_id)
            .where(QuizAttemptRow.user_id.in_(users), ModuleRow.id.is_(None))
        )
        return (await self._session.scalar(stmt)) or 0


def _row_to_lesson_progress(row: LessonProgressRow, lesson_title: str) -> LessonProgress:
    return LessonProgress(
        user_id=str(row.user_id),
        lesson_id=str(row.lesson_id),
        status=row.status,  # type: ignore[arg-type]
        completed_at=row.completed_at,
        lesson_title=lesson_title,
    )


def _row_to_quiz_attempt(
    row: QuizAttemptRow, quiz_title: str, lesson_title: str
) -> QuizAttempt:
    return QuizAttempt(
        id=str(row.id),
        user_id=str(row.user_id),
        quiz_id=str(row.quiz_id),
        score=row.score,
        passed=row.passed,
        started_at=row.started_at,
        completed_at=row.completed_at,
        quiz_title=quiz_title,
        lesson_title=lesson_title,
    )
