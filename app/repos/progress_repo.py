from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import replace
from typing import Protocol

from app.core.metrics import ORPHANED_RECORDS
from app.models.progress import LessonProgress, QuizAttempt
from app.repos.course_repo import InMemoryCourseRepo

logger = logging.getLogger(__name__)


class ProgressRepo(Protocol):
    async def list_lesson_progress(
        self, user_ids: Collection[str], lesson_ids: Collection[str]
    ) -> list[LessonProgress]:
        """Existing status records within user_ids × lesson_ids."""
        ...

    async def list_quiz_attempts(
        self, user_ids: Collection[str], course_id: str, *, limit: int = 500
    ) -> list[QuizAttempt]:
        """Attempts on the course's quizzes, most recent first, at most ``limit``."""
        ...


class InMemoryProgressRepo:
    """Progress facts keyed the way the store keys them.

    Titles are joined from the course repo on read; records whose
    lesson, module or course no longer exists are skipped.
    """

    def __init__(self, courses: InMemoryCourseRepo) -> None:
        self._courses = courses
        self._lesson_progress: dict[tuple[str, str], LessonProgress] = {}
        self._attempts: list[QuizAttempt] = []

    def record_lesson_progress(self, progress: LessonProgress) -> None:
        self._lesson_progress[(progress.user_id, progress.lesson_id)] = progress

    def record_quiz_attempt(self, attempt: QuizAttempt) -> None:
        self._attempts.append(attempt)

    def clear(self) -> None:
        self._lesson_progress.clear()
        self._attempts.clear()

    async def list_lesson_progress(
        self, user_ids: Collection[str], lesson_ids: Collection[str]
    ) -> list[LessonProgress]:
        users = set(user_ids)
        lessons = set(lesson_ids)
        results: list[LessonProgress] = []
        orphaned = 0
        for (user_id, lesson_id), record in self._lesson_progress.items():
            if user_id not in users or lesson_id not in lessons:
                continue
            found = self._courses.find_lesson(lesson_id)
            if found is None:
                orphaned += 1
                continue
            lesson, _course_id = found
            results.append(replace(record, lesson_title=lesson.title))

        if orphaned:
            ORPHANED_RECORDS.labels(kind="lesson_progress").inc(orphaned)
            logger.warning("Skipped %d orphaned lesson progress records", orphaned)
        return results

    async def list_quiz_attempts(
        self, user_ids: Collection[str], course_id: str, *, limit: int = 500
    ) -> list[QuizAttempt]:
        users = set(user_ids)
        results: list[QuizAttempt] = []
        orphaned = 0
        for attempt in self._attempts:
            if attempt.user_id not in users:
                continue
            found = self._courses.find_quiz(attempt.quiz_id)
            if found is None:
                orphaned += 1
                continue
            quiz, lesson, quiz_course_id = found
            if quiz_course_id != course_id:
                continue
            results.append(
                replace(attempt, quiz_title=quiz.title, lesson_title=lesson.title)
            )

        if orphaned:
            ORPHANED_RECORDS.labels(kind="quiz_attempt").inc(orphaned)
            logger.warning("Skipped %d orphaned quiz attempts", orphaned)

        dated = [a for a in results if a.recency is not None]
        undated = [a for a in results if a.recency is None]
        dated.sort(key=lambda a: a.recency, reverse=True)  # type: ignore[arg-type, return-value]
        return (dated + undated)[:limit]
