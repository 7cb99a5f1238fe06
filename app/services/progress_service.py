"""Progress reporting services.

Each request builds a service around that request's repositories and
the process-wide caches, then asks it for a report:

    cache lookup → miss → hierarchy → enrollments → progress facts
                 → aggregate → cache → return

Errors:
  CourseNotFoundError      the course id does not resolve (→ 404)
  UpstreamUnavailableError the store could not be read (→ 503); never
                           cached and never turned into an empty report,
                           so an outage cannot look like a course with
                           no students
"""

from __future__ import annotations

import logging
import time
from collections.abc import Collection, Sequence

from sqlalchemy.exc import SQLAlchemyError

from app.core.metrics import AGGREGATION_DURATION, ORPHANED_RECORDS, UPSTREAM_FAILURES
from app.models.course import CourseHierarchy
from app.models.progress import CourseProgressReport, LearnerCourseProgress
from app.repos.course_repo import CourseRepo
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.progress_repo import ProgressRepo
from app.services.cache import TTLCache
from app.services.progress_aggregator import (
    aggregate_course_progress,
    completed_lesson_ids,
    summarize_learner_progress,
)

logger = logging.getLogger(__name__)

# asyncpg and socket errors surface as OSError subclasses when they are
# not already wrapped by SQLAlchemy (TimeoutError is one of them).
UPSTREAM_ERRORS = (SQLAlchemyError, OSError)

CourseReportKey = tuple[str, tuple[str, ...] | None]
CourseReportCache = TTLCache[CourseReportKey, CourseProgressReport]
LearnerProgressCache = TTLCache[tuple[str, tuple[str, ...]], tuple[LearnerCourseProgress, ...]]


class ProgressError(Exception):
    """Base class for progress reporting errors."""


class CourseNotFoundError(ProgressError):
    def __init__(self, course_id: str) -> None:
        self.course_id = course_id
        super().__init__(f"course not found: {course_id}")


class UpstreamUnavailableError(ProgressError):
    """The data store failed or timed out.  Callers may retry."""


def course_report_cache_key(
    course_id: str, student_user_ids: Collection[str] | None = None
) -> CourseReportKey:
    """(course id, sorted distinct filter ids), or (course id, None) unfiltered."""
    if student_user_ids is None:
        return (course_id, None)
    return (course_id, tuple(sorted(set(student_user_ids))))


class StudentProgressService:
    """Per-course student progress for instructor views."""

    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        progress: ProgressRepo,
        cache: CourseReportCache,
        *,
        max_students: int = 100,
        max_quiz_attempts: int = 500,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._progress = progress
        self._cache = cache
        self._max_students = max_students
        self._max_quiz_attempts = max_quiz_attempts

    async def get_course_report(
        self,
        course_id: str,
        student_user_ids: Collection[str] | None = None,
    ) -> CourseProgressReport:
        """Report for ``course_id``, served from cache when fresh.

        ``student_user_ids`` restricts the report to those enrolled
        users; None means every student enrollment of the course.
        """
        key = course_report_cache_key(course_id, student_user_ids)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Progress report cache hit key=%s", key)
            return cached

        logger.debug("Progress report cache miss key=%s", key)
        start = time.monotonic()
        try:
            report = await self._build_report(course_id, student_user_ids)
        except UPSTREAM_ERRORS as e:
            UPSTREAM_FAILURES.labels(operation="course_report").inc()
            logger.exception(
                "Store read failed while building report course=%s",
                course_id,
                extra={"course_id": course_id},
            )
            raise UpstreamUnavailableError(
                f"progress data for course {course_id} is temporarily unavailable"
            ) from e
        elapsed = time.monotonic() - start
        AGGREGATION_DURATION.labels(report="course").observe(elapsed)

        self._cache.put(key, report)
        logger.info(
            "Built progress report course=%s students=%d lessons=%d (%.1fms)",
            course_id,
            report.total_students,
            report.course_stats.total_lessons,
            elapsed * 1000,
            extra={"course_id": course_id},
        )
        return report

    async def get_course_reports(
        self, course_ids: Sequence[str]
    ) -> list[CourseProgressReport]:
        """Reports for several courses; ids that no longer resolve are skipped."""
        reports = []
        for course_id in course_ids:
            try:
                reports.append(await self.get_course_report(course_id))
            except CourseNotFoundError:
                logger.warning("Course disappeared while listing reports course=%s", course_id)
        return reports

    async def _build_report(
        self, course_id: str, student_user_ids: Collection[str] | None
    ) -> CourseProgressReport:
        hierarchy = await self._courses.get_hierarchy(course_id)
        if hierarchy is None:
            raise CourseNotFoundError(course_id)

        enrollments = await self._enrollments.list_students(
            course_id, user_ids=student_user_ids, limit=self._max_students
        )
        orphaned = sum(1 for e in enrollments if e.profile is None)
        if orphaned:
            ORPHANED_RECORDS.labels(kind="enrollment").inc(orphaned)
            logger.warning(
                "Skipped %d enrollments without a profile course=%s",
                orphaned,
                course_id,
                extra={"course_id": course_id},
            )

        user_ids = [e.user_id for e in enrollments if e.profile is not None]
        lesson_ids = hierarchy.lesson_ids()

        lesson_progress = []
        quiz_attempts = []
        if user_ids:
            if lesson_ids:
                lesson_progress = await self._progress.list_lesson_progress(
                    user_ids, lesson_ids
                )
            quiz_attempts = await self._progress.list_quiz_attempts(
                user_ids, course_id, limit=self._max_quiz_attempts
            )

        return aggregate_course_progress(
            hierarchy, enrollments, lesson_progress, quiz_attempts
        )


class LearnerProgressService:
    """The calling learner's own progress across courses."""

    def __init__(
        self,
        courses: CourseRepo,
        progress: ProgressRepo,
        cache: LearnerProgressCache,
    ) -> None:
        self._courses = courses
        self._progress = progress
        self._cache = cache

    async def get_dashboard_progress(
        self, user_id: str, course_ids: Sequence[str]
    ) -> list[LearnerCourseProgress]:
        """Progress for each requested course, in request order (duplicates dropped)."""
        ids = list(dict.fromkeys(course_ids))
        if not ids:
            return []

        key = (user_id, tuple(sorted(ids)))
        summaries = self._cache.get(key)
        if summaries is None:
            start = time.monotonic()
            try:
                summaries = await self._build_summaries(user_id, key[1])
            except UPSTREAM_ERRORS as e:
                UPSTREAM_FAILURES.labels(operation="learner_progress").inc()
                logger.exception("Store read failed while building dashboard user=%s", user_id)
                raise UpstreamUnavailableError(
                    "dashboard progress is temporarily unavailable"
                ) from e
            AGGREGATION_DURATION.labels(report="learner").observe(time.monotonic() - start)
            self._cache.put(key, summaries)

        by_course = {s.course_id: s for s in summaries}
        return [by_course[course_id] for course_id in ids]

    async def list_completed_lessons(self, user_id: str, course_id: str) -> list[str]:
        try:
            hierarchy = await self._courses.get_hierarchy(course_id)
            if hierarchy is None:
                raise CourseNotFoundError(course_id)
            lesson_ids = hierarchy.lesson_ids()
            records = (
                await self._progress.list_lesson_progress([user_id], lesson_ids)
                if lesson_ids
                else []
            )
        except UPSTREAM_ERRORS as e:
            UPSTREAM_FAILURES.labels(operation="completed_lessons").inc()
            logger.exception(
                "Store read failed while listing completed lessons course=%s",
                course_id,
                extra={"course_id": course_id},
            )
            raise UpstreamUnavailableError(
                f"progress data for course {course_id} is temporarily unavailable"
            ) from e
        return completed_lesson_ids(hierarchy, records)

    async def _build_summaries(
        self, user_id: str, course_ids: Sequence[str]
    ) -> tuple[LearnerCourseProgress, ...]:
        hierarchies: dict[str, CourseHierarchy | None] = {}
        for course_id in course_ids:
            hierarchies[course_id] = await self._courses.get_hierarchy(course_id)

        lesson_ids = [
            lesson_id
            for hierarchy in hierarchies.values()
            if hierarchy is not None
            for lesson_id in hierarchy.lesson_ids()
        ]
        records = (
            await self._progress.list_lesson_progress([user_id], lesson_ids)
            if lesson_ids
            else []
        )
        return tuple(
            summarize_learner_progress(course_id, hierarchies[course_id], records)
            for course_id in course_ids
        )
