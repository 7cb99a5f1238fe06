"""Student progress aggregation.

Pure functions from typed store facts to derived reports.  Nothing here
performs I/O; the services in progress_service.py do the reads and hand
the results over.

ROUNDING
---------
Percentages and averages are rounded half-up on exact fractions, so
1/8 of the lessons is 13%, 2/3 is 67%, and an average of 69.5 is 70.
Python's built-in round() rounds half to even and would turn 12.5 into
12; it is not used for any reported figure.

COMPLETION
-----------
A course with zero lessons is never "completed": the percentage is 0 and
the completed flag is False for every student, rather than a vacuous
100% of nothing.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Callable, Collection, Iterable, Sequence
from datetime import datetime
from fractions import Fraction
from typing import TypeVar

from app.models.course import CourseHierarchy
from app.models.enrollment import Enrollment
from app.models.progress import (
    CourseProgressReport,
    CourseStats,
    LearnerCourseProgress,
    LessonCompletion,
    LessonProgress,
    QuizAttempt,
    QuizScore,
    QuizStats,
    RecentActivity,
    StudentProgress,
)

RECENT_QUIZ_SCORES_LIMIT = 3
RECENT_ACTIVITY_LIMIT = 2

T = TypeVar("T")


def round_half_up(value: Fraction) -> int:
    """Round a non-negative fraction to the nearest integer, .5 going up."""
    if value < 0:
        raise ValueError(f"cannot round negative value {value}")
    return math.floor(value + Fraction(1, 2))


def percentage_of(completed: int, total: int) -> int:
    if completed < 0 or total < 0:
        raise ValueError(
            f"lesson counts must be non-negative (completed={completed}, total={total})"
        )
    if total == 0:
        return 0
    return round_half_up(Fraction(100 * completed, total))


def compute_completion(completed: int, total: int) -> LessonCompletion:
    return LessonCompletion(
        completed_lessons=completed,
        total_lessons=total,
        percentage=percentage_of(completed, total),
    )


def count_completed_lessons(
    lesson_ids: Collection[str], records: Iterable[LessonProgress]
) -> int:
    """Distinct lessons of the course with a ``completed`` status record."""
    known = set(lesson_ids)
    return len({r.lesson_id for r in records if r.is_completed and r.lesson_id in known})


def _most_recent_first(
    items: Iterable[T], key: Callable[[T], datetime | None]
) -> list[T]:
    # Undated items go last; ties keep their incoming order.
    items = list(items)
    dated = [item for item in items if key(item) is not None]
    undated = [item for item in items if key(item) is None]
    return sorted(dated, key=key, reverse=True) + undated  # type: ignore[arg-type, return-value]


def summarize_quiz_attempts(
    attempts: Iterable[QuizAttempt],
    *,
    limit: int = RECENT_QUIZ_SCORES_LIMIT,
) -> tuple[QuizStats, tuple[QuizScore, ...]]:
    """Quiz rollup for one student.

    The average covers every scored attempt; only the ``limit`` most
    recent scored attempts are returned for display.  Attempts without
    a score (in progress, ungraded) count towards ``total_attempts``
    but never towards the average.
    """
    ordered = _most_recent_first(attempts, key=lambda a: a.recency)
    scored = [a for a in ordered if a.score is not None]

    average: int | None = None
    if scored:
        total = sum((Fraction(a.score) for a in scored), Fraction(0))  # type: ignore[arg-type]
        average = round_half_up(total / len(scored))

    stats = QuizStats(
        total_attempts=len(ordered),
        average_score=average,
        passed_quizzes=sum(1 for a in ordered if a.passed is True),
    )
    recent = tuple(
        QuizScore(
            quiz_title=a.quiz_title or "Unknown Quiz",
            lesson_title=a.lesson_title or "Unknown Lesson",
            score=a.score,
            passed=a.passed,
            completed_at=a.completed_at,
        )
        for a in scored[:limit]
    )
    return stats, recent


def select_recent_activity(
    records: Iterable[LessonProgress],
    *,
    limit: int = RECENT_ACTIVITY_LIMIT,
) -> tuple[RecentActivity, ...]:
    finished = [r for r in records if r.completed_at is not None]
    latest = _most_recent_first(finished, key=lambda r: r.completed_at)[:limit]
    return tuple(
        RecentActivity(
            lesson_id=r.lesson_id,
            lesson_title=r.lesson_title or "Unknown Lesson",
            completed_at=r.completed_at,  # type: ignore[arg-type]
        )
        for r in latest
    )


def _group_by_user(records: Iterable[T], user_id: Callable[[T], str]) -> dict[str, list[T]]:
    grouped: dict[str, list[T]] = defaultdict(list)
    for record in records:
        grouped[user_id(record)].append(record)
    return grouped


def aggregate_course_progress(
    hierarchy: CourseHierarchy,
    enrollments: Sequence[Enrollment],
    lesson_progress: Iterable[LessonProgress],
    quiz_attempts: Iterable[QuizAttempt],
) -> CourseProgressReport:
    """Build the per-student and course-level rollup for one course.

    - enrollments without a profile are left out of the report
    - a user enrolled twice is reported once, at the first enrollment
    - progress records for lessons outside the hierarchy are ignored
    - students are ordered by percentage, highest first; equal
      percentages keep enrollment order
    """
    lesson_ids = hierarchy.lesson_ids()
    total_lessons = len(lesson_ids)
    known = set(lesson_ids)

    progress_by_user = _group_by_user(
        (r for r in lesson_progress if r.lesson_id in known), lambda r: r.user_id
    )
    attempts_by_user = _group_by_user(quiz_attempts, lambda a: a.user_id)

    students: list[StudentProgress] = []
    seen: set[str] = set()
    for enrollment in enrollments:
        if enrollment.profile is None or enrollment.user_id in seen:
            continue
        seen.add(enrollment.user_id)

        records = progress_by_user.get(enrollment.user_id, [])
        quiz_stats, quiz_scores = summarize_quiz_attempts(
            attempts_by_user.get(enrollment.user_id, [])
        )
        students.append(
            StudentProgress(
                profile=enrollment.profile,
                enrolled_at=enrollment.enrolled_at,
                progress=compute_completion(
                    count_completed_lessons(lesson_ids, records), total_lessons
                ),
                quiz_stats=quiz_stats,
                quiz_scores=quiz_scores,
                recent_activity=select_recent_activity(records),
                enrollment_rank=len(students),
            )
        )

    students.sort(key=lambda s: s.progress.percentage, reverse=True)

    if students:
        average_progress = round_half_up(
            Fraction(sum(s.progress.percentage for s in students), len(students))
        )
    else:
        average_progress = 0

    return CourseProgressReport(
        course=hierarchy.course,
        students=tuple(students),
        course_stats=CourseStats(
            total_lessons=total_lessons,
            average_progress=average_progress,
            students_completed=sum(1 for s in students if s.completed),
        ),
    )


def completed_lesson_ids(
    hierarchy: CourseHierarchy, records: Iterable[LessonProgress]
) -> list[str]:
    """Ids of completed lessons, in course order."""
    done = {r.lesson_id for r in records if r.is_completed}
    return [lesson_id for lesson_id in hierarchy.lesson_ids() if lesson_id in done]


def summarize_learner_progress(
    course_id: str,
    hierarchy: CourseHierarchy | None,
    records: Iterable[LessonProgress],
) -> LearnerCourseProgress:
    """One learner's progress through one course.

    An unknown course (``hierarchy`` None) reports zero progress rather
    than failing, so one stale id does not break a whole dashboard.
    """
    if hierarchy is None:
        return LearnerCourseProgress(
            course_id=course_id,
            total_lessons=0,
            completed_lessons=0,
            percentage=0,
            completed=False,
        )

    lesson_ids = hierarchy.lesson_ids()
    done = {r.lesson_id for r in records if r.is_completed}
    completion = compute_completion(
        sum(1 for lesson_id in lesson_ids if lesson_id in done), len(lesson_ids)
    )
    first_incomplete = next(
        (lesson_id for lesson_id in lesson_ids if lesson_id not in done), None
    )
    return LearnerCourseProgress(
        course_id=course_id,
        total_lessons=completion.total_lessons,
        completed_lessons=completion.completed_lessons,
        percentage=completion.percentage,
        completed=completion.completed,
        first_incomplete_lesson_id=first_incomplete,
    )
