"""Response shapes for dashboard callers.

Maps aggregation output onto the JSON the dashboards consume: the full
per-course student list, summary cards, the expanded per-student view,
and the learner dashboard.  Only renaming, selection and display
defaults happen here; every figure comes from progress_aggregator.

Display defaults:
  - a missing quiz average renders as "N/A", never 0
  - a missing name renders as the email address
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.enrollment import Profile
from app.models.progress import (
    CourseProgressReport,
    LearnerCourseProgress,
    QuizScore,
    RecentActivity,
    StudentProgress,
)

SortBy = Literal["progress", "quiz", "name"]
SortOrder = Literal["asc", "desc"]

NOT_AVAILABLE = "N/A"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Course student progress (instructor view)
# ---------------------------------------------------------------------------


class CourseOut(_CamelModel):
    id: str
    title: str


class LessonProgressOut(_CamelModel):
    completed_lessons: int
    total_lessons: int
    percentage: int


class QuizStatsOut(_CamelModel):
    total_attempts: int
    average_score: int | None
    passed_quizzes: int


class QuizScoreOut(_CamelModel):
    quiz_title: str
    lesson_title: str
    score: int | None
    passed: bool | None
    completed_at: datetime | None


class RecentActivityOut(_CamelModel):
    lesson_title: str
    completed_at: datetime


class StudentProgressOut(_CamelModel):
    id: str
    email: str
    first_name: str | None
    last_name: str | None
    avatar_url: str | None
    enrolled_at: datetime
    progress: LessonProgressOut
    quiz_stats: QuizStatsOut
    quiz_scores: list[QuizScoreOut]
    recent_activity: list[RecentActivityOut]


class CourseStatsOut(_CamelModel):
    total_lessons: int
    average_progress: int
    students_completed: int


class CourseStudentProgressOut(_CamelModel):
    course: CourseOut
    students: list[StudentProgressOut]
    total_students: int
    course_stats: CourseStatsOut


class CourseSummaryCardOut(_CamelModel):
    course_id: str
    course_title: str
    total_students: int
    total_lessons: int
    average_progress: int
    students_completed: int


class QuizScoreDetailOut(QuizScoreOut):
    score_label: str
    status_label: str  # Passed|Failed|Pending


class StudentDetailOut(_CamelModel):
    id: str
    display_name: str
    initial: str
    email: str
    avatar_url: str | None
    enrolled_at: datetime
    completed: bool
    progress: LessonProgressOut
    progress_label: str
    lessons_label: str
    progress_badge: str
    quiz_stats: QuizStatsOut
    quiz_average_label: str
    quiz_badge: str
    quiz_scores: list[QuizScoreDetailOut]
    recent_activity: list[RecentActivityOut]


# ---------------------------------------------------------------------------
# Learner dashboard
# ---------------------------------------------------------------------------


class LearnerCourseProgressOut(_CamelModel):
    course_id: str
    total_lessons: int
    completed_lessons: int
    progress_percent: int
    completed: bool
    first_incomplete_lesson_id: str | None


class LearnerProgressOut(_CamelModel):
    progress: list[LearnerCourseProgressOut]


class CompletedLessonsOut(_CamelModel):
    completed_lessons: list[str]


class ErrorStateOut(_CamelModel):
    error: str
    retryable: bool


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def display_name(profile: Profile) -> str:
    name = " ".join(part for part in (profile.first_name, profile.last_name) if part)
    return name or profile.email


def format_percent(value: int | None) -> str:
    return f"{value}%" if value is not None else NOT_AVAILABLE


def progress_badge(percentage: int) -> str:
    if percentage >= 80:
        return "green"
    if percentage >= 60:
        return "yellow"
    if percentage >= 40:
        return "orange"
    return "red"


def quiz_badge(score: int | None) -> str:
    if score is None:
        return "gray"
    if score >= 80:
        return "green"
    if score >= 70:
        return "yellow"
    if score >= 60:
        return "orange"
    return "red"


def quiz_status_label(passed: bool | None) -> str:
    if passed is None:
        return "Pending"
    return "Passed" if passed else "Failed"


def sort_students(
    students: Iterable[StudentProgress],
    sort_by: SortBy = "progress",
    order: SortOrder = "desc",
) -> list[StudentProgress]:
    """Students that compare equal stay in enrollment order, in either direction."""
    by_enrollment = sorted(students, key=lambda s: s.enrollment_rank)
    reverse = order == "desc"
    if sort_by == "quiz":
        return sorted(
            by_enrollment, key=lambda s: s.quiz_stats.average_score or 0, reverse=reverse
        )
    if sort_by == "name":
        return sorted(
            by_enrollment, key=lambda s: display_name(s.profile).casefold(), reverse=reverse
        )
    return sorted(by_enrollment, key=lambda s: s.progress.percentage, reverse=reverse)


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _lesson_progress_out(student: StudentProgress) -> LessonProgressOut:
    return LessonProgressOut(
        completed_lessons=student.progress.completed_lessons,
        total_lessons=student.progress.total_lessons,
        percentage=student.progress.percentage,
    )


def _quiz_stats_out(student: StudentProgress) -> QuizStatsOut:
    return QuizStatsOut(
        total_attempts=student.quiz_stats.total_attempts,
        average_score=student.quiz_stats.average_score,
        passed_quizzes=student.quiz_stats.passed_quizzes,
    )


def _quiz_score_out(score: QuizScore) -> QuizScoreOut:
    return QuizScoreOut(
        quiz_title=score.quiz_title,
        lesson_title=score.lesson_title,
        score=score.score,
        passed=score.passed,
        completed_at=score.completed_at,
    )


def _recent_activity_out(activity: RecentActivity) -> RecentActivityOut:
    return RecentActivityOut(
        lesson_title=activity.lesson_title, completed_at=activity.completed_at
    )


def to_student_progress(student: StudentProgress) -> StudentProgressOut:
    profile = student.profile
    return StudentProgressOut(
        id=profile.id,
        email=profile.email,
        first_name=profile.first_name,
        last_name=profile.last_name,
        avatar_url=profile.avatar_url,
        enrolled_at=student.enrolled_at,
        progress=_lesson_progress_out(student),
        quiz_stats=_quiz_stats_out(student),
        quiz_scores=[_quiz_score_out(q) for q in student.quiz_scores],
        recent_activity=[_recent_activity_out(a) for a in student.recent_activity],
    )


def to_course_student_progress(
    report: CourseProgressReport,
    *,
    sort_by: SortBy = "progress",
    order: SortOrder = "desc",
) -> CourseStudentProgressOut:
    students = sort_students(report.students, sort_by, order)
    return CourseStudentProgressOut(
        course=CourseOut(id=report.course.id, title=report.course.title),
        students=[to_student_progress(s) for s in students],
        total_students=report.total_students,
        course_stats=CourseStatsOut(
            total_lessons=report.course_stats.total_lessons,
            average_progress=report.course_stats.average_progress,
            students_completed=report.course_stats.students_completed,
        ),
    )


def to_summary_card(report: CourseProgressReport) -> CourseSummaryCardOut:
    return CourseSummaryCardOut(
        course_id=report.course.id,
        course_title=report.course.title,
        total_students=report.total_students,
        total_lessons=report.course_stats.total_lessons,
        average_progress=report.course_stats.average_progress,
        students_completed=report.course_stats.students_completed,
    )


def to_student_detail(student: StudentProgress) -> StudentDetailOut:
    profile = student.profile
    name = display_name(profile)
    average = student.quiz_stats.average_score
    return StudentDetailOut(
        id=profile.id,
        display_name=name,
        initial=name[:1].upper(),
        email=profile.email,
        avatar_url=profile.avatar_url,
        enrolled_at=student.enrolled_at,
        completed=student.completed,
        progress=_lesson_progress_out(student),
        progress_label=format_percent(student.progress.percentage),
        lessons_label=(
            f"{student.progress.completed_lessons}/"
            f"{student.progress.total_lessons} lessons"
        ),
        progress_badge=progress_badge(student.progress.percentage),
        quiz_stats=_quiz_stats_out(student),
        quiz_average_label=format_percent(average),
        quiz_badge=quiz_badge(average),
        quiz_scores=[
            QuizScoreDetailOut(
                quiz_title=q.quiz_title,
                lesson_title=q.lesson_title,
                score=q.score,
                passed=q.passed,
                completed_at=q.completed_at,
                score_label=format_percent(q.score),
                status_label=quiz_status_label(q.passed),
            )
            for q in student.quiz_scores
        ],
        recent_activity=[_recent_activity_out(a) for a in student.recent_activity],
    )


def to_learner_progress(items: Sequence[LearnerCourseProgress]) -> LearnerProgressOut:
    return LearnerProgressOut(
        progress=[
            LearnerCourseProgressOut(
                course_id=p.course_id,
                total_lessons=p.total_lessons,
                completed_lessons=p.completed_lessons,
                progress_percent=p.percentage,
                completed=p.completed,
                first_incomplete_lesson_id=p.first_incomplete_lesson_id,
            )
            for p in items
        ]
    )


def error_state(message: str, *, retryable: bool = True) -> dict:
    """Body for a failed report: an explicit error the dashboard can offer a retry for."""
    return ErrorStateOut(error=message, retryable=retryable).model_dump(by_alias=True)
