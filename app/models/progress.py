from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from app.models.course import Course
from app.models.enrollment import Profile

LessonStatus = Literal["not_started", "in_progress", "completed"]

# ---------------------------------------------------------------------------
# Facts read from the store
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LessonProgress:
    """One (user, lesson) status record. At most one exists per pair."""

    user_id: str
    lesson_id: str
    status: LessonStatus = "not_started"
    completed_at: datetime | None = None
    lesson_title: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    id: str
    user_id: str
    quiz_id: str
    score: int | None = None  # 0-100, None until graded
    passed: bool | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None  # None while in progress
    quiz_title: str = ""
    lesson_title: str = ""

    @property
    def recency(self) -> datetime | None:
        return self.completed_at or self.started_at


# ---------------------------------------------------------------------------
# Derived aggregates (never persisted)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    completed_lessons: int
    total_lessons: int
    percentage: int

    def __post_init__(self) -> None:
        if self.total_lessons < 0 or self.completed_lessons < 0:
            raise ValueError(
                f"lesson counts must be non-negative "
                f"(completed={self.completed_lessons}, total={self.total_lessons})"
            )
        if self.completed_lessons > self.total_lessons:
            raise ValueError(
                f"completed lessons exceed total "
                f"({self.completed_lessons} > {self.total_lessons})"
            )
        if not 0 <= self.percentage <= 100:
            raise ValueError(f"percentage out of range: {self.percentage}")

    @property
    def completed(self) -> bool:
        return self.total_lessons > 0 and self.completed_lessons == self.total_lessons


@dataclass(frozen=True, slots=True)
class QuizScore:
    quiz_title: str
    lesson_title: str
    score: int | None
    passed: bool | None
    completed_at: datetime | None


@dataclass(frozen=True, slots=True)
class QuizStats:
    total_attempts: int
    average_score: int | None
    passed_quizzes: int


@dataclass(frozen=True, slots=True)
class RecentActivity:
    lesson_id: str
    lesson_title: str
    completed_at: datetime


@dataclass(frozen=True, slots=True)
class StudentProgress:
    profile: Profile
    enrolled_at: datetime
    progress: LessonCompletion
    quiz_stats: QuizStats
    quiz_scores: tuple[QuizScore, ...] = ()
    recent_activity: tuple[RecentActivity, ...] = ()
    # position in the course's enrollment order, 0 = earliest
    enrollment_rank: int = 0

    @property
    def user_id(self) -> str:
        return self.profile.id

    @property
    def completed(self) -> bool:
        return self.progress.completed


@dataclass(frozen=True, slots=True)
class CourseStats:
    total_lessons: int
    average_progress: int
    students_completed: int


@dataclass(frozen=True, slots=True)
class CourseProgressReport:
    """Per-course rollup served to instructor dashboards.

    Students are ordered by percentage descending; equal percentages keep
    enrollment order.
    """

    course: Course
    students: tuple[StudentProgress, ...]
    course_stats: CourseStats

    @property
    def total_students(self) -> int:
        return len(self.students)

    def find_student(self, user_id: str) -> StudentProgress | None:
        for student in self.students:
            if student.user_id == user_id:
                return student
        return None


@dataclass(frozen=True, slots=True)
class LearnerCourseProgress:
    """One learner's completion of one course (learner dashboard)."""

    course_id: str
    total_lessons: int
    completed_lessons: int
    percentage: int
    completed: bool
    first_incomplete_lesson_id: str | None = None
