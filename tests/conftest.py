from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import course_repo, enrollment_repo, progress_repo
from app.main import app
from app.models.course import Course, CourseModule, Lesson, Quiz
from app.models.enrollment import Enrollment, Profile
from app.models.progress import LessonProgress, QuizAttempt
from app.services import token_service

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

T0 = datetime(2026, 9, 1, 9, 0, tzinfo=UTC)

COURSE_ID = "course-py"
INSTRUCTOR_ID = "instructor-1"


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Clear the in-memory repos between tests."""
    course_repo.clear()
    enrollment_repo.clear()
    progress_repo.clear()


@pytest.fixture(autouse=True)
def reset_caches() -> None:
    """Clear the result caches between tests."""
    app.state.course_report_cache.clear()
    app.state.learner_progress_cache.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with the default role (student)."""
    return mint_token()


@pytest.fixture
def instructor_token() -> str:
    return mint_token(username=INSTRUCTOR_ID, roles=["instructor"])


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Store seeding helpers
# ---------------------------------------------------------------------------


def add_course(
    course_id: str = COURSE_ID,
    title: str = "Python Basics",
    lessons_per_module: tuple[int, ...] = (2,),
) -> list[str]:
    """Create a course with modules of the given sizes; returns lesson ids in order."""
    course_repo.add_course(Course(id=course_id, title=title))
    lesson_ids = []
    for m, count in enumerate(lessons_per_module, start=1):
        module_id = f"{course_id}-m{m}"
        course_repo.add_module(CourseModule(id=module_id, course_id=course_id, position=m))
        for n in range(1, count + 1):
            lesson_id = f"{module_id}-l{n}"
            course_repo.add_lesson(
                Lesson(id=lesson_id, module_id=module_id, title=f"Lesson {m}.{n}", position=n)
            )
            lesson_ids.append(lesson_id)
    return lesson_ids


def add_quiz(quiz_id: str, lesson_id: str, title: str = "Checkpoint") -> None:
    course_repo.add_quiz(Quiz(id=quiz_id, lesson_id=lesson_id, title=title))


def enroll(
    user_id: str,
    course_id: str = COURSE_ID,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    email: str | None = None,
    enrolled_at: datetime = T0,
    with_profile: bool = True,
) -> None:
    if with_profile:
        enrollment_repo.add_profile(
            Profile(
                id=user_id,
                email=email or f"{user_id}@example.com",
                first_name=first_name,
                last_name=last_name,
            )
        )
    enrollment_repo.add_enrollment(
        Enrollment(
            id=f"enr-{user_id}-{course_id}",
            user_id=user_id,
            course_id=course_id,
            enrolled_at=enrolled_at,
        )
    )


def complete(user_id: str, lesson_id: str, at: datetime = T0) -> None:
    progress_repo.record_lesson_progress(
        LessonProgress(
            user_id=user_id, lesson_id=lesson_id, status="completed", completed_at=at
        )
    )


def attempt(
    user_id: str,
    quiz_id: str,
    score: int | None,
    *,
    at: datetime = T0,
    attempt_id: str | None = None,
) -> None:
    graded = score is not None
    progress_repo.record_quiz_attempt(
        QuizAttempt(
            id=attempt_id or f"att-{user_id}-{quiz_id}-{score}-{at.isoformat()}",
            user_id=user_id,
            quiz_id=quiz_id,
            score=score,
            passed=(score >= 70) if graded else None,
            started_at=at - timedelta(minutes=10),
            completed_at=at if graded else None,
        )
    )


def seed_reference_course() -> list[str]:
    """Two lessons, two students, one quiz; Alice finished, Bob halfway.

    Alice: both lessons, quiz 80 (passed)
    Bob:   first lesson, quiz 60 (failed)
    """
    lessons = add_course()
    add_quiz("quiz-1", lessons[0], title="Variables Quiz")
    course_repo.assign_instructor(INSTRUCTOR_ID, COURSE_ID)

    enroll("alice", first_name="Alice", last_name="Ng", enrolled_at=T0)
    enroll("bob", first_name="Bob", last_name="Stone", enrolled_at=T0 + timedelta(days=1))

    complete("alice", lessons[0], T0 + timedelta(days=2))
    complete("alice", lessons[1], T0 + timedelta(days=3))
    complete("bob", lessons[0], T0 + timedelta(days=2))
    attempt("alice", "quiz-1", 80, at=T0 + timedelta(days=2))
    attempt("bob", "quiz-1", 60, at=T0 + timedelta(days=2))
    return lessons
