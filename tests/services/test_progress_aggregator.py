"""Tests for the pure aggregation functions.

No store, no cache: hierarchies and facts are built by hand so each
rule can be checked in isolation.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from fractions import Fraction

import pytest

from app.models.course import Course, CourseHierarchy, CourseModule, Lesson, ModuleOutline
from app.models.enrollment import Enrollment, Profile
from app.models.progress import LessonCompletion, LessonProgress, QuizAttempt
from app.services.progress_aggregator import (
    aggregate_course_progress,
    completed_lesson_ids,
    compute_completion,
    percentage_of,
    round_half_up,
    select_recent_activity,
    summarize_learner_progress,
    summarize_quiz_attempts,
)

T0 = datetime(2026, 9, 1, 9, 0, tzinfo=UTC)


def _hierarchy(*module_sizes: int, course_id: str = "c1") -> CourseHierarchy:
    outlines = []
    for m, size in enumerate(module_sizes, start=1):
        module = CourseModule(id=f"m{m}", course_id=course_id, position=m)
        lessons = tuple(
            Lesson(id=f"m{m}-l{n}", module_id=module.id, title=f"Lesson {m}.{n}", position=n)
            for n in range(1, size + 1)
        )
        outlines.append(ModuleOutline(module=module, lessons=lessons))
    return CourseHierarchy(course=Course(id=course_id, title="Course"), modules=tuple(outlines))


def _enrollment(user_id: str, *, days: int = 0, profile: bool = True) -> Enrollment:
    return Enrollment(
        id=f"e-{user_id}",
        user_id=user_id,
        course_id="c1",
        enrolled_at=T0 + timedelta(days=days),
        profile=Profile(id=user_id, email=f"{user_id}@example.com") if profile else None,
    )


def _done(user_id: str, lesson_id: str, *, hours: int = 0) -> LessonProgress:
    return LessonProgress(
        user_id=user_id,
        lesson_id=lesson_id,
        status="completed",
        completed_at=T0 + timedelta(hours=hours),
        lesson_title=lesson_id,
    )


def _attempt(
    user_id: str, score: int | None, *, hours: int = 0, passed: bool | None = None
) -> QuizAttempt:
    when = T0 + timedelta(hours=hours)
    return QuizAttempt(
        id=f"a-{user_id}-{hours}",
        user_id=user_id,
        quiz_id="q1",
        score=score,
        passed=passed,
        started_at=when,
        completed_at=when if score is not None else None,
        quiz_title="Quiz",
        lesson_title="Lesson",
    )


# ---- rounding ----


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Fraction(1, 2), 1),
        (Fraction(5, 2), 3),
        (Fraction(25, 2), 13),
        (Fraction(200, 3), 67),
        (Fraction(100, 3), 33),
        (Fraction(0), 0),
    ],
)
def test_round_half_up(value: Fraction, expected: int) -> None:
    assert round_half_up(value) == expected


def test_round_half_up_rejects_negative() -> None:
    with pytest.raises(ValueError):
        round_half_up(Fraction(-1, 2))


def test_percentage_rounds_one_eighth_up() -> None:
    assert percentage_of(1, 8) == 13


def test_percentage_of_zero_lessons_is_zero() -> None:
    assert percentage_of(0, 0) == 0


def test_percentage_rejects_negative_counts() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        percentage_of(-1, 4)


def test_completion_rejects_more_completed_than_total() -> None:
    with pytest.raises(ValueError, match="exceed total"):
        compute_completion(3, 2)


def test_completion_rejects_out_of_range_percentage() -> None:
    with pytest.raises(ValueError, match="out of range"):
        LessonCompletion(completed_lessons=1, total_lessons=2, percentage=150)


def test_zero_lessons_is_never_completed() -> None:
    completion = compute_completion(0, 0)
    assert completion.percentage == 0
    assert completion.completed is False


# ---- per-student progress ----


def test_one_of_two_lessons_is_fifty_percent() -> None:
    report = aggregate_course_progress(
        _hierarchy(2), [_enrollment("u1")], [_done("u1", "m1-l1")], []
    )
    progress = report.students[0].progress
    assert progress.completed_lessons == 1
    assert progress.total_lessons == 2
    assert progress.percentage == 50
    assert progress.completed is False


def test_all_lessons_completed_marks_student_completed() -> None:
    report = aggregate_course_progress(
        _hierarchy(1, 1),
        [_enrollment("u1")],
        [_done("u1", "m1-l1"), _done("u1", "m2-l1")],
        [],
    )
    student = report.students[0]
    assert student.progress.percentage == 100
    assert student.completed is True
    assert report.course_stats.students_completed == 1


def test_in_progress_records_do_not_count() -> None:
    in_progress = LessonProgress(user_id="u1", lesson_id="m1-l1", status="in_progress")
    report = aggregate_course_progress(_hierarchy(2), [_enrollment("u1")], [in_progress], [])
    assert report.students[0].progress.completed_lessons == 0


def test_progress_for_lessons_outside_the_course_is_ignored() -> None:
    report = aggregate_course_progress(
        _hierarchy(2),
        [_enrollment("u1")],
        [_done("u1", "m1-l1"), _done("u1", "other-course-lesson")],
        [],
    )
    assert report.students[0].progress.completed_lessons == 1


def test_zero_lesson_course_reports_zero_for_everyone() -> None:
    report = aggregate_course_progress(
        _hierarchy(), [_enrollment("u1"), _enrollment("u2", days=1)], [], []
    )
    assert [s.progress.percentage for s in report.students] == [0, 0]
    assert all(s.completed is False for s in report.students)
    assert report.course_stats.average_progress == 0
    assert report.course_stats.students_completed == 0


def test_no_students_keeps_total_lessons() -> None:
    report = aggregate_course_progress(_hierarchy(3), [], [], [])
    assert report.students == ()
    assert report.total_students == 0
    assert report.course_stats.total_lessons == 3
    assert report.course_stats.average_progress == 0
    assert report.course_stats.students_completed == 0


def test_enrollment_without_profile_is_excluded() -> None:
    report = aggregate_course_progress(
        _hierarchy(1),
        [_enrollment("u1"), _enrollment("ghost", profile=False)],
        [_done("ghost", "m1-l1")],
        [],
    )
    assert [s.user_id for s in report.students] == ["u1"]
    assert report.course_stats.average_progress == 0


def test_duplicate_enrollment_is_reported_once() -> None:
    report = aggregate_course_progress(
        _hierarchy(1), [_enrollment("u1"), _enrollment("u1", days=3)], [], []
    )
    assert report.total_students == 1
    assert report.students[0].enrolled_at == T0


# ---- ordering ----


def test_students_sorted_by_percentage_descending() -> None:
    report = aggregate_course_progress(
        _hierarchy(4),
        [_enrollment("low"), _enrollment("high", days=1), _enrollment("mid", days=2)],
        [
            _done("high", "m1-l1"),
            _done("high", "m1-l2"),
            _done("high", "m1-l3"),
            _done("mid", "m1-l1"),
            _done("mid", "m1-l2"),
        ],
        [],
    )
    assert [s.user_id for s in report.students] == ["high", "mid", "low"]


def test_equal_percentages_keep_enrollment_order() -> None:
    enrollments = [_enrollment(f"u{i}", days=i) for i in range(5)]
    report = aggregate_course_progress(_hierarchy(2), enrollments, [], [])
    assert [s.user_id for s in report.students] == ["u0", "u1", "u2", "u3", "u4"]


def test_students_carry_enrollment_rank() -> None:
    report = aggregate_course_progress(
        _hierarchy(1),
        [_enrollment("first"), _enrollment("ghost", profile=False), _enrollment("second", days=1)],
        [_done("second", "m1-l1")],
        [],
    )
    ranks = {s.user_id: s.enrollment_rank for s in report.students}
    assert ranks == {"first": 0, "second": 1}


def test_aggregation_is_idempotent() -> None:
    args = (
        _hierarchy(2, 1),
        [_enrollment("u1"), _enrollment("u2", days=1)],
        [_done("u1", "m1-l1", hours=1), _done("u2", "m2-l1", hours=2)],
        [_attempt("u1", 90, hours=3, passed=True)],
    )
    assert aggregate_course_progress(*args) == aggregate_course_progress(*args)


# ---- course stats ----


def test_average_progress_is_rounded_mean() -> None:
    # 1/3 → 33, 2/3 → 67, 0 → 0: mean 100/3 rounds to 33
    report = aggregate_course_progress(
        _hierarchy(3),
        [_enrollment("a"), _enrollment("b", days=1), _enrollment("c", days=2)],
        [_done("a", "m1-l1"), _done("b", "m1-l1"), _done("b", "m1-l2")],
        [],
    )
    assert [s.progress.percentage for s in report.students] == [67, 33, 0]
    assert report.course_stats.average_progress == 33


def test_average_progress_rounds_half_up() -> None:
    # 50 and 25 average to 37.5
    report = aggregate_course_progress(
        _hierarchy(4),
        [_enrollment("a"), _enrollment("b", days=1)],
        [_done("a", "m1-l1"), _done("a", "m1-l2"), _done("b", "m1-l1")],
        [],
    )
    assert report.course_stats.average_progress == 38


# ---- quizzes ----


def test_quiz_average_excludes_unscored_attempts() -> None:
    stats, scores = summarize_quiz_attempts(
        [
            _attempt("u1", 80, hours=1, passed=True),
            _attempt("u1", 60, hours=2, passed=False),
            _attempt("u1", None, hours=3),
        ]
    )
    assert stats.total_attempts == 3
    assert stats.average_score == 70
    assert stats.passed_quizzes == 1
    assert [s.score for s in scores] == [60, 80]


def test_quiz_average_is_none_without_scores() -> None:
    stats, scores = summarize_quiz_attempts([_attempt("u1", None)])
    assert stats.average_score is None
    assert stats.total_attempts == 1
    assert scores == ()


def test_quiz_average_covers_attempts_beyond_the_displayed_three() -> None:
    attempts = [
        _attempt("u1", score, hours=h)
        for h, score in enumerate([100, 100, 100, 40], start=1)
    ]
    stats, scores = summarize_quiz_attempts(attempts)
    assert len(scores) == 3
    # Displayed: the three most recent (40, 100, 100); average over all four
    assert [s.score for s in scores] == [40, 100, 100]
    assert stats.average_score == 85


def test_quiz_scores_default_missing_titles() -> None:
    bare = QuizAttempt(id="a1", user_id="u1", quiz_id="q1", score=75, completed_at=T0)
    _, scores = summarize_quiz_attempts([bare])
    assert scores[0].quiz_title == "Unknown Quiz"
    assert scores[0].lesson_title == "Unknown Lesson"


# ---- recent activity ----


def test_recent_activity_keeps_two_latest_completions() -> None:
    activity = select_recent_activity(
        [
            _done("u1", "m1-l1", hours=1),
            _done("u1", "m1-l2", hours=5),
            _done("u1", "m1-l3", hours=3),
            LessonProgress(user_id="u1", lesson_id="m1-l4", status="in_progress"),
        ]
    )
    assert [a.lesson_id for a in activity] == ["m1-l2", "m1-l3"]


# ---- learner dashboard ----


def test_learner_progress_reports_first_incomplete_lesson() -> None:
    summary = summarize_learner_progress(
        "c1", _hierarchy(2, 2), [_done("u1", "m1-l1"), _done("u1", "m2-l1")]
    )
    assert summary.completed_lessons == 2
    assert summary.total_lessons == 4
    assert summary.percentage == 50
    assert summary.first_incomplete_lesson_id == "m1-l2"


def test_learner_progress_for_finished_course_has_no_next_lesson() -> None:
    summary = summarize_learner_progress("c1", _hierarchy(1), [_done("u1", "m1-l1")])
    assert summary.completed is True
    assert summary.first_incomplete_lesson_id is None


def test_learner_progress_for_unknown_course_is_zero() -> None:
    summary = summarize_learner_progress("missing", None, [])
    assert summary.course_id == "missing"
    assert summary.total_lessons == 0
    assert summary.percentage == 0
    assert summary.completed is False


def test_completed_lesson_ids_follow_course_order() -> None:
    ids = completed_lesson_ids(
        _hierarchy(2, 1), [_done("u1", "m2-l1"), _done("u1", "m1-l1")]
    )
    assert ids == ["m1-l1", "m2-l1"]
