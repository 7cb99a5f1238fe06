"""Instructor progress endpoints.

Read-only views over a course's student progress:
  GET /v1/instructor/courses/{course_id}/students               full student list
  GET /v1/instructor/courses/{course_id}/summary                summary card
  GET /v1/instructor/courses/{course_id}/students/{student_id}  expanded student
  GET /v1/instructor/dashboard                                  cards for every viewable course

Reports are cached per course for PROGRESS_CACHE_TTL_SECONDS, so the
figures can lag recent activity by up to that long.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import (
    Repositories,
    get_repositories,
    get_student_progress_service,
    require_course_access,
    require_instructor,
    viewable_course_ids,
)
from app.models.principal import Principal
from app.services.presentation import (
    CourseStudentProgressOut,
    CourseSummaryCardOut,
    SortBy,
    SortOrder,
    StudentDetailOut,
    to_course_student_progress,
    to_student_detail,
    to_summary_card,
)
from app.services.progress_service import CourseNotFoundError, StudentProgressService

router = APIRouter(prefix="/v1/instructor", tags=["instructor"])

_MAX_FILTER_IDS = 100


def _student_filter(raw: list[str] | None) -> list[str] | None:
    """Repeated and comma-separated values both work: ?student_ids=a,b&student_ids=c"""
    if raw is None:
        return None
    ids = [part.strip() for value in raw for part in value.split(",") if part.strip()]
    if len(ids) > _MAX_FILTER_IDS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"at most {_MAX_FILTER_IDS} student ids per request",
        )
    return ids


@router.get(
    "/courses/{course_id}/students",
    response_model=CourseStudentProgressOut,
)
async def get_course_students(
    course_id: str,
    _principal: Annotated[Principal, Depends(require_course_access)],
    service: Annotated[StudentProgressService, Depends(get_student_progress_service)],
    student_ids: Annotated[list[str] | None, Query()] = None,
    sort_by: SortBy = "progress",
    order: SortOrder = "desc",
) -> CourseStudentProgressOut:
    """Every student's progress in the course plus course-level stats."""
    try:
        report = await service.get_course_report(course_id, _student_filter(student_ids))
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    return to_course_student_progress(report, sort_by=sort_by, order=order)


@router.get("/courses/{course_id}/summary", response_model=CourseSummaryCardOut)
async def get_course_summary(
    course_id: str,
    _principal: Annotated[Principal, Depends(require_course_access)],
    service: Annotated[StudentProgressService, Depends(get_student_progress_service)],
) -> CourseSummaryCardOut:
    try:
        report = await service.get_course_report(course_id)
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    return to_summary_card(report)


@router.get(
    "/courses/{course_id}/students/{student_id}",
    response_model=StudentDetailOut,
)
async def get_student_detail(
    course_id: str,
    student_id: str,
    _principal: Annotated[Principal, Depends(require_course_access)],
    service: Annotated[StudentProgressService, Depends(get_student_progress_service)],
) -> StudentDetailOut:
    """Expanded view of one student, with display labels and badges."""
    try:
        report = await service.get_course_report(course_id)
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None

    student = report.find_student(student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="student not enrolled in course")
    return to_student_detail(student)


@router.get("/dashboard", response_model=list[CourseSummaryCardOut])
async def get_instructor_dashboard(
    principal: Annotated[Principal, Depends(require_instructor)],
    repos: Annotated[Repositories, Depends(get_repositories)],
    service: Annotated[StudentProgressService, Depends(get_student_progress_service)],
) -> list[CourseSummaryCardOut]:
    """Summary cards for every course the caller may view."""
    course_ids = await viewable_course_ids(repos, principal)
    reports = await service.get_course_reports(course_ids)
    return [to_summary_card(r) for r in reports]
