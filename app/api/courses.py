"""Course endpoints for the calling learner."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_learner_progress_service, require_user
from app.models.principal import Principal
from app.services.presentation import CompletedLessonsOut
from app.services.progress_service import CourseNotFoundError, LearnerProgressService

router = APIRouter(prefix="/v1/courses", tags=["courses"])


@router.get("/{course_id}/completed-lessons", response_model=CompletedLessonsOut)
async def list_completed_lessons(
    course_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[LearnerProgressService, Depends(get_learner_progress_service)],
) -> CompletedLessonsOut:
    """Lessons of the course the caller has completed, in course order."""
    try:
        lesson_ids = await service.list_completed_lessons(principal.user_id, course_id)
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    return CompletedLessonsOut(completed_lessons=lesson_ids)
