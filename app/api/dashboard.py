"""Learner dashboard progress.

GET /v1/dashboard/progress?course_ids=a,b
  -> read-through cache keyed by (user, sorted course ids)
  -> one entry per requested course, in request order
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_learner_progress_service, require_user
from app.core.config import SETTINGS
from app.models.principal import Principal
from app.services.presentation import LearnerProgressOut, to_learner_progress
from app.services.progress_service import LearnerProgressService

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


@router.get("/progress", response_model=LearnerProgressOut)
async def get_dashboard_progress(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[LearnerProgressService, Depends(get_learner_progress_service)],
    course_ids: Annotated[str, Query(description="Comma-separated course ids")] = "",
) -> LearnerProgressOut:
    ids = [part.strip() for part in course_ids.split(",") if part.strip()]
    if len(ids) > SETTINGS.max_dashboard_courses:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"at most {SETTINGS.max_dashboard_courses} course ids per request",
        )

    progress = await service.get_dashboard_progress(principal.user_id, ids)
    return to_learner_progress(progress)
