from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from app.core.config import SETTINGS
from app.db import engine as db_engine
from app.models.principal import Principal
from app.repos.course_repo import CourseRepo, InMemoryCourseRepo
from app.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from app.repos.pg_course_repo import PgCourseRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.services import token_service
from app.services.progress_service import (
    UPSTREAM_ERRORS,
    CourseReportCache,
    LearnerProgressCache,
    LearnerProgressService,
    StudentProgressService,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

INSTRUCTOR_ROLES = {"instructor", "admin"}

# --- Module-level repo singletons, used when DATABASE_URL is unset ---
course_repo = InMemoryCourseRepo()
enrollment_repo = InMemoryEnrollmentRepo()
progress_repo = InMemoryProgressRepo(course_repo)


@dataclass(frozen=True, slots=True)
class Repositories:
    courses: CourseRepo
    enrollments: EnrollmentRepo
    progress: ProgressRepo


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def require_any_role(roles: set[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"admin", "instructor"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


require_instructor = require_any_role(INSTRUCTOR_ROLES)


# ---------------------------------------------------------------------------
# Repositories, caches, services
# ---------------------------------------------------------------------------


async def get_repositories() -> AsyncGenerator[Repositories, None]:
    """Repositories for one request.

    In-memory singletons without DATABASE_URL; otherwise PostgreSQL
    repositories sharing one read session.
    """
    if db_engine.async_session_factory is None:
        yield Repositories(course_repo, enrollment_repo, progress_repo)
        return
    async with db_engine.read_session() as session:
        yield Repositories(
            PgCourseRepo(session),
            PgEnrollmentRepo(session),
            PgProgressRepo(session),
        )


def get_course_report_cache(request: Request) -> CourseReportCache:
    return request.app.state.course_report_cache


def get_learner_progress_cache(request: Request) -> LearnerProgressCache:
    return request.app.state.learner_progress_cache


def get_student_progress_service(
    repos: Annotated[Repositories, Depends(get_repositories)],
    cache: Annotated[CourseReportCache, Depends(get_course_report_cache)],
) -> StudentProgressService:
    return StudentProgressService(
        repos.courses,
        repos.enrollments,
        repos.progress,
        cache,
        max_students=SETTINGS.max_students_per_course,
        max_quiz_attempts=SETTINGS.max_quiz_attempts,
    )


def get_learner_progress_service(
    repos: Annotated[Repositories, Depends(get_repositories)],
    cache: Annotated[LearnerProgressCache, Depends(get_learner_progress_cache)],
) -> LearnerProgressService:
    return LearnerProgressService(repos.courses, repos.progress, cache)


# ---------------------------------------------------------------------------
# Course-scoped access guards
# ---------------------------------------------------------------------------


async def viewable_course_ids(repos: Repositories, principal: Principal) -> list[str]:
    """Courses whose progress the caller may view: all for admins,
    otherwise the courses they are assigned to teach."""
    try:
        if principal.is_admin():
            return await repos.courses.list_course_ids()
        return sorted(await repos.courses.list_instructor_course_ids(principal.user_id))
    except UPSTREAM_ERRORS as e:
        logger.exception("Store read failed while resolving courses user=%s", principal.user_id)
        raise UpstreamUnavailableError("course assignments are temporarily unavailable") from e


async def require_course_access(
    course_id: str,
    principal: Annotated[Principal, Depends(require_instructor)],
    repos: Annotated[Repositories, Depends(get_repositories)],
) -> Principal:
    """Instructors may only read courses they teach. Admins bypass the check."""
    if principal.is_admin():
        return principal

    try:
        assigned = await repos.courses.list_instructor_course_ids(principal.user_id)
    except UPSTREAM_ERRORS as e:
        logger.exception("Store read failed while checking access course=%s", course_id)
        raise UpstreamUnavailableError("course assignments are temporarily unavailable") from e

    if course_id not in assigned:
        logger.warning(
            "Access denied: user=%s not assigned to course=%s",
            principal.user_id,
            course_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not an instructor of this course",
        )
    return principal
