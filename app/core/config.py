from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getenv_positive_int(name: str, default: int) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    # Course report cache (instructor progress views)
    progress_cache_ttl_seconds: int = 300
    progress_cache_max_entries: int = 100
    # Learner dashboard cache
    dashboard_cache_ttl_seconds: int = 120
    dashboard_cache_max_entries: int = 1000
    # Read limits applied to the store
    max_students_per_course: int = 100
    max_quiz_attempts: int = 500
    max_dashboard_courses: int = 50
    # Bearer token verification (identity provider)
    jwt_public_key: str | None = None
    jwt_issuer: str = "course-progress-service"
    jwt_audience: str = "course-progress-service"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    database_url = _getenv("DATABASE_URL", "") or None

    # PEM text; escaped newlines are accepted for single-line env files
    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n") or None
    if jwt_public_key is None and app_env_raw == "prod":
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")
    if jwt_public_key is not None and not jwt_public_key.startswith(
        "-----BEGIN PUBLIC KEY-----"
    ):
        raise ValueError("JWT_PUBLIC_KEY must be a PEM-encoded public key")
    jwt_issuer = _getenv("JWT_ISSUER", "course-progress-service")
    jwt_audience = _getenv("JWT_AUDIENCE", "course-progress-service")
    if not jwt_issuer or not jwt_audience:
        raise ValueError("JWT_ISSUER and JWT_AUDIENCE must not be empty")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=database_url,
        progress_cache_ttl_seconds=_getenv_positive_int(
            "PROGRESS_CACHE_TTL_SECONDS", 300
        ),
        progress_cache_max_entries=_getenv_positive_int(
            "PROGRESS_CACHE_MAX_ENTRIES", 100
        ),
        dashboard_cache_ttl_seconds=_getenv_positive_int(
            "DASHBOARD_CACHE_TTL_SECONDS", 120
        ),
        dashboard_cache_max_entries=_getenv_positive_int(
            "DASHBOARD_CACHE_MAX_ENTRIES", 1000
        ),
        max_students_per_course=_getenv_positive_int("MAX_STUDENTS_PER_COURSE", 100),
        max_quiz_attempts=_getenv_positive_int("MAX_QUIZ_ATTEMPTS", 500),
        max_dashboard_courses=_getenv_positive_int("MAX_DASHBOARD_COURSES", 50),
        jwt_public_key=jwt_public_key,
        jwt_issuer=jwt_issuer,
        jwt_audience=jwt_audience,
    )


SETTINGS = load_settings()
