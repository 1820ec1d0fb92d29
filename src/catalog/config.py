from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import time
from typing import Tuple

from dotenv import load_dotenv

from src.catalog.logging_utils import configure_logger

logger = configure_logger(__name__)


@dataclass(frozen=True)
class MongoConfig:
    uri: str = "mongodb://localhost:27017"
    db_name: str = "screen_catalog"
    connect_retries: int = 3
    retry_delay_seconds: float = 0.5
    timeout_ms: int = 5000


@dataclass(frozen=True)
class AuthConfig:
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 7 * 24 * 60
    cookie_name: str = "access_token"
    secure_cookies: bool = False


@dataclass(frozen=True)
class MailConfig:
    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    from_email: str = "no-reply@screencatalog.local"
    from_name: str = "Screen Catalog"
    frontend_url: str = "http://localhost:3000"

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    @property
    def use_ssl(self) -> bool:
        return self.port == 465


@dataclass(frozen=True)
class MediaConfig:
    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    folder: str = "screen_catalog"


@dataclass(frozen=True)
class JobConfig:
    auto_verification_enabled: bool = False
    run_at: time = time(hour=2, minute=0)
    min_account_age_days: int = 30
    min_review_count: int = 5


@dataclass(frozen=True)
class RecommendationConfig:
    limit: int = 5
    candidate_pool_size: int = 50


@dataclass(frozen=True)
class AppConfig:
    mongo: MongoConfig = field(default_factory=MongoConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    mail: MailConfig = field(default_factory=MailConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    jobs: JobConfig = field(default_factory=JobConfig)
    recommendations: RecommendationConfig = field(default_factory=RecommendationConfig)
    cors_origins: Tuple[str, ...] = ("http://localhost:3000", "http://localhost:5173")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{name}' must be an integer, got {raw!r}.") from exc


def _parse_run_at(raw: str) -> time:
    try:
        hour_str, minute_str = raw.strip().split(":", 1)
        return time(hour=int(hour_str), minute=int(minute_str))
    except ValueError as exc:
        raise RuntimeError(
            f"AUTO_VERIFICATION_RUN_AT must look like HH:MM (UTC), got {raw!r}."
        ) from exc


def load_app_config() -> AppConfig:
    """
    Build the application configuration from environment variables.

    ``.env`` is only read outside pytest so tests fully control the environment.
    """
    if "PYTEST_CURRENT_TEST" not in os.environ:
        load_dotenv()

    mongo = MongoConfig(
        uri=os.getenv("MONGO_URI", MongoConfig.uri),
        db_name=os.getenv("MONGO_DB_NAME", MongoConfig.db_name),
        connect_retries=_env_int("MONGO_CONNECT_RETRIES", MongoConfig.connect_retries),
    )

    secret_key = os.getenv("JWT_SECRET_KEY", "").strip()
    if not secret_key:
        raise RuntimeError("JWT_SECRET_KEY is not set; session tokens cannot be signed.")

    auth = AuthConfig(
        secret_key=secret_key,
        algorithm=os.getenv("JWT_ALGORITHM", AuthConfig.algorithm),
        access_token_expire_minutes=_env_int(
            "JWT_ACCESS_TOKEN_EXPIRE_MINUTES", AuthConfig.access_token_expire_minutes
        ),
        secure_cookies=_env_bool("SECURE_COOKIES", AuthConfig.secure_cookies),
    )

    mail = MailConfig(
        host=os.getenv("SMTP_HOST", ""),
        port=_env_int("SMTP_PORT", MailConfig.port),
        username=os.getenv("SMTP_USER", ""),
        password=os.getenv("SMTP_PASS", ""),
        from_email=os.getenv("SMTP_FROM_EMAIL", MailConfig.from_email),
        frontend_url=os.getenv("FRONTEND_URL", MailConfig.frontend_url),
    )

    media = MediaConfig(
        cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME", ""),
        api_key=os.getenv("CLOUDINARY_API_KEY", ""),
        api_secret=os.getenv("CLOUDINARY_API_SECRET", ""),
        folder=os.getenv("CLOUDINARY_FOLDER", MediaConfig.folder),
    )

    run_at_raw = os.getenv("AUTO_VERIFICATION_RUN_AT")
    jobs = JobConfig(
        auto_verification_enabled=_env_bool("AUTO_VERIFICATION_ENABLED", False),
        run_at=_parse_run_at(run_at_raw) if run_at_raw else JobConfig().run_at,
    )

    origins_raw = os.getenv("CORS_ORIGINS")
    cors_origins = (
        tuple(o.strip() for o in origins_raw.split(",") if o.strip())
        if origins_raw
        else AppConfig().cors_origins
    )

    logger.info(
        "config_loaded",
        extra={"event": "config_loaded", "db_name": mongo.db_name},
    )

    return AppConfig(
        mongo=mongo,
        auth=auth,
        mail=mail,
        media=media,
        jobs=jobs,
        cors_origins=cors_origins,
    )
