from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "skatebounty-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "SkateBounty")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/skatebounty_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "skatebounty-uploads-dev")
    # Public base for uploaded objects; defaults to <endpoint>/<bucket>
    s3_public_base_url: str = os.getenv("S3_PUBLIC_BASE_URL", "")

    # Verification policy
    require_acceptance_before_submission: bool = os.getenv("REQUIRE_ACCEPTANCE_BEFORE_SUBMISSION", "1") == "1"
    submission_timestamp_mode: str = os.getenv("SUBMISSION_TIMESTAMP_MODE", "best_effort")  # best_effort|strict
    allow_free_text_rewards: bool = os.getenv("ALLOW_FREE_TEXT_REWARDS", "1") == "1"
    verified_vote_threshold: int = int(os.getenv("VERIFIED_VOTE_THRESHOLD", "3"))

    # Outbound HTTP (Instagram oEmbed)
    instagram_oembed_url: str = os.getenv("INSTAGRAM_OEMBED_URL", "https://www.instagram.com/oembed/")
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

    # Realtime change feed
    realtime_backend: str = os.getenv("REALTIME_BACKEND", "memory")  # memory|redis
    realtime_tables: list[str] = [t.strip() for t in os.getenv("REALTIME_TABLES", "bounties").split(",") if t.strip()]
    realtime_channel_prefix: str = os.getenv("REALTIME_CHANNEL_PREFIX", "skatebounty")

settings = Settings()
