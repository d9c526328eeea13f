import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment
import logging


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

_log = logging.getLogger("config.settings")


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(..., validation_alias="APP_ENV")
    REDIS_URL: str = Field(..., validation_alias="REDIS_URL")
    PERSISTENCE_TTL_SECONDS: int = Field(
        default=7 * 24 * 3600, validation_alias="PERSISTENCE_TTL_SECONDS"
    )
    JOB_STORE: str = Field(default="redis", validation_alias="JOB_STORE")

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(..., validation_alias="ALLOWED_ORIGIN")
    RATE_LIMIT_TIMES: int = Field(default=30, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # YouTube Data API
    YOUTUBE_API_KEY: str = Field(default="", validation_alias="YOUTUBE_API_KEY")
    YOUTUBE_API_URL: str = "https://www.googleapis.com/youtube/v3/videos"
    YOUTUBE_TIMEDTEXT_URL: str = "https://www.youtube.com/api/timedtext"
    YOUTUBE_TIMEOUT_SECONDS: float = Field(
        default=10.0, validation_alias="YOUTUBE_TIMEOUT_SECONDS"
    )
    ENABLE_YOUTUBE_TRANSCRIPTS: bool = Field(
        default=True, validation_alias="ENABLE_YOUTUBE_TRANSCRIPTS"
    )
    TRANSCRIPT_LANGUAGE: str = Field(default="en", validation_alias="TRANSCRIPT_LANGUAGE")

    # Job execution
    EXTRACTOR_TIMEOUT_SECONDS: float = Field(
        default=15.0, validation_alias="EXTRACTOR_TIMEOUT_SECONDS"
    )
    JOB_SETTLE_DELAY_SECONDS: float = Field(
        default=0.0, validation_alias="JOB_SETTLE_DELAY_SECONDS"
    )
    SHUTDOWN_DRAIN_SECONDS: float = Field(
        default=10.0, validation_alias="SHUTDOWN_DRAIN_SECONDS"
    )

    # Polling guidance
    POLL_DEFAULT_INTERVAL_MS: int = Field(
        default=2000, validation_alias="POLL_DEFAULT_INTERVAL_MS"
    )
    POLL_MAX_INTERVAL_MS: int = Field(default=30000, validation_alias="POLL_MAX_INTERVAL_MS")
    POLL_BACKOFF_MULTIPLIER: float = Field(
        default=2.0, validation_alias="POLL_BACKOFF_MULTIPLIER"
    )
    POLL_BACKOFF_STEP: int = Field(default=10, validation_alias="POLL_BACKOFF_STEP")
    MAX_POLL_COUNT: int = Field(default=150, validation_alias="MAX_POLL_COUNT")
    RETRY_AFTER_DEFAULT_MS: int = Field(
        default=5000, validation_alias="RETRY_AFTER_DEFAULT_MS"
    )

    # Logging knobs
    LOGGER_NAME: str = "short-form"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
