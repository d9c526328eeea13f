# controller/controller_dependencies.py
from functools import lru_cache
from typing import Optional
from fastapi import Header
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from core.extractors import ExtractorRegistry, InstagramExtractor, TikTokExtractor
from core.polling import PollingPolicy
from core.youtube_client import YouTubeClient
from core.youtube_extractor import YouTubeExtractor
from model.metadata import Platform
from repository.job_repository import InMemoryJobRepository, JobRepository, RedisJobRepository
from service.job_orchestrator import JobOrchestrator
from service.status_service import StatusService
from util.constants import Headers
from util.enums import ErrorMessage, JobStoreBackend
from util.errors import AppError

# Module-level so tests can swap it out through app.dependency_overrides.
rate_limiter = RateLimiter(times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS)


@lru_cache
def get_job_repository() -> JobRepository:
    if settings.JOB_STORE == JobStoreBackend.MEMORY:
        return InMemoryJobRepository()
    return RedisJobRepository()


@lru_cache
def get_extractor_registry() -> ExtractorRegistry:
    client = YouTubeClient(
        api_key=settings.YOUTUBE_API_KEY,
        api_url=settings.YOUTUBE_API_URL,
        timedtext_url=settings.YOUTUBE_TIMEDTEXT_URL,
        timeout=settings.YOUTUBE_TIMEOUT_SECONDS,
    )
    return ExtractorRegistry(
        {
            Platform.youtube_short: YouTubeExtractor(
                client,
                transcripts_enabled=settings.ENABLE_YOUTUBE_TRANSCRIPTS,
                transcript_language=settings.TRANSCRIPT_LANGUAGE,
                retry_after_default_ms=settings.RETRY_AFTER_DEFAULT_MS,
            ),
            Platform.tiktok: TikTokExtractor(),
            Platform.instagram_reel: InstagramExtractor(),
        }
    )


@lru_cache
def get_polling_policy() -> PollingPolicy:
    return PollingPolicy.from_settings()


@lru_cache
def get_job_orchestrator() -> JobOrchestrator:
    return JobOrchestrator(get_job_repository(), get_extractor_registry(), get_polling_policy())


@lru_cache
def get_status_service() -> StatusService:
    return StatusService(get_job_repository(), get_polling_policy())


def get_owner_id(
    owner_id: Optional[str] = Header(default=None, alias=Headers.OWNER_ID),
) -> str:
    # Identity is asserted by the provider in front of us; we only require it.
    if not owner_id or not owner_id.strip():
        raise AppError.of(ErrorMessage.UNAUTHORIZED)
    return owner_id.strip()
