import os
from datetime import timedelta
import pytest

# Settings are read at import time; pin a test environment before anything loads them.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ALLOWED_ORIGIN", "http://localhost:3000")
os.environ["JOB_STORE"] = "memory"
os.environ["YOUTUBE_API_KEY"] = "test-key"

from core.polling import PollingPolicy  # noqa: E402
from model.job import ProcessingJob  # noqa: E402
from model.metadata import (  # noqa: E402
    ContentInfo,
    Creator,
    ExtractionInfo,
    Platform,
    ShortFormMetadata,
)
from repository.job_repository import InMemoryJobRepository  # noqa: E402
from util.functions import utc_now  # noqa: E402

SHORTS_URL = "https://youtube.com/shorts/dQw4w9WgXcQ"


@pytest.fixture
def policy() -> PollingPolicy:
    return PollingPolicy(
        base_interval_ms=2000,
        max_interval_ms=30000,
        multiplier=2.0,
        step=10,
        max_poll_count=150,
    )


@pytest.fixture
def repo() -> InMemoryJobRepository:
    return InMemoryJobRepository()


def make_job(**overrides) -> ProcessingJob:
    fields = dict(
        id="6f1c1d2e-3a4b-4c5d-8e9f-0a1b2c3d4e5f",
        owner_id="user-1",
        original_url=SHORTS_URL,
        normalized_url=SHORTS_URL,
        platform=Platform.youtube_short,
    )
    fields.update(overrides)
    return ProcessingJob(**fields)


def make_metadata(**overrides) -> ShortFormMetadata:
    fields = dict(
        platform=Platform.youtube_short,
        title="A short",
        duration=42,
        thumbnailUrl="https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg",
        sourceUrl=SHORTS_URL,
        normalizedUrl=SHORTS_URL,
        creator=Creator(name="Channel", channelId="UC123", channelName="Channel"),
        content=ContentInfo(hashtags=["#shorts"], viewCount=10),
        extraction=ExtractionInfo(extractedAt=utc_now().isoformat(), apiVersion="YouTube Data API v3"),
    )
    fields.update(overrides)
    return ShortFormMetadata(**fields)


def minutes_ago(n: int):
    return utc_now() - timedelta(minutes=n)
