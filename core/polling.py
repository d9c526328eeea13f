from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final, Optional
from config.settings import settings
from core.platform_detector import estimated_processing_time_ms
from model.job import ErrorCode, JobStatus, ProcessingJob
from util.functions import utc_now

# Jobs older than this are not worth polling even if they never reached a terminal state.
MAX_JOB_AGE: Final[timedelta] = timedelta(minutes=30)


@dataclass(frozen=True)
class PollingPolicy:
    base_interval_ms: int
    max_interval_ms: int
    multiplier: float
    step: int
    max_poll_count: int

    @classmethod
    def from_settings(cls) -> "PollingPolicy":
        return cls(
            base_interval_ms=settings.POLL_DEFAULT_INTERVAL_MS,
            max_interval_ms=settings.POLL_MAX_INTERVAL_MS,
            multiplier=settings.POLL_BACKOFF_MULTIPLIER,
            step=max(1, settings.POLL_BACKOFF_STEP),
            max_poll_count=settings.MAX_POLL_COUNT,
        )

    def interval_ms(self, poll_count: int, status: JobStatus) -> int:
        """
        base * multiplier ** (poll_count // step), capped at max_interval_ms.
        Terminal jobs get max_interval_ms.
        """
        if status.is_terminal:
            return self.max_interval_ms
        exponent = max(0, poll_count) // self.step
        ceiling = self.max_interval_ms / self.base_interval_ms
        factor = min(self.multiplier**exponent, ceiling)
        return int(round(min(self.base_interval_ms * factor, self.max_interval_ms)))

    def should_stop(self, job: ProcessingJob, now: Optional[datetime] = None) -> bool:
        if job.is_terminal:
            return True
        if job.poll_count >= (job.max_poll_count or self.max_poll_count):
            return True
        return (now or utc_now()) - job.created_at > MAX_JOB_AGE


def is_abandoned(job: ProcessingJob, now: Optional[datetime] = None) -> bool:
    """In-flight record with no write for MAX_JOB_AGE; nothing is running it anymore."""
    if job.is_terminal:
        return False
    return (now or utc_now()) - job.updated_at > MAX_JOB_AGE


def estimate_remaining_ms(job: ProcessingJob, now: Optional[datetime] = None) -> int:
    if job.is_terminal:
        return 0
    if job.progress > 0:
        elapsed_ms = ((now or utc_now()) - job.created_at).total_seconds() * 1000
        remaining = elapsed_ms / job.progress * (100 - job.progress)
        return max(0, int(round(remaining)))
    return estimated_processing_time_ms(job.platform)


FALLBACK_SUGGESTIONS: Final[dict[ErrorCode, str]] = {
    ErrorCode.invalid_url: "Please check the URL format and try again, or create the resource manually.",
    ErrorCode.unsupported_platform: "This platform is not supported for automatic processing. You can create a video resource manually.",
    ErrorCode.unsupported_content: "This type of content is not supported. You can create a video resource manually.",
    ErrorCode.privacy_blocked: "This content appears to be private. You can create a video resource manually with the basic information.",
    ErrorCode.not_found: "This content may have been deleted. You can still create a video resource manually if you have the information.",
    ErrorCode.quota_exceeded: "Processing limit reached. Please try again later or create the resource manually.",
    ErrorCode.rate_limited: "Too many requests. Please wait a moment and try again, or create the resource manually.",
    ErrorCode.extraction_failed: "Could not extract video information. You can create a video resource manually with the URL.",
    ErrorCode.transcript_failed: "Video metadata was extracted but transcript failed. You can create the resource and add transcripts manually.",
}

DEFAULT_FALLBACK: Final[str] = (
    "Automatic processing failed. You can create a video resource manually with this URL."
)


def fallback_suggestion(code: Optional[ErrorCode]) -> Optional[str]:
    if code is None:
        return None
    return FALLBACK_SUGGESTIONS.get(code, DEFAULT_FALLBACK)
