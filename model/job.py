from datetime import datetime
from enum import Enum
from typing import Final
from pydantic import BaseModel, Field
from model.metadata import Platform, ShortFormMetadata
from util.functions import utc_now


class JobStatus(str, Enum):
    created = "created"
    detecting = "detecting"
    metadata = "metadata"
    transcript = "transcript"
    completed = "completed"
    failed = "failed"
    unsupported = "unsupported"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: Final[frozenset[JobStatus]] = frozenset(
    {JobStatus.completed, JobStatus.failed, JobStatus.unsupported}
)


class ProcessingStep(str, Enum):
    url_validation = "url_validation"
    platform_detection = "platform_detection"
    metadata_extraction = "metadata_extraction"
    data_normalization = "data_normalization"
    transcript_extraction = "transcript_extraction"
    completion = "completion"


class ErrorCode(str, Enum):
    invalid_url = "invalid_url"
    unsupported_platform = "unsupported_platform"
    unsupported_content = "unsupported_content"
    privacy_blocked = "privacy_blocked"
    not_found = "not_found"
    quota_exceeded = "quota_exceeded"
    api_error = "api_error"
    rate_limited = "rate_limited"
    extraction_failed = "extraction_failed"
    transcript_failed = "transcript_failed"
    internal_error = "internal_error"


class ProcessingJob(BaseModel):
    """Persistent record of one extraction attempt."""

    id: str
    owner_id: str

    original_url: str
    normalized_url: str
    platform: Platform
    include_transcript: bool = False
    force_refresh: bool = False

    status: JobStatus = JobStatus.created
    current_step: ProcessingStep | None = ProcessingStep.url_validation
    progress: int = Field(default=10, ge=0, le=100)

    metadata: ShortFormMetadata | None = None
    transcript: str | None = None
    warnings: list[str] = Field(default_factory=list)

    error_code: ErrorCode | None = None
    error_message: str | None = None
    error_details: str | None = None
    retry_after_ms: int | None = None

    poll_count: int = 0
    max_poll_count: int = 150
    poll_interval_ms: int = 2000

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
