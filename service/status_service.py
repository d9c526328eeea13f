# service/status_service.py
import logging
from typing import Optional
from uuid import UUID
from core.polling import PollingPolicy, estimate_remaining_ms, fallback_suggestion
from core.url_normalizer import normalize_url
from model.api import ErrorBody, JobStatusResponse
from model.job import ErrorCode, JobStatus, ProcessingJob
from repository.job_repository import JobRepository
from util.enums import ErrorMessage
from util.errors import AppError, UrlValidationError
from util.functions import utc_now

logger = logging.getLogger(__name__)


def is_job_id(value: str) -> bool:
    try:
        UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


class StatusService:
    def __init__(self, jobs: JobRepository, policy: PollingPolicy) -> None:
        self._jobs = jobs
        self._policy = policy

    async def get_status(
        self,
        owner_id: str,
        job_id: Optional[str] = None,
        normalized_url: Optional[str] = None,
    ) -> JobStatusResponse:
        """
        Look up by jobId, or by the caller's latest job for a URL.
        Raises AppError for protocol failures (bad id, missing, other owner).
        """
        job = await self._lookup(owner_id, job_id, normalized_url)
        if job is None:
            raise AppError.of(ErrorMessage.JOB_NOT_FOUND)
        if job.owner_id != owner_id:
            logger.warning("status.forbidden job=%s", job.id)
            raise AppError.of(ErrorMessage.FORBIDDEN_JOB)

        interval = self._policy.interval_ms(job.poll_count, job.status)
        job = await self._record_poll(job, interval)
        return self._shape(job, interval)

    async def _lookup(
        self, owner_id: str, job_id: Optional[str], normalized_url: Optional[str]
    ) -> Optional[ProcessingJob]:
        if job_id:
            if not is_job_id(job_id):
                raise AppError.of(ErrorMessage.INVALID_JOB_ID)
            return await self._jobs.get(job_id)
        if normalized_url:
            try:
                key = normalize_url(normalized_url)
            except UrlValidationError:
                key = normalized_url.strip()
            return await self._jobs.find_latest(owner_id, key)
        raise AppError.of(ErrorMessage.MISSING_LOOKUP_KEY)

    async def _record_poll(self, job: ProcessingJob, interval: int) -> ProcessingJob:
        try:
            count = await self._jobs.record_poll(job.id, interval)
        except Exception as e:
            # Bookkeeping only; a status read must not fail because of it.
            logger.warning("status.poll_record_failed job=%s err=%s", job.id, type(e).__name__)
            return job
        if count is None:
            return job
        return job.model_copy(update={"poll_count": count, "poll_interval_ms": interval})

    def _shape(self, job: ProcessingJob, interval: int) -> JobStatusResponse:
        now = utc_now()
        response = JobStatusResponse(
            jobId=job.id,
            status=job.status,
            currentStep=job.current_step,
            progress=job.progress,
            pollIntervalMs=interval,
            maxPollCount=job.max_poll_count,
            shouldStopPolling=self._policy.should_stop(job, now),
            estimatedRemainingMs=estimate_remaining_ms(job, now),
            createdAt=job.created_at,
            updatedAt=job.updated_at,
            completedAt=job.completed_at,
        )

        if job.status == JobStatus.completed:
            response.metadata = job.metadata
            response.transcript = job.transcript
            response.warnings = list(job.warnings)
        elif job.is_terminal:
            code = job.error_code or ErrorCode.internal_error
            response.error = ErrorBody(
                code=code,
                message=job.error_message or "Processing failed",
                details=job.error_details,
                retryAfterMs=job.retry_after_ms,
                fallbackSuggestion=fallback_suggestion(code),
            )
        return response
