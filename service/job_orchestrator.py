# service/job_orchestrator.py
import asyncio
import logging
from typing import Optional, Set, Union
from uuid import uuid4
from fastapi import BackgroundTasks
from config.settings import settings
from core import job_state
from core.entities import ExtractOptions, ExtractionError, ExtractionFailure, TranscriptResult
from core.extractors import Extractor, ExtractorRegistry
from core.platform_detector import (
    PLATFORM_CONFIGS,
    detect_platform,
    estimated_processing_time_ms,
    get_platform_config,
)
from core.polling import MAX_JOB_AGE, PollingPolicy, fallback_suggestion, is_abandoned
from core.url_normalizer import normalize_url, validate_url
from model.api import (
    ErrorBody,
    PlatformInfo,
    ProcessVideoErrorResponse,
    ProcessVideoRequest,
    ProcessVideoResponse,
    UrlDetectionResponse,
)
from model.job import ErrorCode, JobStatus, ProcessingJob
from model.metadata import ShortFormMetadata
from repository.job_repository import JobRepository
from util.errors import UrlValidationError

logger = logging.getLogger(__name__)

SubmitResult = Union[ProcessVideoResponse, ProcessVideoErrorResponse]


class JobOrchestrator:
    """
    Flow:
    - submit: validate -> normalize -> detect -> idempotency check -> create -> detach.
    - execute: created -> detecting -> metadata -> [transcript] -> completed,
      or failed/unsupported. Runs detached; every exception ends on the record.
    """

    def __init__(
        self,
        jobs: JobRepository,
        registry: ExtractorRegistry,
        policy: PollingPolicy,
        *,
        extractor_timeout_s: float = settings.EXTRACTOR_TIMEOUT_SECONDS,
        settle_delay_s: float = settings.JOB_SETTLE_DELAY_SECONDS,
        drain_timeout_s: float = settings.SHUTDOWN_DRAIN_SECONDS,
    ) -> None:
        self._jobs = jobs
        self._registry = registry
        self._policy = policy
        self._extractor_timeout_s = extractor_timeout_s
        self._settle_delay_s = settle_delay_s
        self._drain_timeout_s = drain_timeout_s
        self._tasks: Set[asyncio.Task] = set()

    # ---------------- Submission ----------------

    async def submit(
        self,
        owner_id: str,
        request: ProcessVideoRequest,
        background: Optional[BackgroundTasks] = None,
    ) -> SubmitResult:
        raw = request.url.strip()
        if not validate_url(raw):
            return self._reject(
                ErrorCode.invalid_url,
                "Invalid URL format",
                "URL must be an absolute http(s) address",
                url=raw,
            )

        try:
            normalized = normalize_url(raw)
        except UrlValidationError as e:
            return self._reject(ErrorCode.invalid_url, str(e), e.url or None, url=raw)

        platform = detect_platform(normalized)
        if platform is None:
            supported = ", ".join(c.display_name for c in PLATFORM_CONFIGS)
            return self._reject(
                ErrorCode.unsupported_platform,
                "Platform not supported",
                f"Supported platforms: {supported}",
                url=raw,
            )

        options = request.options
        existing = await self._jobs.find_latest(owner_id, normalized)
        if existing is not None and is_abandoned(existing):
            existing = await self._abandon(existing)
        if existing is not None:
            if not existing.is_terminal:
                logger.info("job.submit.reuse job=%s status=%s", existing.id, existing.status.value)
                return self._accepted(existing, "Processing already in progress")
            if existing.status == JobStatus.completed and not options.forceRefresh:
                logger.info("job.submit.cached job=%s", existing.id)
                return self._accepted(existing, "Video already processed")

        job = ProcessingJob(
            id=str(uuid4()),
            owner_id=owner_id,
            original_url=raw,
            normalized_url=normalized,
            platform=platform,
            include_transcript=options.includeTranscript,
            force_refresh=options.forceRefresh,
            max_poll_count=self._policy.max_poll_count,
            poll_interval_ms=self._policy.base_interval_ms,
        )
        await self._jobs.create(job)
        logger.info(
            "job.submit.created job=%s platform=%s transcript=%s refresh=%s",
            job.id,
            platform.value,
            job.include_transcript,
            job.force_refresh,
        )
        self._dispatch(job.id, background)

        config = get_platform_config(platform)
        name = config.display_name if config else platform.value
        return self._accepted(job, f"Processing {name} video")

    def _accepted(self, job: ProcessingJob, message: str) -> ProcessVideoResponse:
        estimated = 0 if job.is_terminal else estimated_processing_time_ms(job.platform)
        interval = self._policy.interval_ms(job.poll_count, job.status)
        return ProcessVideoResponse(
            jobId=job.id,
            status=job.status,
            estimatedTimeMs=estimated,
            pollIntervalMs=interval,
            message=message,
        )

    async def _abandon(self, job: ProcessingJob) -> ProcessingJob:
        """Close out an in-flight record that nothing has touched for MAX_JOB_AGE."""
        logger.warning(
            "job.submit.abandoned job=%s status=%s updated_at=%s",
            job.id,
            job.status.value,
            job.updated_at.isoformat(),
        )
        return await self._jobs.update(
            job_state.fail(
                job,
                ExtractionError(
                    ErrorCode.internal_error,
                    "Processing was abandoned",
                    f"No progress for over {int(MAX_JOB_AGE.total_seconds() // 60)} minutes",
                ),
            )
        )

    @staticmethod
    def _reject(
        code: ErrorCode, message: str, details: Optional[str] = None, *, url: str = ""
    ) -> ProcessVideoErrorResponse:
        logger.info("job.submit.rejected code=%s url=%s", code.value, url)
        return ProcessVideoErrorResponse(
            error=ErrorBody(
                code=code,
                message=message,
                details=details,
                fallbackSuggestion=fallback_suggestion(code),
            )
        )

    def detect(self, url: str) -> UrlDetectionResponse:
        """Preview of what submission would do with `url`; creates nothing."""
        raw = (url or "").strip()
        if not validate_url(raw):
            return UrlDetectionResponse(
                isShortFormVideo=False,
                normalizedUrl=raw,
                originalUrl=raw,
                isValid=False,
                errorMessage="Invalid URL format",
            )
        try:
            normalized = normalize_url(raw)
        except UrlValidationError as e:
            return UrlDetectionResponse(
                isShortFormVideo=False,
                normalizedUrl=raw,
                originalUrl=raw,
                isValid=False,
                errorMessage=str(e),
            )

        platform = detect_platform(normalized)
        config = get_platform_config(platform) if platform else None
        return UrlDetectionResponse(
            isShortFormVideo=platform is not None,
            platform=platform,
            normalizedUrl=normalized,
            originalUrl=raw,
            isValid=True,
            platformInfo=config.info() if config else None,
            errorMessage=None if platform else "Platform not supported",
        )

    def platforms(self) -> list[PlatformInfo]:
        served = set(self._registry.platforms())
        return [c.info() for c in PLATFORM_CONFIGS if c.platform in served]

    # ---------------- Detached execution ----------------

    def _dispatch(self, job_id: str, background: Optional[BackgroundTasks]) -> None:
        if background is not None:
            background.add_task(self._run_tracked, job_id)
            return
        self._track(asyncio.create_task(self.execute(job_id), name=f"job:{job_id}"))

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_tracked(self, job_id: str) -> None:
        task = asyncio.create_task(self.execute(job_id), name=f"job:{job_id}")
        self._track(task)
        await task

    async def wait_idle(self) -> None:
        """Wait for every detached job started by this orchestrator."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        pending = list(self._tasks)
        if not pending:
            return
        logger.info("job.drain.start pending=%d timeout_s=%s", len(pending), self._drain_timeout_s)
        _, still_running = await asyncio.wait(pending, timeout=self._drain_timeout_s)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("job.drain.cancelled count=%d", len(still_running))

    async def execute(self, job_id: str) -> None:
        """Run one job to a terminal state. Never raises."""
        try:
            job = await self._jobs.get(job_id)
            if job is None:
                logger.error("job.execute.missing job=%s", job_id)
                return
            if job.is_terminal:
                logger.info("job.execute.skip_terminal job=%s status=%s", job_id, job.status.value)
                return
            await self._run(job)
        except asyncio.CancelledError:
            await self._fail_safely(
                job_id,
                ExtractionError(ErrorCode.internal_error, "Processing was interrupted by shutdown"),
            )
            raise
        except Exception as e:
            logger.exception("job.execute.crash job=%s err=%s", job_id, type(e).__name__)
            await self._fail_safely(
                job_id,
                ExtractionError(
                    ErrorCode.internal_error,
                    "An unexpected error occurred during processing",
                    str(e) or type(e).__name__,
                ),
            )

    async def _fail_safely(self, job_id: str, error: ExtractionError) -> None:
        try:
            job = await self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return
            await self._jobs.update(job_state.fail(job, error))
            logger.info("job.execute.failed job=%s code=%s", job_id, error.code.value)
        except Exception:
            logger.exception("job.execute.fail_write_error job=%s", job_id)

    async def _run(self, job: ProcessingJob) -> None:
        job = await self._jobs.update(job_state.advance(job, JobStatus.detecting))

        platform = detect_platform(job.normalized_url)
        extractor = self._registry.get(platform)
        if extractor is None:
            await self._finish_failed(
                job,
                ExtractionError(
                    ErrorCode.unsupported_platform,
                    "No extractor available for this platform",
                    f"platform={platform.value if platform else 'unknown'}",
                ),
            )
            return

        if self._settle_delay_s > 0:
            await asyncio.sleep(self._settle_delay_s)

        job = await self._jobs.update(job_state.advance(job, JobStatus.metadata))
        try:
            result = await asyncio.wait_for(
                extractor.extract(
                    job.normalized_url, ExtractOptions(include_transcript=job.include_transcript)
                ),
                timeout=self._extractor_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("job.extract.timeout job=%s timeout_s=%s", job.id, self._extractor_timeout_s)
            result = ExtractionFailure(
                ExtractionError(
                    ErrorCode.api_error,
                    "Metadata extraction timed out",
                    f"No response from {extractor.platform.value} within {self._extractor_timeout_s}s",
                )
            )

        if isinstance(result, ExtractionFailure):
            await self._finish_failed(job, result.error)
            return

        job = await self._jobs.update(job_state.enter_normalization(job))
        warnings = list(result.warnings)
        transcript = result.transcript

        if job.include_transcript:
            job = await self._jobs.update(job_state.advance(job, JobStatus.transcript))
            if not transcript:
                outcome = await self._fetch_transcript(extractor, job, result.metadata)
                if outcome.ok:
                    transcript = outcome.text
                else:
                    reason = outcome.error.message if outcome.error else "no transcript returned"
                    job = job_state.add_warning(job, f"Transcript unavailable: {reason}")

        job = await self._jobs.update(
            job_state.complete(job, result.metadata, transcript, warnings)
        )
        logger.info(
            "job.execute.completed job=%s platform=%s warnings=%d transcript=%s",
            job.id,
            job.platform.value,
            len(job.warnings),
            bool(job.transcript),
        )

    async def _fetch_transcript(
        self, extractor: Extractor, job: ProcessingJob, metadata: ShortFormMetadata
    ) -> TranscriptResult:
        try:
            return await asyncio.wait_for(
                extractor.fetch_transcript(job.normalized_url, metadata),
                timeout=self._extractor_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("job.transcript.timeout job=%s", job.id)
            return TranscriptResult(
                error=ExtractionError(ErrorCode.transcript_failed, "Transcript extraction timed out")
            )
        except Exception as e:
            # Transcript is secondary; the job still completes with a warning.
            logger.exception("job.transcript.crash job=%s err=%s", job.id, type(e).__name__)
            return TranscriptResult(
                error=ExtractionError(
                    ErrorCode.transcript_failed, "Transcript extraction encountered an error"
                )
            )

    async def _finish_failed(self, job: ProcessingJob, error: ExtractionError) -> None:
        job = await self._jobs.update(job_state.fail(job, error))
        logger.info(
            "job.execute.%s job=%s code=%s",
            job.status.value,
            job.id,
            error.code.value,
        )
