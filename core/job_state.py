"""
Transitions of a ProcessingJob through its status lifecycle.

    created -> detecting -> metadata -> [transcript] -> completed
    any non-terminal -> failed | unsupported

Every function returns a new ProcessingJob; inputs are not mutated.
"""
from typing import Final, Optional
from core.entities import ExtractionError
from model.job import ErrorCode, JobStatus, ProcessingJob, ProcessingStep
from model.metadata import ShortFormMetadata
from util.errors import InvalidTransitionError
from util.functions import utc_now

ALLOWED_TRANSITIONS: Final[dict[JobStatus, frozenset[JobStatus]]] = {
    JobStatus.created: frozenset({JobStatus.detecting}),
    JobStatus.detecting: frozenset({JobStatus.metadata}),
    JobStatus.metadata: frozenset({JobStatus.transcript, JobStatus.completed}),
    JobStatus.transcript: frozenset({JobStatus.completed}),
    JobStatus.completed: frozenset(),
    JobStatus.failed: frozenset(),
    JobStatus.unsupported: frozenset(),
}

STEP_FOR_STATUS: Final[dict[JobStatus, ProcessingStep]] = {
    JobStatus.created: ProcessingStep.url_validation,
    JobStatus.detecting: ProcessingStep.platform_detection,
    JobStatus.metadata: ProcessingStep.metadata_extraction,
    JobStatus.transcript: ProcessingStep.transcript_extraction,
    JobStatus.completed: ProcessingStep.completion,
}

PROGRESS_FOR_STATUS: Final[dict[JobStatus, int]] = {
    JobStatus.created: 10,
    JobStatus.detecting: 20,
    JobStatus.metadata: 40,
    JobStatus.transcript: 80,
    JobStatus.completed: 100,
}

NORMALIZATION_PROGRESS: Final[int] = 60

UNSUPPORTED_CODES: Final[frozenset[ErrorCode]] = frozenset(
    {ErrorCode.unsupported_platform, ErrorCode.unsupported_content}
)


def _check(job: ProcessingJob, target: JobStatus) -> None:
    if job.status.is_terminal:
        raise InvalidTransitionError(
            f"job {job.id} is already {job.status.value}; cannot move to {target.value}"
        )
    if target.is_terminal and target != JobStatus.completed:
        return
    if target not in ALLOWED_TRANSITIONS[job.status]:
        raise InvalidTransitionError(
            f"job {job.id}: {job.status.value} -> {target.value} is not a valid transition"
        )


def advance(job: ProcessingJob, target: JobStatus) -> ProcessingJob:
    """Move to the next in-progress status, bumping step and progress."""
    if target.is_terminal:
        raise InvalidTransitionError(f"use complete()/fail() to reach {target.value}")
    _check(job, target)
    return job.model_copy(
        update={
            "status": target,
            "current_step": STEP_FOR_STATUS[target],
            "progress": max(job.progress, PROGRESS_FOR_STATUS[target]),
        }
    )


def enter_normalization(job: ProcessingJob) -> ProcessingJob:
    """Sub-step of `metadata`: provider data is being shaped into the record."""
    if job.status != JobStatus.metadata:
        raise InvalidTransitionError(
            f"job {job.id}: data normalization requires status metadata, got {job.status.value}"
        )
    return job.model_copy(
        update={
            "current_step": ProcessingStep.data_normalization,
            "progress": max(job.progress, NORMALIZATION_PROGRESS),
        }
    )


def complete(
    job: ProcessingJob,
    metadata: ShortFormMetadata,
    transcript: Optional[str] = None,
    warnings: Optional[list[str]] = None,
) -> ProcessingJob:
    _check(job, JobStatus.completed)
    merged = list(job.warnings)
    for w in warnings or []:
        if w not in merged:
            merged.append(w)
    metadata = metadata.model_copy(
        update={"extraction": metadata.extraction.model_copy(update={"warnings": merged})}
    )
    return job.model_copy(
        update={
            "status": JobStatus.completed,
            "current_step": ProcessingStep.completion,
            "progress": 100,
            "metadata": metadata,
            "transcript": transcript,
            "warnings": merged,
            "error_code": None,
            "error_message": None,
            "error_details": None,
            "retry_after_ms": None,
            "completed_at": job.completed_at or utc_now(),
        }
    )


def fail(job: ProcessingJob, error: ExtractionError) -> ProcessingJob:
    """Terminal failure. Unsupported-content style codes land in `unsupported`."""
    target = JobStatus.unsupported if error.code in UNSUPPORTED_CODES else JobStatus.failed
    _check(job, target)
    return job.model_copy(
        update={
            "status": target,
            "metadata": None,
            "transcript": None,
            "error_code": error.code,
            "error_message": error.message,
            "error_details": error.details,
            "retry_after_ms": error.retry_after_ms,
            "completed_at": job.completed_at or utc_now(),
        }
    )


def add_warning(job: ProcessingJob, warning: str) -> ProcessingJob:
    if warning in job.warnings:
        return job
    return job.model_copy(update={"warnings": [*job.warnings, warning]})
