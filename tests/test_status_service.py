from unittest.mock import AsyncMock
import pytest
from conftest import make_job, make_metadata
from core import job_state
from core.entities import ExtractionError
from model.job import ErrorCode, JobStatus
from service.status_service import StatusService
from util.errors import AppError

OWNER = "user-1"


async def _stored(repo, job):
    await repo.create(job)
    return job


def _completed(job):
    job = job_state.advance(job, JobStatus.detecting)
    job = job_state.advance(job, JobStatus.metadata)
    return job_state.complete(job, make_metadata(), "words", ["w"])


async def test_in_progress_job_omits_results(repo, policy):
    job = await _stored(repo, job_state.advance(make_job(), JobStatus.detecting))
    res = await StatusService(repo, policy).get_status(OWNER, job_id=job.id)

    assert res.status == JobStatus.detecting
    assert res.progress == 20
    assert res.metadata is None and res.error is None
    assert res.pollIntervalMs == 2000
    assert res.shouldStopPolling is False
    assert res.estimatedRemainingMs >= 0


async def test_completed_job_includes_metadata(repo, policy):
    job = await _stored(repo, _completed(make_job()))
    res = await StatusService(repo, policy).get_status(OWNER, job_id=job.id)

    assert res.status == JobStatus.completed
    assert res.progress == 100
    assert res.metadata.title == "A short"
    assert res.transcript == "words"
    assert res.warnings == ["w"]
    assert res.error is None
    assert res.shouldStopPolling is True


async def test_failed_job_has_fallback_suggestion(repo, policy):
    failed = job_state.fail(
        make_job(), ExtractionError(ErrorCode.rate_limited, "slow down", retry_after_ms=5000)
    )
    job = await _stored(repo, failed)
    res = await StatusService(repo, policy).get_status(OWNER, job_id=job.id)

    assert res.status == JobStatus.failed
    assert res.metadata is None
    assert res.error.code == ErrorCode.rate_limited
    assert res.error.retryAfterMs == 5000
    assert res.error.fallbackSuggestion


async def test_terminal_polls_are_stable(repo, policy):
    job = await _stored(repo, _completed(make_job()))
    service = StatusService(repo, policy)

    first = await service.get_status(OWNER, job_id=job.id)
    second = await service.get_status(OWNER, job_id=job.id)

    assert first.pollIntervalMs == second.pollIntervalMs == 30000
    assert first.model_dump() == second.model_dump()


async def test_polls_are_counted(repo, policy):
    job = await _stored(repo, make_job())
    service = StatusService(repo, policy)
    for _ in range(11):
        res = await service.get_status(OWNER, job_id=job.id)

    assert (await repo.get(job.id)).poll_count == 11
    assert res.pollIntervalMs == 4000


async def test_lookup_by_url_renormalizes(repo, policy):
    job = await _stored(repo, make_job())
    res = await StatusService(repo, policy).get_status(
        OWNER, normalized_url="https://www.youtube.com/shorts/dQw4w9WgXcQ?si=x"
    )
    assert res.jobId == job.id


async def test_invalid_job_id(repo, policy):
    with pytest.raises(AppError) as exc:
        await StatusService(repo, policy).get_status(OWNER, job_id="job-123")
    assert exc.value.status_code == 400
    assert exc.value.code == "invalid_job_id"


async def test_missing_lookup_key(repo, policy):
    with pytest.raises(AppError) as exc:
        await StatusService(repo, policy).get_status(OWNER)
    assert exc.value.status_code == 400


async def test_unknown_job(repo, policy):
    with pytest.raises(AppError) as exc:
        await StatusService(repo, policy).get_status(
            OWNER, job_id="00000000-0000-4000-8000-000000000000"
        )
    assert exc.value.status_code == 404
    assert exc.value.code == "job_not_found"


async def test_other_owner_is_rejected(repo, policy):
    job = await _stored(repo, make_job())
    with pytest.raises(AppError) as exc:
        await StatusService(repo, policy).get_status("intruder", job_id=job.id)
    assert exc.value.status_code == 403
    assert exc.value.code == "unauthorized"


async def test_poll_recording_failure_is_tolerated(repo, policy):
    job = await _stored(repo, make_job())
    repo.record_poll = AsyncMock(side_effect=ConnectionError("redis down"))

    res = await StatusService(repo, policy).get_status(OWNER, job_id=job.id)

    assert res.jobId == job.id
    assert res.status == JobStatus.created
