# controller/short_form_controller.py
from typing import Optional, Union
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from controller.controller_dependencies import (
    get_job_orchestrator,
    get_owner_id,
    get_status_service,
    rate_limiter,
)
from model.api import (
    DetectUrlRequest,
    JobStatusResponse,
    PlatformInfo,
    ProcessVideoErrorResponse,
    ProcessVideoRequest,
    ProcessVideoResponse,
    UrlDetectionResponse,
)
from service.job_orchestrator import JobOrchestrator
from service.status_service import StatusService
from util.constants import InternalURIs

short_form_router = APIRouter(dependencies=[Depends(rate_limiter)])


@short_form_router.post(
    InternalURIs.PROCESS,
    response_model=Union[ProcessVideoResponse, ProcessVideoErrorResponse],
    response_model_exclude_none=True,
)
async def process_video(
    payload: ProcessVideoRequest,
    response: Response,
    background: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
):
    result = await orchestrator.submit(owner_id, payload, background)
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return result


@short_form_router.get(
    InternalURIs.STATUS,
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
)
async def job_status(
    jobId: Optional[str] = Query(default=None),
    normalizedUrl: Optional[str] = Query(default=None),
    owner_id: str = Depends(get_owner_id),
    service: StatusService = Depends(get_status_service),
) -> JobStatusResponse:
    return await service.get_status(owner_id, job_id=jobId, normalized_url=normalizedUrl)


@short_form_router.post(
    InternalURIs.DETECT,
    response_model=UrlDetectionResponse,
    response_model_exclude_none=True,
)
async def detect_url(
    payload: DetectUrlRequest,
    owner_id: str = Depends(get_owner_id),
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
) -> UrlDetectionResponse:
    return orchestrator.detect(payload.url)


@short_form_router.get(InternalURIs.PLATFORMS, response_model=list[PlatformInfo])
async def list_platforms(
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
) -> list[PlatformInfo]:
    return orchestrator.platforms()
