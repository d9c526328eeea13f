from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field
from model.job import ErrorCode, JobStatus, ProcessingStep
from model.metadata import Platform, ShortFormMetadata


class ProcessOptions(BaseModel):
    includeTranscript: bool = False
    forceRefresh: bool = False


class ProcessVideoRequest(BaseModel):
    url: str = Field(min_length=1)
    options: ProcessOptions = Field(default_factory=ProcessOptions)


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: str | None = None
    retryAfterMs: int | None = None
    fallbackSuggestion: str | None = None


class ProcessVideoResponse(BaseModel):
    success: Literal[True] = True
    jobId: str
    status: JobStatus
    estimatedTimeMs: int | None = None
    pollIntervalMs: int
    message: str | None = None


class ProcessVideoErrorResponse(BaseModel):
    success: Literal[False] = False
    error: ErrorBody


class JobStatusResponse(BaseModel):
    success: Literal[True] = True
    jobId: str
    status: JobStatus
    currentStep: ProcessingStep | None = None
    progress: int
    pollIntervalMs: int
    maxPollCount: int
    shouldStopPolling: bool = False
    estimatedRemainingMs: int | None = None
    createdAt: datetime
    updatedAt: datetime
    completedAt: datetime | None = None

    # completed
    metadata: ShortFormMetadata | None = None
    transcript: str | None = None
    warnings: list[str] | None = None

    # failed / unsupported
    error: ErrorBody | None = None


class ProtocolError(BaseModel):
    code: str
    message: str


class ProtocolErrorResponse(BaseModel):
    success: Literal[False] = False
    error: ProtocolError


class DetectUrlRequest(BaseModel):
    url: str


class PlatformFeatures(BaseModel):
    metadata: bool
    transcript: bool
    thumbnails: bool


class PlatformRateLimits(BaseModel):
    requestsPerHour: int
    burstLimit: int


class PlatformInfo(BaseModel):
    name: Platform
    displayName: str
    supportedFeatures: PlatformFeatures
    rateLimits: PlatformRateLimits
    estimatedTimeMs: int


class UrlDetectionResponse(BaseModel):
    isShortFormVideo: bool
    platform: Platform | None = None
    normalizedUrl: str
    originalUrl: str
    isValid: bool
    platformInfo: PlatformInfo | None = None
    errorMessage: str | None = None
