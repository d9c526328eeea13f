from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class JobStoreBackend(str, Enum):
    REDIS = "redis"
    MEMORY = "memory"


class ErrorInfo(NamedTuple):
    code: str
    message: str
    http_status: int


# Protocol-level failures of the status/submit endpoints (not job outcomes).
class ErrorMessage(Enum):
    UNAUTHORIZED = ErrorInfo(
        "unauthorized", "Authorization required", status.HTTP_401_UNAUTHORIZED
    )
    FORBIDDEN_JOB = ErrorInfo(
        "unauthorized",
        "You do not have permission to access this job",
        status.HTTP_403_FORBIDDEN,
    )
    INVALID_JOB_ID = ErrorInfo(
        "invalid_job_id", "Invalid job ID format", status.HTTP_400_BAD_REQUEST
    )
    MISSING_LOOKUP_KEY = ErrorInfo(
        "invalid_job_id",
        "Either jobId or normalizedUrl parameter is required",
        status.HTTP_400_BAD_REQUEST,
    )
    JOB_NOT_FOUND = ErrorInfo(
        "job_not_found", "Processing job not found", status.HTTP_404_NOT_FOUND
    )
    INTERNAL_ERROR = ErrorInfo(
        "internal_error", "An unexpected error occurred", status.HTTP_500_INTERNAL_SERVER_ERROR
    )
