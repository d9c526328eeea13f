from fastapi import HTTPException, status
from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status, code & message.
    def __init__(
        self,
        message: str,
        http_status: int = status.HTTP_400_BAD_REQUEST,
        code: str = "internal_error",
    ) -> None:
        super().__init__(status_code=http_status, detail=message)
        self.code = code

    @classmethod
    def of(cls, error: ErrorMessage) -> "AppError":
        info = error.value
        return cls(info.message, info.http_status, code=info.code)


class UrlValidationError(ValueError):
    """A provider-specific identifier in a URL has the wrong shape."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class InvalidTransitionError(RuntimeError):
    """A job was asked to move to a status its current status cannot reach."""
