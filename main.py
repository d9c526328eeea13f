# main.py
from fastapi_limiter import FastAPILimiter
import routes
from contextlib import asynccontextmanager
import logging
from util.enums import Environment, Color, ErrorMessage
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.middleware.cors import CORSMiddleware
from config.settings import settings
from config.cache import close_redis, get_redis
from controller.controller_dependencies import get_job_orchestrator
from fastapi.responses import JSONResponse
from model.api import ErrorBody, ProcessVideoErrorResponse, ProtocolError, ProtocolErrorResponse
from model.job import ErrorCode
from core.polling import fallback_suggestion
from util.constants import Headers, InternalURIs
from util.errors import AppError
from util.logger import init_logger

logger = logging.getLogger(__name__)


async def _real_ip(request: Request) -> str:
    if settings.TRUST_PROXY:
        fwd = request.headers.get(Headers.FORWARDED_FOR)
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    try:
        # Warm Redis; the rate limiter needs it whichever job store is configured
        init_logger()
        print(f"{Color.GREEN}Initializing...{Color.RESET}")
        redis = await get_redis()
        await FastAPILimiter.init(redis, identifier=_real_ip)
        print(f"{Color.BLUE}Server Started{Color.RESET}")
    except Exception as e:
        print("Failed to connect to Redis:", e)
        raise

    try:
        yield
    finally:
        try:
            await get_job_orchestrator().shutdown()
        except Exception as e:
            print("Error draining jobs:", e)
        try:
            await close_redis()
        except Exception as e:
            print("Error closing Redis:", e)

        print(f"{Color.RED}Server Shutdown{Color.RESET}")


app: FastAPI = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_credentials=True,  # Allow cookies and other credentials
    allow_methods=["GET", "POST"],  # Allowed HTTP Methods
    allow_headers=["Authorization", "Content-Type", "Accept", Headers.OWNER_ID],
)


@app.get("/healthz")
async def healthz():
    return {"ok": True}


@app.exception_handler(429)
async def ratelimit_handler(request: Request, exc):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=ProtocolErrorResponse(
            error=ProtocolError(
                code=ErrorCode.rate_limited.value,
                message=f"Too many requests. Try again in {settings.RATE_LIMIT_SECONDS}s.",
            )
        ).model_dump(),
        headers={Headers.RETRY_AFTER: str(settings.RATE_LIMIT_SECONDS)},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ProtocolErrorResponse(
            error=ProtocolError(code=exc.code, message=str(exc.detail))
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("request.unhandled path=%s err=%s", request.url.path, type(exc).__name__)
    info = ErrorMessage.INTERNAL_ERROR.value
    return JSONResponse(
        status_code=info.http_status,
        content=ProtocolErrorResponse(
            error=ProtocolError(code=info.code, message=info.message)
        ).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed submissions get the same envelope as rejected URLs
    first = (exc.errors() or [{}])[0]
    field = ".".join(str(x) for x in first.get("loc", []) if x != "body")
    message = f"{field}: {first.get('msg', 'invalid')}" if field else "Invalid request"
    if request.url.path == InternalURIs.PROCESS:
        body = ProcessVideoErrorResponse(
            error=ErrorBody(
                code=ErrorCode.invalid_url,
                message=message,
                fallbackSuggestion=fallback_suggestion(ErrorCode.invalid_url),
            )
        ).model_dump(mode="json", exclude_none=True)
    else:
        body = ProtocolErrorResponse(
            error=ProtocolError(code="invalid_request", message=message)
        ).model_dump()
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=reload)
