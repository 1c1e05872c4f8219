# Essential imports
import time
from datetime import datetime, timezone
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

from routers import auth, users

# Rate limiter imports
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging
from utils.logger import get_logger, log_request, sanitize_log_data
from middleware import RequestIDMiddleware, AuthenticationMiddleware, get_request_id
from core.config import settings
from core.database import init_db
from core.exceptions import AppError, ValidationError
from schemas.common import ApiResponse, error_body
from utils.deps import get_signer, open_user_directory

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

SERVICE_NAME = "irrigation-auth"
SERVICE_VERSION = "1.0.0"

# Initialize logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="Irrigation Auth API",
    description="Authentication and credential lifecycle service",
    version=SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Resolves request.state.identity once per request; never rejects
app.add_middleware(
    AuthenticationMiddleware,
    signer=get_signer(),
    directory_factory=open_user_directory,
)


# HTTP Request Logging Middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every HTTP request with method, path, status code and duration.
    """
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000  # milliseconds
    identity = getattr(request.state, "identity", None)

    log_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration,
        client_ip=request.client.host if request.client else "unknown",
        user_id=identity.id if identity else None,
    )

    return response


# Added last so it wraps everything and every log line carries the ID
app.add_middleware(RequestIDMiddleware)


# Health check
@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return ApiResponse.success({
        "status": "UP",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(
            f"Application error: {exc.message}",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
            exc_info=True
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message)
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))

    body = exc.body if isinstance(exc.body, dict) else {}
    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "body": sanitize_log_data(body), "errors": messages}
    )

    return JSONResponse(
        status_code=ValidationError.status_code,
        content=error_body(ValidationError.status_code, f"{ValidationError.default_message}: {'; '.join(messages)}")
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions and log them.

    The full stack trace goes to the server log; the client only ever
    sees a generic message.
    """
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "request_id": get_request_id(request)
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    )


# Including routers
app.include_router(auth.router)
app.include_router(users.router)


# Add rate limiter to the app
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """
    429 in the standard envelope, with Retry-After in seconds.
    """
    retry_after = exc.limit.limit.get_expiry()
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if view_rate_limit is not None:
        reset_at, _ = limiter.limiter.get_window_stats(view_rate_limit[0], *view_rate_limit[1])
        retry_after = max(int(reset_at - time.time()), 1)

    logger.warning(
        "Rate limit exceeded",
        extra={"path": request.url.path, "limit": str(exc.detail)}
    )

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests"),
        headers={"Retry-After": str(retry_after)}
    )
