"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.exceptions import (
    GenerationException,
    QuestionPaperComposerException,
    ValidationException,
)
from app.middleware import RequestIDMiddleware, limiter
from app.routes import papers
from app.utils.error_utils import (
    get_safe_error_detail,
    provider_status_code,
    retry_after_seconds,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    logger.info("Starting Question Paper Composer API...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"AI provider: {settings.ai_provider} (model={settings.ai_model})")

    if settings.ai_provider != "mock" and not settings.ai_api_key:
        logger.warning(
            f"AI_API_KEY is not set; requests to {settings.ai_provider} will fail"
        )

    try:
        from app.db.database import init_db

        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise

    yield
    logger.info("Shutting down Question Paper Composer API...")


app = FastAPI(
    title="Question Paper Composer",
    description="AI-assisted composition of exam question papers from a mark and taxonomy specification",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

cors_origins = [
    origin.strip()
    for origin in settings.cors_origins.split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if cors_origins else ["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(RequestIDMiddleware)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _error_response(
    request: Request, status_code: int, code: str, message: str, details, headers=None
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details,
                "request_id": request_id,
            }
        },
        headers=headers,
    )


@app.exception_handler(QuestionPaperComposerException)
async def custom_exception_handler(
    request: Request, exc: QuestionPaperComposerException
):
    """Handle custom application exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        f"Application error [{request_id}]: {exc.message}",
        exc_info=True,
        extra={"request_id": request_id, "details": exc.details},
    )

    if isinstance(exc, ValidationException):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, GenerationException):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return _error_response(
        request,
        status_code,
        exc.__class__.__name__,
        get_safe_error_detail(exc, settings.is_production),
        exc.details,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(
        f"Validation error [{request_id}]: {exc.errors()}",
        extra={"request_id": request_id},
    )

    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_CONTENT,
        "ValidationError",
        "Request validation failed",
        jsonable_errors(exc),
    )


def jsonable_errors(exc: RequestValidationError):
    """Validation errors with non-serializable context values stringified."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions, including provider SDK errors."""
    request_id = getattr(request.state, "request_id", "unknown")

    if provider_status_code(exc) == 429:
        retry_after = retry_after_seconds(exc)
        logger.warning(
            f"Provider rate limit [{request_id}]: retry after {retry_after}s",
            extra={"request_id": request_id},
        )
        return _error_response(
            request,
            status.HTTP_429_TOO_MANY_REQUESTS,
            "ProviderRateLimited",
            "The text-generation provider is rate limiting requests",
            {"retry_after": retry_after},
            headers={"Retry-After": str(retry_after)} if retry_after is not None else None,
        )

    logger.exception(
        f"Unexpected error [{request_id}]: {str(exc)}",
        extra={"request_id": request_id},
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred",
        {},
    )


app.include_router(papers.router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint with service status.

    Returns:
        Health status with database connectivity, provider configuration
        and diagram directory checks
    """
    from sqlalchemy import text

    from app.db.database import engine

    checks = {}
    overall_status = "healthy"

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {str(e)[:50]}"
        overall_status = "degraded"
        logger.warning(f"Database health check failed: {e}")

    if settings.ai_provider == "mock" or settings.ai_api_key:
        checks["ai_provider"] = f"ok ({settings.ai_provider})"
    else:
        checks["ai_provider"] = f"error: no API key for {settings.ai_provider}"
        overall_status = "degraded"

    try:
        settings.diagram_output_dir.mkdir(parents=True, exist_ok=True)
        checks["diagram_storage"] = "ok"
    except OSError as e:
        checks["diagram_storage"] = f"error: {str(e)[:50]}"
        overall_status = "degraded"

    return {
        "status": overall_status,
        "version": VERSION,
        "service": "question-paper-composer",
        "checks": checks,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Question Paper Composer API",
        "version": VERSION,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
    )
