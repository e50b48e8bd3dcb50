"""
Lecture Mastery Platform

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from src.config import get_settings
from src.database import init_db, close_db
from src.api.v1 import router as api_v1_router
from src.api.middleware.rate_limit import RateLimitMiddleware
from src.api.middleware.request_id import RequestIdMiddleware
from src.kernel.errors import AppError, DatabaseError
from src.schemas.common import HealthResponse
from src.logging_config import configure_logging, get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Lecture Mastery Platform

    Sequenced lectures with prerequisite gating and a reflection-driven
    mastery workflow.

    ## Features

    - **Lectures**: Catalogue ordered by category and position
    - **Prerequisites**: Required / recommended edges, always acyclic
    - **Readiness**: Weighted readiness score per student and lecture
    - **Availability**: Locked / available / in-progress / completed classification
    - **Suggestions**: Ranked next lectures for a student
    - **Workflow**: Forward-only progress from READY to MASTERED
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first, so the last one added is outermost.
# CORS must wrap everything, including 429s from the rate limiter.
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
]
if not (settings.debug or settings.environment == "development"):
    _cors_origins = ["https://lectures.example.com"] + _cors_origins

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses (500s often bypass CORS middleware)."""
    origin = request.headers.get("origin") or ""
    allow_origin = origin if origin in _cors_origins else _cors_origins[0]
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }


def _error_headers(request: Request) -> dict:
    headers = _cors_headers(request)
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    return headers


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors: 400 / 404 / 409 with a structured body, 500 for storage failures."""
    headers = _error_headers(request)
    req_id = getattr(request.state, "request_id", None)
    if isinstance(exc, DatabaseError):
        logger.error("Storage failure: %s", exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": "Internal server error", "request_id": req_id},
            headers=headers,
        )
    logger.info(
        "Request rejected: %s",
        exc.message,
        extra={"status_code": exc.status_code, "error_type": type(exc).__name__},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure 401/403/404 etc. responses have CORS headers."""
    headers = _error_headers(request)
    req_id = getattr(request.state, "request_id", None)
    content = {"detail": exc.detail}
    if req_id and exc.status_code >= 500:
        content["request_id"] = req_id
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    headers = _error_headers(request)
    req_id = getattr(request.state, "request_id", None)
    content = {"detail": "Validation error", "errors": errors}
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    headers = _error_headers(request)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {
            "detail": str(exc),
            "type": type(exc).__name__,
            "request_id": req_id,
        }
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=headers,
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(
        status="ok",
        version=settings.version,
        database="connected",
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
