"""
FastAPI application for memora.

Provides REST API for:
- Graded reviews (FSRS memory + BKT mastery updates)
- Due card queue
- Mastery and memory state snapshots
- Study sessions and reporting
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from memora import __version__
from memora.api.dependencies import get_services
from memora.api.schemas import ErrorBody, ErrorResponse
from memora.config import configure_logging, get_settings
from memora.core.errors import MemoraError
from memora.services import Services


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    configure_logging()
    settings = get_settings()
    logger.info("Starting memora service...")
    provider = app.dependency_overrides.get(get_services, get_services)
    provider().db.init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down memora service...")


app = FastAPI(
    title="Memora",
    description="""
    Spaced-repetition review core.

    ## Features

    - **Reviews**: Grade flashcards and quiz items; updates memory and mastery atomically
    - **Due Queue**: Flashcards due now, most overdue first
    - **Mastery**: Per-concept knowledge probability with a red/orange/yellow/green color
    - **Sessions & Stats**: Study sessions, accuracy, time on task and streaks
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Error handling
# ========================================


def _error(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(MemoraError)
async def memora_error_handler(request: Request, exc: MemoraError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} rejected: {exc.message}")
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(
        400,
        "VALIDATION_ERROR",
        "Request validation failed",
        details=jsonable_encoder(exc.errors()),
    )


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "memora",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check(services: Services = Depends(get_services)) -> JSONResponse:
    """Health check with an actual database round trip."""
    db_status, db_error = services.db.check_health()
    healthy = db_status == "ok"

    result: dict[str, Any] = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return JSONResponse(status_code=200 if healthy else 503, content=result)


# ========================================
# Import and mount routers
# ========================================

from memora.api.routers import (  # noqa: E402
    due_router,
    mastery_router,
    reviews_router,
    sessions_router,
    stats_router,
)

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status_code: {"model": ErrorResponse} for status_code in (400, 404, 409, 503)
}

app.include_router(reviews_router.router, tags=["Reviews"], responses=ERROR_RESPONSES)
app.include_router(due_router.router, tags=["Due Queue"], responses=ERROR_RESPONSES)
app.include_router(mastery_router.router, tags=["Mastery"], responses=ERROR_RESPONSES)
app.include_router(sessions_router.router, tags=["Sessions"], responses=ERROR_RESPONSES)
app.include_router(stats_router.router, tags=["Stats"], responses=ERROR_RESPONSES)
