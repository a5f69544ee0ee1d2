"""API routers for memora."""

from memora.api.routers import (
    due_router,
    mastery_router,
    reviews_router,
    sessions_router,
    stats_router,
)

__all__ = [
    "reviews_router",
    "due_router",
    "mastery_router",
    "sessions_router",
    "stats_router",
]
