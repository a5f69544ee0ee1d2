"""
Review core services.

`build_services` wires one process-wide set of services around a Database:
the pipeline (sole writer of memory/mastery state) plus read-only queries.
"""

from __future__ import annotations

from dataclasses import dataclass

from memora.config import Settings, get_settings
from memora.core.mastery import MasteryModel
from memora.core.memory_model import MemoryModel
from memora.db.database import Database
from memora.db.locks import KeyedLock
from memora.services.content import ContentRegistry, ImportResult
from memora.services.due_queue import DueItem, DueQueue, DueSequence
from memora.services.review_pipeline import ReviewPipeline, ReviewRequest, ReviewResponse
from memora.services.session_aggregator import SessionAggregator, SessionStats, TimeWindow
from memora.services.sessions import SessionService, SessionSummary
from memora.services.state_queries import MasterySnapshot, MemorySnapshot, StateQueries


@dataclass
class Services:
    db: Database
    pipeline: ReviewPipeline
    due_queue: DueQueue
    aggregator: SessionAggregator
    sessions: SessionService
    content: ContentRegistry
    states: StateQueries


def build_services(db: Database, settings: Settings | None = None) -> Services:
    settings = settings or get_settings()
    memory_model = MemoryModel(settings.get_scheduler_parameters())
    mastery_model = MasteryModel(settings.get_mastery_parameters())
    locks = KeyedLock()
    return Services(
        db=db,
        pipeline=ReviewPipeline(
            db,
            memory_model,
            mastery_model,
            locks=locks,
            max_retries=settings.review_max_retries,
        ),
        due_queue=DueQueue(db),
        aggregator=SessionAggregator(db),
        sessions=SessionService(db, locks),
        content=ContentRegistry(db),
        states=StateQueries(db, memory_model, mastery_model),
    )


__all__ = [
    "ContentRegistry",
    "DueItem",
    "DueQueue",
    "DueSequence",
    "ImportResult",
    "MasterySnapshot",
    "MemorySnapshot",
    "ReviewPipeline",
    "ReviewRequest",
    "ReviewResponse",
    "Services",
    "SessionAggregator",
    "SessionService",
    "SessionStats",
    "SessionSummary",
    "StateQueries",
    "TimeWindow",
    "build_services",
]
