"""
Core Module - pure scheduling and mastery models.

Components:
- memory_model: FSRS memory model (MemoryModel, MemoryState)
- mastery: BKT mastery model (MasteryModel, MasteryState, MasteryColor)
- review_log: Review log entries (ReviewLogEntry, ReviewLogBuilder)
- errors: Error taxonomy shared by services, API and CLI

Nothing here touches storage.
"""

from memora.core.errors import (
    ConcurrencyConflict,
    InvalidGrade,
    InvalidItemKind,
    MemoraError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from memora.core.mastery import MasteryColor, MasteryModel, MasteryParameters, MasteryState
from memora.core.memory_model import (
    Grade,
    LifecycleState,
    MemoryModel,
    MemoryState,
    SchedulerParameters,
)
from memora.core.review_log import ItemKind, ReviewLogBuilder, ReviewLogEntry

__all__ = [
    # Errors
    "MemoraError",
    "ValidationError",
    "InvalidGrade",
    "InvalidItemKind",
    "NotFoundError",
    "ConcurrencyConflict",
    "PersistenceError",
    # Memory model
    "Grade",
    "LifecycleState",
    "MemoryModel",
    "MemoryState",
    "SchedulerParameters",
    # Mastery model
    "MasteryColor",
    "MasteryModel",
    "MasteryParameters",
    "MasteryState",
    # Review log
    "ItemKind",
    "ReviewLogBuilder",
    "ReviewLogEntry",
]
