# SQLAlchemy models
from .base import Base
from .content import Item, KnowledgeUnit, StudySession
from .review import DailyActivity, MasteryStateRecord, MemoryStateRecord, ReviewLogRecord

__all__ = [
    # Base
    "Base",
    # Content (registered by collaborators)
    "Item",
    "KnowledgeUnit",
    "StudySession",
    # Review state
    "MemoryStateRecord",
    "MasteryStateRecord",
    "ReviewLogRecord",
    "DailyActivity",
]
