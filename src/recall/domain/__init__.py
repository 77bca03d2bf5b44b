# Domain Package
from .errors import (
    DuplicateCardError,
    DuplicatePackError,
    NotFoundError,
    RecallError,
    UndoExpired,
    ValidationError,
)
from .models import (
    Card,
    DailyReviewRecord,
    DataSummary,
    Pack,
    ReviewEvent,
    SchedulingState,
    SourceType,
    StreakAchievement,
    StreakHistory,
)
from .ports import Clock, RecordChange, RecordKind, SnapshotRepository

__all__ = [
    "Card",
    "Clock",
    "DailyReviewRecord",
    "DataSummary",
    "DuplicateCardError",
    "DuplicatePackError",
    "NotFoundError",
    "Pack",
    "RecallError",
    "RecordChange",
    "RecordKind",
    "ReviewEvent",
    "SchedulingState",
    "SnapshotRepository",
    "SourceType",
    "StreakAchievement",
    "StreakHistory",
    "UndoExpired",
    "ValidationError",
]
