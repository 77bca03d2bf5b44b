"""
Domain models for the study engine.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum

from .constants import DEFAULT_EASE_FACTOR


class SourceType(str, Enum):
    """Kind of external content a card points at."""

    MILESTONE = "milestone"
    CONCEPT = "concept"


@dataclass(frozen=True)
class SchedulingState:
    """
    The scheduling fields of a card, as consumed and produced by the scheduler.

    Attributes:
        ease_factor: Interval growth multiplier (>= 1.3).
        interval: Days until the next review (0 for a brand-new card).
        repetitions: Consecutive successful reviews since the last failure.
        next_review_date: When the card is due again; None means due now.
        last_reviewed_at: Time of the last review; None means never reviewed.
    """

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    next_review_date: datetime | None = None
    last_reviewed_at: datetime | None = None


@dataclass
class Card:
    """One saved piece of content under review."""

    id: str
    source_type: SourceType
    source_id: str
    created_at: datetime
    pack_ids: set[str] = field(default_factory=set)

    # SM-2 state
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    next_review_date: datetime | None = None
    last_reviewed_at: datetime | None = None

    def scheduling_state(self) -> SchedulingState:
        return SchedulingState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
            next_review_date=self.next_review_date,
            last_reviewed_at=self.last_reviewed_at,
        )

    def apply_state(self, state: SchedulingState) -> None:
        self.ease_factor = state.ease_factor
        self.interval = state.interval
        self.repetitions = state.repetitions
        self.next_review_date = state.next_review_date
        self.last_reviewed_at = state.last_reviewed_at

    def is_due(self, now: datetime) -> bool:
        return self.next_review_date is None or self.next_review_date <= now

    @property
    def is_reviewed(self) -> bool:
        return self.last_reviewed_at is not None


@dataclass
class Pack:
    """Named grouping of cards. Purely organizational."""

    id: str
    name: str
    color: str
    created_at: datetime
    description: str | None = None
    is_default: bool = False


@dataclass(frozen=True)
class ReviewEvent:
    """
    Immutable record of one rating submission.

    Attributes:
        id: Unique event id.
        card_id: The card that was reviewed.
        quality: Rating 0-5.
        timestamp: When the rating was submitted (timezone-aware).
        prior_state: Card scheduling fields before the update (for undo).
        day_bucket: Local calendar date the review counts towards.
    """

    id: str
    card_id: str
    quality: int
    timestamp: datetime
    prior_state: SchedulingState
    day_bucket: date


@dataclass
class DailyReviewRecord:
    """Rating-bucketed review counts for one calendar date."""

    date: date
    again_count: int = 0  # quality 0-2
    hard_count: int = 0  # quality 3
    good_count: int = 0  # quality 4
    easy_count: int = 0  # quality 5
    minutes_studied: float = 0.0

    @property
    def total_reviews(self) -> int:
        return self.again_count + self.hard_count + self.good_count + self.easy_count

    @property
    def correct_reviews(self) -> int:
        return self.hard_count + self.good_count + self.easy_count

    def copy(self) -> "DailyReviewRecord":
        return replace(self)


@dataclass(frozen=True)
class StreakAchievement:
    milestone: int
    achieved_at: datetime


@dataclass
class StreakHistory:
    """Per-user streak state and one-way milestone achievements."""

    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: date | None = None
    achievements: list[StreakAchievement] = field(default_factory=list)

    @property
    def awarded_milestones(self) -> set[int]:
        return {a.milestone for a in self.achievements}


@dataclass(frozen=True)
class StreakSnapshot:
    """Streak counters captured before a review, restored by undo."""

    current_streak: int
    longest_streak: int
    last_study_date: date | None


@dataclass(frozen=True)
class DataSummary:
    """Aggregate counts shown before export / clear-all flows."""

    total_cards: int
    total_packs: int
    total_reviews: int
    best_streak: int
    oldest_card_date: datetime | None
