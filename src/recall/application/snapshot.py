"""
Serializable snapshot of the engine state.

Pydantic models describe the export document and the payloads handed to the
persistence collaborator; helper functions convert between them and the
domain dataclasses.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from recall.domain.constants import (
    DEFAULT_EASE_FACTOR,
    EXPORT_VERSION,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    PACK_DESCRIPTION_MAX,
    PACK_NAME_MAX,
)
from recall.domain.errors import ValidationError
from recall.domain.models import (
    Card,
    DailyReviewRecord,
    Pack,
    ReviewEvent,
    SchedulingState,
    SourceType,
    StreakAchievement,
    StreakHistory,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _ensure_aware(value: datetime | None) -> datetime | None:
    # Naive timestamps in old exports are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SchedulingStateRecord(BaseModel):
    ease_factor: float = Field(default=DEFAULT_EASE_FACTOR, ge=MIN_EASE_FACTOR)
    interval: int = Field(default=0, ge=0)
    repetitions: int = Field(default=0, ge=0)
    next_review_date: datetime | None = None
    last_reviewed_at: datetime | None = None

    @field_validator("next_review_date", "last_reviewed_at")
    @classmethod
    def make_aware(cls, v: datetime | None) -> datetime | None:
        return _ensure_aware(v)


class CardRecord(SchedulingStateRecord):
    id: str = Field(min_length=1)
    source_type: SourceType
    source_id: str = Field(min_length=1)
    pack_ids: list[str] = Field(default_factory=list)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def make_created_aware(cls, v: datetime) -> datetime:
        return _ensure_aware(v)


class PackRecord(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=PACK_NAME_MAX)
    description: str | None = Field(default=None, max_length=PACK_DESCRIPTION_MAX)
    color: str = Field(pattern=r"^#[0-9A-Fa-f]{6}$")
    is_default: bool = False
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def make_created_aware(cls, v: datetime) -> datetime:
        return _ensure_aware(v)


class DailyReviewRecordModel(BaseModel):
    date: date
    again_count: int = Field(default=0, ge=0)
    hard_count: int = Field(default=0, ge=0)
    good_count: int = Field(default=0, ge=0)
    easy_count: int = Field(default=0, ge=0)
    minutes_studied: float = Field(default=0.0, ge=0)
    # Derived; written for readers of the export, ignored on import
    total_reviews: int = Field(default=0, ge=0)


class ReviewEventRecord(BaseModel):
    id: str = Field(min_length=1)
    card_id: str = Field(min_length=1)
    quality: int = Field(ge=MIN_QUALITY, le=MAX_QUALITY)
    timestamp: datetime
    day_bucket: date
    prior_state: SchedulingStateRecord

    @field_validator("timestamp")
    @classmethod
    def make_timestamp_aware(cls, v: datetime) -> datetime:
        return _ensure_aware(v)


class StreakAchievementRecord(BaseModel):
    milestone: int = Field(gt=0)
    achieved_at: datetime

    @field_validator("achieved_at")
    @classmethod
    def make_achieved_aware(cls, v: datetime) -> datetime:
        return _ensure_aware(v)


class StreakHistoryRecord(BaseModel):
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_study_date: date | None = None
    achievements: list[StreakAchievementRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def longest_covers_current(self) -> "StreakHistoryRecord":
        if self.longest_streak < self.current_streak:
            self.longest_streak = self.current_streak
        return self


class DataExport(BaseModel):
    """Flattened snapshot used for backup/export and for hydration."""

    version: int = EXPORT_VERSION
    exported_at: datetime
    cards: list[CardRecord] = Field(default_factory=list)
    packs: list[PackRecord] = Field(default_factory=list)
    review_history: list[DailyReviewRecordModel] = Field(default_factory=list)
    review_events: list[ReviewEventRecord] = Field(default_factory=list)
    streak_history: StreakHistoryRecord = Field(default_factory=StreakHistoryRecord)

    @field_validator("exported_at")
    @classmethod
    def make_exported_aware(cls, v: datetime) -> datetime:
        return _ensure_aware(v)


# ---------------------------------------------------------------------------
# Domain -> record
# ---------------------------------------------------------------------------


def state_to_record(state: SchedulingState) -> SchedulingStateRecord:
    return SchedulingStateRecord(
        ease_factor=state.ease_factor,
        interval=state.interval,
        repetitions=state.repetitions,
        next_review_date=state.next_review_date,
        last_reviewed_at=state.last_reviewed_at,
    )


def card_to_record(card: Card) -> CardRecord:
    return CardRecord(
        id=card.id,
        source_type=card.source_type,
        source_id=card.source_id,
        pack_ids=sorted(card.pack_ids),
        created_at=card.created_at,
        ease_factor=card.ease_factor,
        interval=card.interval,
        repetitions=card.repetitions,
        next_review_date=card.next_review_date,
        last_reviewed_at=card.last_reviewed_at,
    )


def pack_to_record(pack: Pack) -> PackRecord:
    return PackRecord(
        id=pack.id,
        name=pack.name,
        description=pack.description,
        color=pack.color,
        is_default=pack.is_default,
        created_at=pack.created_at,
    )


def daily_to_record(record: DailyReviewRecord) -> DailyReviewRecordModel:
    return DailyReviewRecordModel(
        date=record.date,
        again_count=record.again_count,
        hard_count=record.hard_count,
        good_count=record.good_count,
        easy_count=record.easy_count,
        minutes_studied=record.minutes_studied,
        total_reviews=record.total_reviews,
    )


def event_to_record(event: ReviewEvent) -> ReviewEventRecord:
    return ReviewEventRecord(
        id=event.id,
        card_id=event.card_id,
        quality=event.quality,
        timestamp=event.timestamp,
        day_bucket=event.day_bucket,
        prior_state=state_to_record(event.prior_state),
    )


def streak_to_record(history: StreakHistory) -> StreakHistoryRecord:
    return StreakHistoryRecord(
        current_streak=history.current_streak,
        longest_streak=history.longest_streak,
        last_study_date=history.last_study_date,
        achievements=[
            StreakAchievementRecord(milestone=a.milestone, achieved_at=a.achieved_at)
            for a in history.achievements
        ],
    )


def to_payload(record: BaseModel) -> dict[str, Any]:
    """JSON-ready dict handed to the persistence collaborator."""
    return record.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Record -> domain
# ---------------------------------------------------------------------------


def record_to_state(record: SchedulingStateRecord) -> SchedulingState:
    return SchedulingState(
        ease_factor=record.ease_factor,
        interval=record.interval,
        repetitions=record.repetitions,
        next_review_date=record.next_review_date,
        last_reviewed_at=record.last_reviewed_at,
    )


def record_to_card(record: CardRecord) -> Card:
    return Card(
        id=record.id,
        source_type=record.source_type,
        source_id=record.source_id,
        created_at=record.created_at,
        pack_ids=set(record.pack_ids),
        ease_factor=record.ease_factor,
        interval=record.interval,
        repetitions=record.repetitions,
        next_review_date=record.next_review_date,
        last_reviewed_at=record.last_reviewed_at,
    )


def record_to_pack(record: PackRecord) -> Pack:
    return Pack(
        id=record.id,
        name=record.name,
        description=record.description,
        color=record.color,
        is_default=record.is_default,
        created_at=record.created_at,
    )


def record_to_daily(record: DailyReviewRecordModel) -> DailyReviewRecord:
    return DailyReviewRecord(
        date=record.date,
        again_count=record.again_count,
        hard_count=record.hard_count,
        good_count=record.good_count,
        easy_count=record.easy_count,
        minutes_studied=record.minutes_studied,
    )


def record_to_event(record: ReviewEventRecord) -> ReviewEvent:
    return ReviewEvent(
        id=record.id,
        card_id=record.card_id,
        quality=record.quality,
        timestamp=record.timestamp,
        prior_state=record_to_state(record.prior_state),
        day_bucket=record.day_bucket,
    )


def record_to_streak(record: StreakHistoryRecord) -> StreakHistory:
    # Keep the first award of each milestone only
    seen: set[int] = set()
    achievements: list[StreakAchievement] = []
    for a in record.achievements:
        if a.milestone in seen:
            continue
        seen.add(a.milestone)
        achievements.append(StreakAchievement(milestone=a.milestone, achieved_at=a.achieved_at))

    return StreakHistory(
        current_streak=record.current_streak,
        longest_streak=record.longest_streak,
        last_study_date=record.last_study_date,
        achievements=achievements,
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_items(model: type[ModelT], items: Any, label: str) -> list[ModelT]:
    """Validate each item, skipping (and logging) the ones that do not parse."""
    if items is None:
        return []
    if not isinstance(items, list):
        logger.warning(f"Ignoring {label}: expected a list, got {type(items).__name__}")
        return []

    parsed: list[ModelT] = []
    for index, item in enumerate(items):
        try:
            parsed.append(model.model_validate(item))
        except PydanticValidationError as e:
            logger.warning(f"Skipping invalid {label}[{index}]: {e.error_count()} error(s)")
    return parsed


def parse_export(document: Any) -> DataExport:
    """
    Build a DataExport from an untrusted document.

    Invalid cards, packs, history records or events are skipped individually;
    an unusable top-level document raises ValidationError.
    """
    if isinstance(document, DataExport):
        return document
    if not isinstance(document, dict):
        raise ValidationError("Export document must be a JSON object")

    version = document.get("version", EXPORT_VERSION)
    if not isinstance(version, int) or version > EXPORT_VERSION:
        raise ValidationError(f"Unsupported export version: {version!r}")

    streak_raw = document.get("streak_history")
    streak = StreakHistoryRecord()
    if streak_raw is not None:
        try:
            streak = StreakHistoryRecord.model_validate(streak_raw)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring invalid streak history: {e.error_count()} error(s)")

    try:
        exported_at = DataExport.model_validate(
            {"exported_at": document.get("exported_at")}
        ).exported_at
    except PydanticValidationError as e:
        raise ValidationError("Export document has no valid 'exported_at'") from e

    return DataExport(
        version=EXPORT_VERSION,
        exported_at=exported_at,
        cards=_parse_items(CardRecord, document.get("cards"), "cards"),
        packs=_parse_items(PackRecord, document.get("packs"), "packs"),
        review_history=_parse_items(
            DailyReviewRecordModel, document.get("review_history"), "review_history"
        ),
        review_events=_parse_items(
            ReviewEventRecord, document.get("review_events"), "review_events"
        ),
        streak_history=streak,
    )
