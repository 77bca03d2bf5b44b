"""
Review ledger — per-day aggregation of review events.

Keeps one DailyReviewRecord per calendar date with reviews and the list of
review events it was folded from. Appending increments the matching day
bucket, removing (undo) decrements it.
"""

import logging
from datetime import date, timedelta

from recall.domain.constants import MAX_HISTORY_DAYS, PASSING_QUALITY
from recall.domain.models import DailyReviewRecord, ReviewEvent
from recall.domain.ports import ChangeListener, RecordChange, RecordKind

from .snapshot import daily_to_record, event_to_record, to_payload

logger = logging.getLogger(__name__)


def bucket_field(quality: int) -> str:
    """Name of the DailyReviewRecord counter a quality rating lands in."""
    if quality < PASSING_QUALITY:
        return "again_count"
    if quality == 3:
        return "hard_count"
    if quality == 4:
        return "good_count"
    return "easy_count"


class ReviewLedger:
    """Append-only review log aggregated into day buckets."""

    def __init__(
        self,
        history_days: int = MAX_HISTORY_DAYS,
        on_change: ChangeListener | None = None,
    ):
        self.history_days = history_days
        self._on_change = on_change
        self._records: dict[date, DailyReviewRecord] = {}
        self._events: list[ReviewEvent] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def records(self) -> list[DailyReviewRecord]:
        """All stored day records, oldest first."""
        return [self._records[d] for d in sorted(self._records)]

    @property
    def events(self) -> list[ReviewEvent]:
        return list(self._events)

    def record_for(self, day: date) -> DailyReviewRecord:
        """The record for ``day``; a fresh zero record if nothing was reviewed."""
        existing = self._records.get(day)
        return existing.copy() if existing else DailyReviewRecord(date=day)

    def has_reviews_on(self, day: date) -> bool:
        record = self._records.get(day)
        return record is not None and record.total_reviews > 0

    def study_days(self) -> list[date]:
        """Days holding at least one review, oldest first."""
        return sorted(d for d, r in self._records.items() if r.total_reviews > 0)

    def window(self, days: int, today: date) -> list[DailyReviewRecord]:
        """
        Trailing ``days``-long window ending at ``today``, oldest first.

        Days without reviews appear as zero records so charts get a continuous axis.
        """
        if days <= 0:
            return []
        start = today - timedelta(days=days - 1)
        return [self.record_for(start + timedelta(days=i)) for i in range(days)]

    def total_reviews(self) -> int:
        return sum(r.total_reviews for r in self._records.values())

    def total_minutes(self) -> float:
        return sum(r.minutes_studied for r in self._records.values())

    def events_for_card(self, card_id: str) -> list[ReviewEvent]:
        return [e for e in self._events if e.card_id == card_id]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append(self, event: ReviewEvent) -> DailyReviewRecord:
        record = self._records.setdefault(event.day_bucket, DailyReviewRecord(date=event.day_bucket))
        field_name = bucket_field(event.quality)
        setattr(record, field_name, getattr(record, field_name) + 1)
        self._events.append(event)

        self._emit(RecordKind.REVIEW_EVENT, event.id, to_payload(event_to_record(event)))
        self._emit_record(record)
        return record

    def remove(self, event: ReviewEvent) -> bool:
        """
        Remove a previously appended event and decrement its day bucket.

        Returns False if the event is not in the ledger.
        """
        for index, existing in enumerate(self._events):
            if existing.id == event.id:
                del self._events[index]
                break
        else:
            return False

        record = self._records.get(event.day_bucket)
        if record is not None:
            field_name = bucket_field(event.quality)
            setattr(record, field_name, max(0, getattr(record, field_name) - 1))
            if record.total_reviews == 0 and record.minutes_studied == 0:
                del self._records[event.day_bucket]
                self._emit(RecordKind.DAILY_RECORD, event.day_bucket.isoformat(), None)
            else:
                self._emit_record(record)

        self._emit(RecordKind.REVIEW_EVENT, event.id, None)
        return True

    def add_study_time(self, day: date, minutes: float) -> DailyReviewRecord:
        if minutes < 0:
            raise ValueError("minutes must be non-negative")
        record = self._records.setdefault(day, DailyReviewRecord(date=day))
        record.minutes_studied += minutes
        self._emit_record(record)
        return record

    def prune(self, today: date) -> int:
        """Drop day records and events older than the retention horizon."""
        cutoff = today - timedelta(days=self.history_days)
        stale_days = [d for d in self._records if d < cutoff]
        for d in stale_days:
            del self._records[d]
            self._emit(RecordKind.DAILY_RECORD, d.isoformat(), None)

        stale_events = [e for e in self._events if e.day_bucket < cutoff]
        if stale_events:
            self._events = [e for e in self._events if e.day_bucket >= cutoff]
            for e in stale_events:
                self._emit(RecordKind.REVIEW_EVENT, e.id, None)

        if stale_days:
            logger.debug(f"Pruned {len(stale_days)} day records older than {cutoff}")
        return len(stale_days)

    def hydrate(self, records: list[DailyReviewRecord], events: list[ReviewEvent]) -> None:
        """
        Load persisted state.

        Day records are authoritative. Events whose day has no record are
        folded in, so a store that only kept raw events still aggregates.
        """
        self._records = {r.date: r.copy() for r in records}
        self._events = sorted(events, key=lambda e: e.timestamp)
        aggregated_days = set(self._records)
        for event in self._events:
            if event.day_bucket in aggregated_days:
                continue
            record = self._records.setdefault(event.day_bucket, DailyReviewRecord(date=event.day_bucket))
            field_name = bucket_field(event.quality)
            setattr(record, field_name, getattr(record, field_name) + 1)

    def clear(self) -> None:
        for e in self._events:
            self._emit(RecordKind.REVIEW_EVENT, e.id, None)
        for d in self._records:
            self._emit(RecordKind.DAILY_RECORD, d.isoformat(), None)
        self._records = {}
        self._events = []

    # ------------------------------------------------------------------

    def _emit_record(self, record: DailyReviewRecord) -> None:
        self._emit(RecordKind.DAILY_RECORD, record.date.isoformat(), to_payload(daily_to_record(record)))

    def _emit(self, kind: RecordKind, key: str, payload: dict | None) -> None:
        if self._on_change is not None:
            self._on_change(RecordChange(kind=kind, key=key, payload=payload))
