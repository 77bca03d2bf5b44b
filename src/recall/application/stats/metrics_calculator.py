"""
Metrics calculator for deriving insights from cards and review history.

This is a pure computation module with no I/O.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from recall.domain.constants import (
    DEFAULT_EASE_FACTOR,
    MASTERY_MIN_INTERVAL,
    MASTERY_MIN_REPETITIONS,
    ROLLING_RETENTION_RADIUS,
)
from recall.domain.models import Card, DailyReviewRecord
from recall.domain.ports import Clock

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class MasteryThreshold:
    """
    Cutoffs a card must exceed to count as mastered.

    Product decision, not a scheduling invariant; both are configurable.
    """

    min_interval: int = MASTERY_MIN_INTERVAL
    min_repetitions: int = MASTERY_MIN_REPETITIONS


@dataclass(frozen=True)
class ForecastDay:
    date: date
    count: int


@dataclass(frozen=True)
class RetentionPoint:
    date: date
    retention_rate: float


class MetricsCalculator:
    """
    Computes derived metrics from cards and daily review records.

    Stateless and side-effect free.
    """

    def __init__(self, mastery: MasteryThreshold | None = None):
        self.mastery = mastery or MasteryThreshold()

    def is_mastered(self, card: Card) -> bool:
        return (
            card.interval > self.mastery.min_interval
            and card.repetitions > self.mastery.min_repetitions
        )

    def retention_rate(self, records: list[DailyReviewRecord]) -> float:
        """
        Share of reviews rated 3 or better. 0.0 when there were no reviews.
        """
        total = sum(r.total_reviews for r in records)
        if total == 0:
            return 0.0
        return sum(r.correct_reviews for r in records) / total

    def days_overdue(self, card: Card, now: datetime) -> float | None:
        """
        Fractional days past the due date (negative if not yet due).

        None for cards without a scheduled date.
        """
        if card.next_review_date is None:
            return None
        return (now - card.next_review_date).total_seconds() / SECONDS_PER_DAY

    def most_challenging(self, cards: list[Card], now: datetime, limit: int) -> list[Card]:
        """Reviewed cards with the lowest ease, most overdue first among ties."""
        reviewed = [c for c in cards if c.is_reviewed]

        def key(card: Card) -> tuple[float, float]:
            overdue = self.days_overdue(card, now)
            return (card.ease_factor, -overdue if overdue is not None else float("inf"))

        return sorted(reviewed, key=key)[: max(0, limit)]

    def well_known(self, cards: list[Card], limit: int) -> list[Card]:
        reviewed = [c for c in cards if c.is_reviewed]
        return sorted(reviewed, key=lambda c: c.interval, reverse=True)[: max(0, limit)]

    def overdue(self, cards: list[Card], now: datetime) -> list[Card]:
        """Cards whose next review date is strictly in the past, most overdue first."""
        late = [c for c in cards if c.next_review_date is not None and c.next_review_date < now]
        return sorted(late, key=lambda c: c.next_review_date)

    def average_ease(self, cards: list[Card]) -> float:
        reviewed = [c.ease_factor for c in cards if c.is_reviewed]
        if not reviewed:
            return DEFAULT_EASE_FACTOR
        return sum(reviewed) / len(reviewed)

    def review_forecast(self, cards: list[Card], clock: Clock, days: int) -> list[ForecastDay]:
        """
        Number of cards coming due on each of the next ``days`` local days.

        Today's count includes everything overdue and never-reviewed cards.
        """
        today = clock.today()
        due_dates = [
            clock.local_date(c.next_review_date) if c.next_review_date else None for c in cards
        ]

        forecast: list[ForecastDay] = []
        for offset in range(days):
            target = today + timedelta(days=offset)
            if offset == 0:
                count = sum(1 for d in due_dates if d is None or d <= today)
            else:
                count = sum(1 for d in due_dates if d == target)
            forecast.append(ForecastDay(date=target, count=count))
        return forecast

    def rolling_retention(
        self,
        records: list[DailyReviewRecord],
        today: date,
        days: int,
        radius: int = ROLLING_RETENTION_RADIUS,
    ) -> list[RetentionPoint]:
        """
        Retention averaged over a centred (2 * radius + 1)-day window for each
        of the last ``days`` days, oldest first.
        """
        by_date = {r.date: r for r in records}
        points: list[RetentionPoint] = []
        for back in range(days - 1, -1, -1):
            centre = today - timedelta(days=back)
            window = [
                by_date[centre + timedelta(days=offset)]
                for offset in range(-radius, radius + 1)
                if centre + timedelta(days=offset) in by_date
            ]
            points.append(RetentionPoint(date=centre, retention_rate=self.retention_rate(window)))
        return points
