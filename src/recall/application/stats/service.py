"""
Stats Service — Application layer read model.

Read-only views over the card store, review ledger and streak tracker,
recomputed on demand (nothing is maintained incrementally).
"""

import logging
from dataclasses import dataclass
from datetime import date

from recall.application.card_store import CardStore
from recall.application.review_ledger import ReviewLedger
from recall.application.streak_tracker import StreakTracker
from recall.domain.constants import DEFAULT_INSIGHT_LIMIT, FORECAST_DAYS
from recall.domain.models import Card, DailyReviewRecord, DataSummary

from .metrics_calculator import ForecastDay, MetricsCalculator, RetentionPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StudyStats:
    """Overview shown on the study dashboard."""

    # Counts
    total_cards: int
    new_cards: int
    learning_cards: int
    mastered_cards: int
    due_now: int

    # Streaks
    current_streak: int
    longest_streak: int
    last_study_date: date | None
    studied_today: bool
    achievements: list[int]

    # Performance
    retention_rate_7d: float
    retention_rate_30d: float
    average_ease_factor: float
    total_reviews: int
    reviews_today: int
    total_minutes_studied: float

    # Insights
    most_challenging_ids: list[str]
    overdue_ids: list[str]

    # Forecast
    due_today: int
    due_tomorrow: int
    due_this_week: int


class StatsService:
    """
    Application service deriving statistics from the engine components.

    Depends on the components it reads, never mutates them.
    """

    def __init__(
        self,
        store: CardStore,
        ledger: ReviewLedger,
        streaks: StreakTracker,
        calculator: MetricsCalculator | None = None,
        insight_limit: int = DEFAULT_INSIGHT_LIMIT,
    ):
        """
        Args:
            store: Card store (also provides the clock).
            ledger: Review ledger with the daily records.
            streaks: Streak tracker.
            calculator: Optional custom calculator; uses default if not provided.
            insight_limit: Default length of the challenging / well-known lists.
        """
        self._store = store
        self._ledger = ledger
        self._streaks = streaks
        self._calc = calculator or MetricsCalculator()
        self.insight_limit = insight_limit

    @property
    def calculator(self) -> MetricsCalculator:
        return self._calc

    def retention_rate(self, window_days: int) -> float:
        """Share of reviews rated >= 3 over the trailing ``window_days`` days."""
        today = self._store.clock.today()
        return self._calc.retention_rate(self._ledger.window(window_days, today))

    def mastered_count(self) -> int:
        return sum(1 for c in self._store.cards if self._calc.is_mastered(c))

    def most_challenging(self, n: int | None = None) -> list[Card]:
        limit = self.insight_limit if n is None else n
        return self._calc.most_challenging(self._store.cards, self._store.clock.now(), limit)

    def well_known(self, n: int | None = None) -> list[Card]:
        limit = self.insight_limit if n is None else n
        return self._calc.well_known(self._store.cards, limit)

    def overdue(self) -> list[Card]:
        return self._calc.overdue(self._store.cards, self._store.clock.now())

    def review_forecast(self, days: int = FORECAST_DAYS) -> list[ForecastDay]:
        return self._calc.review_forecast(self._store.cards, self._store.clock, days)

    def rolling_retention(self, days: int) -> list[RetentionPoint]:
        return self._calc.rolling_retention(
            self._ledger.records, self._store.clock.today(), days
        )

    def activity(self, days: int) -> list[DailyReviewRecord]:
        """Daily records for the trailing window, oldest first (zero-filled)."""
        return self._ledger.window(days, self._store.clock.today())

    def data_summary(self) -> DataSummary:
        cards = self._store.cards
        oldest = min((c.created_at for c in cards), default=None)
        return DataSummary(
            total_cards=len(cards),
            total_packs=len(self._store.packs),
            total_reviews=self._ledger.total_reviews(),
            best_streak=self._streaks.history.longest_streak,
            oldest_card_date=oldest,
        )

    def get_stats(self) -> StudyStats:
        cards = self._store.cards
        clock = self._store.clock
        today = clock.today()

        mastered = [c for c in cards if self._calc.is_mastered(c)]
        new = [c for c in cards if not c.is_reviewed]
        learning = [c for c in cards if c.is_reviewed and not self._calc.is_mastered(c)]
        forecast = self.review_forecast(FORECAST_DAYS)
        status = self._streaks.status(today)
        history = self._streaks.history

        stats = StudyStats(
            total_cards=len(cards),
            new_cards=len(new),
            learning_cards=len(learning),
            mastered_cards=len(mastered),
            due_now=len(self._store.get_due_cards()),
            current_streak=status.current_streak,
            longest_streak=history.longest_streak,
            last_study_date=history.last_study_date,
            studied_today=status.studied_today,
            achievements=[a.milestone for a in history.achievements],
            retention_rate_7d=self.retention_rate(7),
            retention_rate_30d=self.retention_rate(30),
            average_ease_factor=self._calc.average_ease(cards),
            total_reviews=self._ledger.total_reviews(),
            reviews_today=self._ledger.record_for(today).total_reviews,
            total_minutes_studied=self._ledger.total_minutes(),
            most_challenging_ids=[c.id for c in self.most_challenging()],
            overdue_ids=[c.id for c in self.overdue()],
            due_today=forecast[0].count if forecast else 0,
            due_tomorrow=forecast[1].count if len(forecast) > 1 else 0,
            due_this_week=sum(day.count for day in forecast),
        )
        logger.debug(f"Computed stats for {stats.total_cards} cards")
        return stats
