"""
Streak tracker — consecutive-day review counter with milestone achievements.

State machine over calendar dates, advanced by every recorded review
(regardless of quality):

    never studied --review--> streak 1
    same day      --review--> unchanged
    next day      --review--> streak + 1
    later day     --review--> streak 1
    earlier day   --review--> unchanged

Achievements are a one-way ratchet: once a milestone is awarded it stays,
even if the streak later drops below it.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from recall.domain.constants import STREAK_MILESTONES
from recall.domain.models import StreakAchievement, StreakHistory, StreakSnapshot
from recall.domain.ports import ChangeListener, RecordChange, RecordKind

from .snapshot import streak_to_record, to_payload

logger = logging.getLogger(__name__)

STREAK_KEY = "streak"

MILESTONE_LABELS = {
    7: "1 Week",
    14: "2 Weeks",
    30: "1 Month",
    60: "2 Months",
    100: "100 Days",
    180: "6 Months",
    365: "1 Year",
}


def milestone_label(milestone: int) -> str:
    return MILESTONE_LABELS.get(milestone, f"{milestone} Days")


@dataclass(frozen=True)
class StreakStatus:
    """Display-oriented view of the streak as of a given day."""

    current_streak: int  # 0 once a full day has been missed
    longest_streak: int
    studied_today: bool
    next_milestone: int | None
    progress: int  # percent towards next_milestone
    days_remaining: int
    message: str


class StreakTracker:
    def __init__(
        self,
        milestones: tuple[int, ...] = STREAK_MILESTONES,
        on_change: ChangeListener | None = None,
    ):
        self.milestones = tuple(sorted(milestones))
        self._on_change = on_change
        self._history = StreakHistory()
        self._day_start: tuple[date, StreakSnapshot] | None = None

    @property
    def history(self) -> StreakHistory:
        """A copy of the current streak history."""
        return replace(self._history, achievements=list(self._history.achievements))

    def snapshot(self) -> StreakSnapshot:
        h = self._history
        return StreakSnapshot(
            current_streak=h.current_streak,
            longest_streak=h.longest_streak,
            last_study_date=h.last_study_date,
        )

    def record_study(self, day: date, at: datetime) -> list[StreakAchievement]:
        """
        Advance the state machine for a review on ``day`` submitted at ``at``.

        Returns:
            Achievements newly awarded by this review.
        """
        h = self._history
        last = h.last_study_date
        if last is None or day > last:
            self._day_start = (day, self.snapshot())

        if last is None:
            h.current_streak = 1
        elif day == last + timedelta(days=1):
            h.current_streak += 1
        elif day > last + timedelta(days=1):
            h.current_streak = 1
        # Same day or an earlier day: already counted

        h.longest_streak = max(h.longest_streak, h.current_streak)
        if last is None or day >= last:
            h.last_study_date = day

        awarded = self._award_milestones(at)
        for a in awarded:
            logger.info(f"Streak milestone reached: {milestone_label(a.milestone)}")

        self._emit()
        return awarded

    def reconsider(self, day: date, study_days: list[date]) -> bool:
        """
        Re-evaluate the streak after a review on ``day`` was undone.

        ``study_days`` are the days that still hold at least one review. While
        ``day`` is among them nothing changes. Otherwise the counters go back to
        their state before ``day`` was first studied, or, when that state was
        not captured, are recounted from ``study_days``. Achievements are kept.

        Returns:
            True if the counters changed.
        """
        h = self._history
        if day in study_days or h.last_study_date is None:
            return False
        run_start = h.last_study_date - timedelta(days=h.current_streak - 1)
        if not run_start <= day <= h.last_study_date:
            return False

        if day == h.last_study_date and self._day_start and self._day_start[0] == day:
            before = self._day_start[1]
            h.current_streak = before.current_streak
            h.longest_streak = before.longest_streak
            h.last_study_date = before.last_study_date
        else:
            last = h.last_study_date if day != h.last_study_date else max(study_days, default=None)
            h.current_streak = _run_ending_at(last, set(study_days))
            h.last_study_date = last
            h.longest_streak = max(h.longest_streak, h.current_streak)
        self._day_start = None
        self._emit()
        return True

    def status(self, today: date) -> StreakStatus:
        h = self._history
        studied_today = h.last_study_date == today
        alive = h.last_study_date is not None and h.last_study_date >= today - timedelta(days=1)
        current = h.current_streak if alive else 0

        next_milestone, progress, days_remaining = self._milestone_progress(current)
        return StreakStatus(
            current_streak=current,
            longest_streak=h.longest_streak,
            studied_today=studied_today,
            next_milestone=next_milestone,
            progress=progress,
            days_remaining=days_remaining,
            message=self._message(current, studied_today, next_milestone, days_remaining),
        )

    def hydrate(self, history: StreakHistory) -> None:
        self._history = replace(history, achievements=list(history.achievements))
        self._history.longest_streak = max(self._history.longest_streak, self._history.current_streak)
        self._day_start = None

    def clear(self) -> None:
        self._history = StreakHistory()
        self._day_start = None
        self._emit()

    # ------------------------------------------------------------------

    def _award_milestones(self, at: datetime) -> list[StreakAchievement]:
        awarded_already = self._history.awarded_milestones
        new: list[StreakAchievement] = []
        for milestone in self.milestones:
            if milestone in awarded_already:
                continue
            if self._history.current_streak >= milestone:
                new.append(StreakAchievement(milestone=milestone, achieved_at=at))
        self._history.achievements.extend(new)
        return new

    def _milestone_progress(self, current: int) -> tuple[int | None, int, int]:
        next_milestone = next((m for m in self.milestones if current < m), None)
        if next_milestone is None:
            return None, 100, 0

        previous = max((m for m in (0, *self.milestones) if m <= current), default=0)
        span = next_milestone - previous
        progress = round((current - previous) / span * 100) if span > 0 else 0
        return next_milestone, progress, next_milestone - current

    @staticmethod
    def _message(
        current: int, studied_today: bool, next_milestone: int | None, days_remaining: int
    ) -> str:
        if current == 0:
            return "Great start! Keep it going!" if studied_today else "Start a streak today!"
        if not studied_today:
            return f"Study today to continue your {current} day streak!"
        if next_milestone is None:
            return "Amazing! You've achieved all milestones!"
        label = milestone_label(next_milestone)
        if days_remaining == 1:
            return f"Just 1 more day to {label}!"
        if days_remaining <= 3:
            return f"Only {days_remaining} days to {label}!"
        return f"{days_remaining} days to {label}"

    def _emit(self) -> None:
        if self._on_change is not None:
            payload = to_payload(streak_to_record(self._history))
            self._on_change(RecordChange(kind=RecordKind.STREAK, key=STREAK_KEY, payload=payload))


def _run_ending_at(last: date | None, days: set[date]) -> int:
    """Number of consecutive days in ``days`` ending at ``last``."""
    run = 0
    day = last
    while day is not None and day in days:
        run += 1
        day -= timedelta(days=1)
    return run
