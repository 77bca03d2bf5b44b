"""
SM-2 scheduler.

Pure computation module with no I/O: given a card's scheduling state, a
quality rating and the current time, produce the next scheduling state.

Quality ratings (0-5):
- 0-2: failure (the UI only offers 0, "Again")
- 3: Hard, 4: Good, 5: Easy
"""

import math
from datetime import datetime, timedelta
from enum import IntEnum

from recall.domain.constants import (
    FIRST_INTERVAL_DAYS,
    MAX_QUALITY,
    MIN_EASE_FACTOR,
    MIN_QUALITY,
    PASSING_QUALITY,
    SECOND_INTERVAL_DAYS,
)
from recall.domain.errors import ValidationError
from recall.domain.models import SchedulingState


class Rating(IntEnum):
    """The coarse 4-point scale offered by the review UI."""

    AGAIN = 0
    HARD = 3
    GOOD = 4
    EASY = 5


RATING_LABELS = {
    Rating.AGAIN: "Again",
    Rating.HARD: "Hard",
    Rating.GOOD: "Good",
    Rating.EASY: "Easy",
}


def validate_quality(quality: object) -> int:
    """Return ``quality`` as an int, or raise ValidationError if it is not in [0, 5]."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValidationError(f"Quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ValidationError(
            f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}"
        )
    return int(quality)


def next_ease_factor(ease_factor: float, quality: int) -> float:
    """
    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), floored at 1.3.

    Applied on every review, including failures.
    """
    miss = MAX_QUALITY - quality
    delta = 0.1 - miss * (0.08 + miss * 0.02)
    return max(MIN_EASE_FACTOR, ease_factor + delta)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def schedule(state: SchedulingState, quality: int, now: datetime) -> SchedulingState:
    """
    Compute the state that follows ``state`` after a review rated ``quality`` at ``now``.

    Raises:
        ValidationError: If quality is outside [0, 5].
    """
    quality = validate_quality(quality)
    ease = next_ease_factor(state.ease_factor, quality)

    if quality < PASSING_QUALITY:
        repetitions = 0
        interval = FIRST_INTERVAL_DAYS
    else:
        repetitions = state.repetitions + 1
        if repetitions == 1:
            interval = FIRST_INTERVAL_DAYS
        elif repetitions == 2:
            interval = SECOND_INTERVAL_DAYS
        else:
            # Hydrated cards can carry interval 0 with repetitions > 0
            interval = max(1, _round_half_up(state.interval * ease))

    return SchedulingState(
        ease_factor=ease,
        interval=interval,
        repetitions=repetitions,
        next_review_date=now + timedelta(days=interval),
        last_reviewed_at=now,
    )


def preview_intervals(state: SchedulingState, now: datetime) -> dict[Rating, int]:
    """Interval each UI button would produce, for labelling the buttons."""
    return {rating: schedule(state, int(rating), now).interval for rating in Rating}


def rating_label(quality: int) -> str:
    if quality < PASSING_QUALITY:
        return RATING_LABELS[Rating.AGAIN]
    return RATING_LABELS[Rating(quality)]


def format_interval(days: int) -> str:
    """Human-readable interval, e.g. '3 days', '2 weeks', '4 months'."""
    if days <= 0:
        return "now"
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 14:
        return "1 week"
    if days < 30:
        return f"{_round_half_up(days / 7)} weeks"
    if days < 60:
        return "1 month"
    return f"{_round_half_up(days / 30)} months"
