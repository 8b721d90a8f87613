"""
SM-2 Scheduler with a Learning Ladder

Pure scheduling functions: ``review(card, quality, config, now)`` returns
the updated card and never performs I/O. The scheduler configuration is
always passed in explicitly.

Card lifecycle:
    NEW → LEARNING (minute-scale ladder) → GRADUATED (day-scale SM-2)
    any state → LEARNING on a lapse (quality < 3)

Quality scale (see Rating):
    1 Again, 2 Hard       lapse
    3 Okay                pass, smaller interval boost (x1.2)
    4 Good                pass
    5 Easy                pass, larger interval boost (x1.3)

Usage:
    from studydeck.services.learning.scheduler import review, apply_review_outcome

    updated = review(card, Rating.GOOD, config, now=now)

    # With the caller-side bookkeeping (confidence, counters)
    updated = apply_review_outcome(card, 4, config, now=now)
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from studydeck.enums.learning import PASSING_QUALITY, Confidence, Rating
from studydeck.models.base import ensure_utc, utc_now
from studydeck.models.learning import (
    MIN_EASINESS_FACTOR,
    Flashcard,
    ReviewForecast,
    SchedulerConfig,
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

# Re-show offset used on a lapse when the configured ladder is empty
FALLBACK_LAPSE_MINUTES = 10.0

EASY_INTERVAL_BOOST = 1.3
OKAY_INTERVAL_BOOST = 1.2

# Forecast buckets as (name, end offset in days from the start of today)
FORECAST_BUCKETS = (
    ("overdue", 0),
    ("today", 1),
    ("tomorrow", 2),
    ("this_week", 7),
)


def to_rating(quality: Union[int, Rating]) -> Rating:
    """
    Validate a review quality.

    Raises:
        ValueError: If quality is not an integer in 1-5
    """
    if isinstance(quality, bool):
        raise ValueError(f"quality must be an integer 1-5, got {quality!r}")
    try:
        return Rating(int(quality))
    except (TypeError, ValueError):
        raise ValueError(f"quality must be an integer 1-5, got {quality!r}") from None


def is_passing(quality: Union[int, Rating]) -> bool:
    """Quality 3 and above is a pass; below 3 is a lapse."""
    return to_rating(quality) >= PASSING_QUALITY


def update_easiness(easiness_factor: float, quality: Union[int, Rating]) -> float:
    """SM-2 easiness update, floored at 1.3."""
    distance = 5 - int(quality)
    updated = easiness_factor + (0.1 - distance * (0.08 + distance * 0.02))
    return max(MIN_EASINESS_FACTOR, updated)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def review(
    card: Flashcard,
    quality: Union[int, Rating],
    config: Optional[SchedulerConfig] = None,
    now: Optional[datetime] = None,
) -> Flashcard:
    """
    Compute a card's schedule after one review.

    Confidence and the review counters are left untouched; see
    apply_review_outcome for the full bookkeeping.

    Args:
        card: Card being reviewed
        quality: Review quality, 1-5
        config: Scheduler configuration (defaults if omitted)
        now: Review time (default: now, UTC)

    Returns:
        Updated copy of the card

    Raises:
        ValueError: If quality is outside 1-5
    """
    rating = to_rating(quality)
    config = config or SchedulerConfig()
    now = ensure_utc(now) if now else utc_now()

    if rating < PASSING_QUALITY:
        return _lapse(card, config, now)
    if card.is_new or card.repetitions == 0:
        return _advance_learning(card, config, now)
    return _graduated_review(card, rating, config, now)


def _lapse(card: Flashcard, config: SchedulerConfig, now: datetime) -> Flashcard:
    """Send the card back to the first learning step."""
    steps = config.learning_steps
    offset_minutes = steps[0] if steps else FALLBACK_LAPSE_MINUTES

    return card.model_copy(
        update={
            "repetitions": 0,
            "learning_step_index": 0,
            "is_new": False,
            "interval_days": offset_minutes / MINUTES_PER_DAY,
            "next_review_at": now + timedelta(minutes=offset_minutes),
        }
    )


def _advance_learning(
    card: Flashcard, config: SchedulerConfig, now: datetime
) -> Flashcard:
    """Move one rung up the learning ladder, graduating past its end."""
    steps = config.learning_steps
    step_index = card.learning_step_index + 1

    if step_index < len(steps):
        offset_minutes = steps[step_index]
        return card.model_copy(
            update={
                "is_new": False,
                "learning_step_index": step_index,
                "interval_days": offset_minutes / MINUTES_PER_DAY,
                "next_review_at": now + timedelta(minutes=offset_minutes),
            }
        )

    interval = float(min(config.graduating_interval_days, config.max_interval_days))
    logger.debug(f"Card {card.id} graduated with a {interval}-day interval")
    return card.model_copy(
        update={
            "is_new": False,
            "learning_step_index": step_index,
            "repetitions": 1,
            "interval_days": interval,
            "next_review_at": now + timedelta(days=interval),
        }
    )


def _graduated_review(
    card: Flashcard, rating: Rating, config: SchedulerConfig, now: datetime
) -> Flashcard:
    """Day-scale SM-2 step for a card that has left the ladder."""
    easiness = update_easiness(card.easiness_factor, rating)

    multiplier = easiness
    if rating == Rating.EASY:
        multiplier *= EASY_INTERVAL_BOOST
    elif rating == Rating.OKAY:
        multiplier *= OKAY_INTERVAL_BOOST

    # Cards restored from older data can carry a sub-day interval
    previous = max(card.interval_days, config.new_card_interval_days)
    interval = max(_round_half_up(previous * multiplier), previous)
    interval = float(min(interval, config.max_interval_days))

    return card.model_copy(
        update={
            "is_new": False,
            "repetitions": card.repetitions + 1,
            "easiness_factor": easiness,
            "interval_days": interval,
            "next_review_at": now + timedelta(days=interval),
        }
    )


def apply_review_outcome(
    card: Flashcard,
    quality: Union[int, Rating],
    config: Optional[SchedulerConfig] = None,
    now: Optional[datetime] = None,
) -> Flashcard:
    """
    Review a card and record the outcome on it.

    On top of ``review``:
    - confidence +1 on a pass, -1 on a lapse, clamped to [0, 5]
    - review_count always +1, correct_count +1 on a pass
    - last_reviewed_at = now

    Args:
        card: Card being reviewed
        quality: Review quality, 1-5
        config: Scheduler configuration (defaults if omitted)
        now: Review time (default: now, UTC)

    Returns:
        Updated copy of the card
    """
    now = ensure_utc(now) if now else utc_now()
    passed = is_passing(quality)
    reviewed = review(card, quality, config, now)

    if passed:
        confidence = min(card.confidence + 1, Confidence.MASTERED)
    else:
        confidence = max(card.confidence - 1, Confidence.UNKNOWN)

    return reviewed.model_copy(
        update={
            "confidence": int(confidence),
            "review_count": card.review_count + 1,
            "correct_count": card.correct_count + (1 if passed else 0),
            "last_reviewed_at": now,
        }
    )


def get_review_forecast(
    cards: Iterable[Flashcard],
    as_of: Optional[datetime] = None,
) -> ReviewForecast:
    """
    Count upcoming reviews per calendar day bucket (UTC).

    Never-studied cards are not reviews yet and are left out.
    """
    as_of = ensure_utc(as_of) if as_of else utc_now()
    day_start = as_of.replace(hour=0, minute=0, second=0, microsecond=0)
    boundaries = [
        (name, day_start + timedelta(days=offset))
        for name, offset in FORECAST_BUCKETS
    ]

    counts = dict.fromkeys([name for name, _ in FORECAST_BUCKETS], 0)
    counts["later"] = 0
    for card in cards:
        if card.is_new:
            continue
        bucket = next(
            (name for name, end in boundaries if card.next_review_at < end),
            "later",
        )
        counts[bucket] += 1

    return ReviewForecast(**counts)
