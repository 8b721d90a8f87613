"""
Unit tests for the SM-2 scheduler.

Tests the learning ladder, graduation, graduated SM-2 reviews, lapses,
the caller-side bookkeeping in apply_review_outcome and the review
forecast.
"""

import random
from datetime import timedelta

import pytest

from studydeck.enums.learning import Rating
from studydeck.models.learning import MIN_EASINESS_FACTOR, SchedulerConfig
from studydeck.services.learning.scheduler import (
    FALLBACK_LAPSE_MINUTES,
    apply_review_outcome,
    get_review_forecast,
    is_passing,
    review,
    to_rating,
    update_easiness,
)


@pytest.fixture
def graduated_card(make_card):
    """A card that left the ladder with a 6-day interval."""
    return make_card(
        is_new=False,
        repetitions=1,
        learning_step_index=2,
        interval_days=6,
        easiness_factor=2.5,
    )


class TestRatings:
    """Tests for quality validation and the pass boundary."""

    @pytest.mark.parametrize("quality", [0, 6, -1, "x", None])
    def test_invalid_quality_rejected(self, quality):
        with pytest.raises(ValueError):
            to_rating(quality)

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            to_rating(True)

    @pytest.mark.parametrize(
        "quality, passing",
        [(1, False), (2, False), (3, True), (4, True), (5, True)],
    )
    def test_pass_boundary(self, quality, passing):
        assert is_passing(quality) is passing

    def test_review_rejects_invalid_quality(self, make_card):
        with pytest.raises(ValueError):
            review(make_card(), 7)


class TestEasiness:
    """Tests for the SM-2 easiness update."""

    @pytest.mark.parametrize(
        "quality, expected",
        [(5, 2.6), (4, 2.5), (3, 2.36), (2, 2.18), (1, 1.96)],
    )
    def test_update_easiness(self, quality, expected):
        assert update_easiness(2.5, quality) == pytest.approx(expected)

    def test_floor(self):
        assert update_easiness(1.3, Rating.AGAIN) == MIN_EASINESS_FACTOR


class TestLearningLadder:
    """Tests for new and learning cards."""

    def test_two_good_reviews_graduate(self, make_card, scheduler_config, now):
        card = make_card()

        first = review(card, Rating.GOOD, scheduler_config, now)
        assert first.is_new is False
        assert first.learning_step_index == 1
        assert first.repetitions == 0
        assert first.next_review_at == now + timedelta(minutes=1440)

        later = now + timedelta(days=1)
        second = review(first, Rating.GOOD, scheduler_config, later)
        assert second.repetitions == 1
        assert second.interval_days == 6
        assert second.next_review_at == later + timedelta(days=6)

    def test_single_step_ladder_graduates_immediately(self, make_card, now):
        config = SchedulerConfig(learning_steps=[10])
        updated = review(make_card(), Rating.GOOD, config, now)

        assert updated.repetitions == 1
        assert updated.interval_days == 6

    def test_okay_passes_in_learning(self, make_card, scheduler_config, now):
        updated = review(make_card(), Rating.OKAY, scheduler_config, now)
        assert updated.learning_step_index == 1

    def test_graduation_respects_max_interval(self, make_card, now):
        config = SchedulerConfig(
            learning_steps=[10], graduating_interval_days=30, max_interval_days=7
        )
        updated = review(make_card(), Rating.GOOD, config, now)
        assert updated.interval_days == 7

    def test_review_does_not_touch_counters(self, make_card, scheduler_config, now):
        updated = review(make_card(confidence=2), Rating.GOOD, scheduler_config, now)

        assert updated.confidence == 2
        assert updated.review_count == 0
        assert updated.last_reviewed_at is None


class TestGraduatedReview:
    """Tests for day-scale SM-2 reviews."""

    @pytest.mark.parametrize(
        "quality, expected_interval",
        [(Rating.GOOD, 15), (Rating.EASY, 20), (Rating.OKAY, 17)],
    )
    def test_interval_growth(
        self, graduated_card, scheduler_config, now, quality, expected_interval
    ):
        updated = review(graduated_card, quality, scheduler_config, now)

        assert updated.repetitions == 2
        assert updated.interval_days == expected_interval
        assert updated.next_review_at == now + timedelta(days=expected_interval)

    def test_clamped_to_max_interval(self, make_card, now):
        card = make_card(is_new=False, repetitions=5, interval_days=300)
        updated = review(card, Rating.EASY, SchedulerConfig(), now)
        assert updated.interval_days == 365

    def test_sub_day_interval_floored(self, make_card, scheduler_config, now):
        """Restored cards with a minute-scale interval still move forward."""
        card = make_card(is_new=False, repetitions=1, interval_days=10 / 1440)
        updated = review(card, Rating.GOOD, scheduler_config, now)
        assert updated.interval_days >= 1

    def test_intervals_non_decreasing(self, graduated_card, scheduler_config, now):
        rng = random.Random(5)
        card = graduated_card
        when = now

        for _ in range(40):
            quality = rng.choice([Rating.OKAY, Rating.GOOD, Rating.EASY])
            updated = review(card, quality, scheduler_config, when)
            assert card.interval_days <= updated.interval_days
            assert updated.interval_days <= scheduler_config.max_interval_days
            card = updated
            when = card.next_review_at


class TestLapse:
    """Tests for lapses from any state."""

    @pytest.mark.parametrize("quality", [Rating.AGAIN, Rating.HARD])
    def test_lapse_resets_graduated_card(
        self, graduated_card, scheduler_config, now, quality
    ):
        updated = review(graduated_card, quality, scheduler_config, now)

        assert updated.repetitions == 0
        assert updated.learning_step_index == 0
        assert updated.is_new is False
        assert updated.next_review_at == now + timedelta(minutes=10)
        assert updated.interval_days == pytest.approx(10 / 1440)
        assert updated.easiness_factor == graduated_card.easiness_factor

    def test_lapse_on_new_card(self, make_card, scheduler_config, now):
        updated = review(make_card(), Rating.AGAIN, scheduler_config, now)
        assert updated.is_new is False
        assert updated.next_review_at == now + timedelta(minutes=10)

    def test_empty_ladder_uses_fallback(self, graduated_card, now):
        config = SchedulerConfig(learning_steps=[])
        updated = review(graduated_card, Rating.AGAIN, config, now)
        assert updated.next_review_at == now + timedelta(
            minutes=FALLBACK_LAPSE_MINUTES
        )

    def test_easiness_never_below_floor(self, make_card, scheduler_config, now):
        rng = random.Random(9)
        card = make_card(easiness_factor=1.4)
        when = now

        for _ in range(60):
            card = apply_review_outcome(
                card, rng.randint(1, 5), scheduler_config, when
            )
            assert card.easiness_factor >= MIN_EASINESS_FACTOR
            assert 0 <= card.confidence <= 5
            when = card.next_review_at


class TestApplyReviewOutcome:
    """Tests for confidence and counter bookkeeping."""

    def test_pass_updates_counters(self, make_card, scheduler_config, now):
        updated = apply_review_outcome(
            make_card(confidence=2), Rating.GOOD, scheduler_config, now
        )

        assert updated.confidence == 3
        assert updated.review_count == 1
        assert updated.correct_count == 1
        assert updated.last_reviewed_at == now

    def test_lapse_updates_counters(self, make_card, scheduler_config, now):
        updated = apply_review_outcome(
            make_card(confidence=2), Rating.HARD, scheduler_config, now
        )

        assert updated.confidence == 1
        assert updated.review_count == 1
        assert updated.correct_count == 0

    def test_confidence_clamped(self, make_card, scheduler_config, now):
        top = apply_review_outcome(
            make_card(confidence=5), Rating.EASY, scheduler_config, now
        )
        bottom = apply_review_outcome(
            make_card(confidence=0), Rating.AGAIN, scheduler_config, now
        )

        assert top.confidence == 5
        assert bottom.confidence == 0

    def test_original_card_unchanged(self, make_card, scheduler_config, now):
        card = make_card()
        apply_review_outcome(card, Rating.GOOD, scheduler_config, now)
        assert card.review_count == 0
        assert card.is_new is True


class TestReviewForecast:
    """Tests for get_review_forecast."""

    def test_buckets(self, make_card, now):
        day_start = now.replace(hour=0, minute=0)
        cards = [
            make_card(is_new=False, next_review_at=day_start - timedelta(hours=1)),
            make_card(is_new=False, next_review_at=now + timedelta(hours=2)),
            make_card(is_new=False, next_review_at=day_start + timedelta(days=1)),
            make_card(is_new=False, next_review_at=day_start + timedelta(days=3)),
            make_card(is_new=False, next_review_at=day_start + timedelta(days=7)),
        ]

        forecast = get_review_forecast(cards, as_of=now)

        assert forecast.overdue == 1
        assert forecast.today == 1
        assert forecast.tomorrow == 1
        assert forecast.this_week == 1
        assert forecast.later == 1

    def test_new_cards_excluded(self, make_card, now):
        forecast = get_review_forecast([make_card()], as_of=now)
        assert forecast.today == 0
        assert forecast.overdue == 0

    def test_empty(self, now):
        forecast = get_review_forecast([], as_of=now)
        assert forecast.model_dump() == {
            "overdue": 0,
            "today": 0,
            "tomorrow": 0,
            "this_week": 0,
            "later": 0,
        }
