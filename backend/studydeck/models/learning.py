"""
Learning System Models (Pydantic)

Records for the flashcard engine including:
- Flashcards and extractor candidates
- Scheduler configuration
- Study sessions and their summaries
- Deck statistics, forecasts and export envelopes

Persisted records serialize with camelCase keys (``nextReviewAt``,
``easinessFactor``...) so exports stay portable. Field-level aliases also
accept the key names used by older exports (``interval``, ``stepIndex``,
``nextReviewDate``...).
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

from pydantic import (
    AliasChoices,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from studydeck.enums.learning import (
    CardOrigin,
    Confidence,
    DifficultyHint,
    SessionPhase,
)
from studydeck.models.base import RecordModel, StrictModel, ensure_utc, utc_now

MIN_EASINESS_FACTOR = 1.3
DEFAULT_EASINESS_FACTOR = 2.5

# Upper bound for configured offsets (100 years)
MAX_SCHEDULE_DAYS = 36500
MAX_STEP_MINUTES = MAX_SCHEDULE_DAYS * 24 * 60

LEGACY_AUTO_ORIGINS = {
    "heading": CardOrigin.HEURISTIC_HEADING,
    "definition": CardOrigin.HEURISTIC_DEFINITION,
    "list": CardOrigin.HEURISTIC_LIST,
    "code": CardOrigin.HEURISTIC_CODE,
}


def _as_number(value, kind):
    """Coerce ``value`` with ``kind`` (int/float), raising ValueError on junk."""
    try:
        number = kind(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"expected a number, got {value!r}") from None
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError(f"expected a finite number, got {value!r}")
    return number


class PortableRecord(RecordModel):
    """Frozen record serialized with camelCase keys."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        validate_default=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ===========================================
# Flashcards
# ===========================================


class Flashcard(PortableRecord):
    """
    A reviewable question/answer unit with its SM-2 scheduling state.

    Invariants enforced on construction:
    - confidence is clamped to [0, 5]
    - easiness_factor never drops below 1.3
    - interval_days and the counters are never negative
    - timestamps are timezone-aware UTC
    """

    id: Optional[str] = Field(None, description="Stable id, assigned by the card store")
    question: str
    answer: str = Field(..., description="Answer text, may embed fenced code")
    origin: CardOrigin = CardOrigin.MANUAL
    difficulty_hint: Optional[DifficultyHint] = Field(
        None,
        validation_alias=AliasChoices(
            "difficultyHint", "difficulty_hint", "difficulty"
        ),
    )

    # Review statistics
    confidence: int = Field(Confidence.UNKNOWN, description="0=Unknown ... 5=Mastered")
    review_count: int = 0
    correct_count: int = 0

    # SM-2 state
    easiness_factor: float = DEFAULT_EASINESS_FACTOR
    interval_days: float = Field(
        0.0, validation_alias=AliasChoices("intervalDays", "interval_days", "interval")
    )
    repetitions: int = 0
    learning_step_index: int = Field(
        0,
        validation_alias=AliasChoices(
            "learningStepIndex", "learning_step_index", "stepIndex"
        ),
    )
    is_new: bool = True
    next_review_at: datetime = Field(
        default_factory=utc_now,
        validation_alias=AliasChoices(
            "nextReviewAt", "next_review_at", "nextReviewDate"
        ),
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        validation_alias=AliasChoices("createdAt", "created_at", "created"),
    )
    last_reviewed_at: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices(
            "lastReviewedAt", "last_reviewed_at", "lastReviewed"
        ),
    )

    # Extractor extras
    language: Optional[str] = Field(None, description="Code block language")
    context: Optional[str] = Field(None, description="Heading the card was mined under")

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_source(cls, data):
        # Older exports recorded "source" (auto/manual/ai) plus a "type"
        if isinstance(data, dict) and "origin" not in data and "source" in data:
            data = dict(data)
            source = data.get("source")
            if source == "auto":
                kind = data.get("type", "heading")
                data["origin"] = LEGACY_AUTO_ORIGINS.get(
                    kind, CardOrigin.HEURISTIC_HEADING
                )
            elif source == "ai":
                data["origin"] = CardOrigin.GENERATED_EXTERNALLY
            elif source in {origin.value for origin in CardOrigin}:
                data["origin"] = source
        return data

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return Confidence.UNKNOWN
        clamped = min(Confidence.MASTERED, _as_number(value, int))
        return int(max(Confidence.UNKNOWN, clamped))

    @field_validator("easiness_factor", mode="before")
    @classmethod
    def _floor_easiness(cls, value):
        if value is None:
            return DEFAULT_EASINESS_FACTOR
        return max(MIN_EASINESS_FACTOR, _as_number(value, float))

    @field_validator("interval_days", mode="before")
    @classmethod
    def _non_negative_interval(cls, value):
        if value is None:
            return 0.0
        return max(0.0, _as_number(value, float))

    @field_validator(
        "repetitions",
        "learning_step_index",
        "review_count",
        "correct_count",
        mode="before",
    )
    @classmethod
    def _non_negative_count(cls, value):
        if value is None:
            return 0
        return max(0, int(_as_number(value, float)))

    @field_validator("next_review_at", "created_at", "last_reviewed_at")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        try:
            return ensure_utc(value)
        except OverflowError:
            raise ValueError(f"timestamp out of range in UTC: {value}") from None

    def is_due(self, now: Optional[datetime] = None) -> bool:
        """A card is due once ``now`` has reached ``next_review_at``."""
        now = ensure_utc(now) if now else utc_now()
        return now >= self.next_review_at

    @property
    def is_graduated(self) -> bool:
        """True once the card has left the learning ladder."""
        return self.repetitions >= 1


class CandidateCard(StrictModel):
    """
    Question/answer pair proposed by the extractor or an external generator.

    Candidates carry no scheduling state; the card store turns accepted
    candidates into fresh Flashcards.
    """

    question: str
    answer: str
    origin: CardOrigin
    difficulty_hint: Optional[DifficultyHint] = None
    language: Optional[str] = None
    context: Optional[str] = None
    heading_level: Optional[int] = None

    def to_flashcard(self, now: Optional[datetime] = None) -> Flashcard:
        """Build a brand-new card, due immediately."""
        now = ensure_utc(now) if now else utc_now()
        return Flashcard(
            question=self.question,
            answer=self.answer,
            origin=self.origin,
            difficulty_hint=self.difficulty_hint,
            language=self.language,
            context=self.context,
            next_review_at=now,
            created_at=now,
        )


# ===========================================
# Scheduler Configuration
# ===========================================


class SchedulerConfig(StrictModel):
    """
    User-editable scheduling settings.

    Passed explicitly into every scheduling computation. Edits only affect
    later reviews; stored cards are never rewritten retroactively.
    """

    model_config = ConfigDict(
        extra="forbid",
        allow_inf_nan=False,
        validate_default=True,
        validate_assignment=True,
    )

    learning_steps: list[float] = Field(
        default_factory=lambda: [10, 1440],
        description="Learning ladder offsets in minutes",
    )
    graduating_interval_days: float = Field(6, gt=0, le=MAX_SCHEDULE_DAYS)
    # Reserved for "easy on first graduation" acceleration
    easy_interval_days: float = Field(10, gt=0, le=MAX_SCHEDULE_DAYS)
    max_interval_days: float = Field(365, ge=1, le=MAX_SCHEDULE_DAYS)
    new_card_interval_days: float = Field(1, gt=0, le=MAX_SCHEDULE_DAYS)

    @field_validator("learning_steps")
    @classmethod
    def _positive_steps(cls, value: list[float]) -> list[float]:
        if not all(0 < step <= MAX_STEP_MINUTES for step in value):
            raise ValueError(
                f"learning steps must be minute offsets in (0, {MAX_STEP_MINUTES}]"
            )
        return value


# ===========================================
# Study Sessions
# ===========================================


class StudySession(RecordModel):
    """
    One study session over a fixed deck of card ids.

    Immutable: every transition in SessionService returns a new value. The
    session only references cards by id; the card store owns their state.
    """

    topic_id: str
    card_ids: tuple[str, ...]
    cursor: int = 0
    phase: SessionPhase = SessionPhase.PRESENTING
    correct_count: int = 0
    lapse_count: int = 0
    skipped_count: int = 0
    started_at: datetime = Field(default_factory=utc_now)

    @property
    def total(self) -> int:
        return len(self.card_ids)

    @property
    def is_answer_revealed(self) -> bool:
        return self.phase == SessionPhase.REVEALED

    @property
    def is_complete(self) -> bool:
        return self.phase == SessionPhase.COMPLETE

    @property
    def current_card_id(self) -> Optional[str]:
        if self.cursor >= len(self.card_ids):
            return None
        return self.card_ids[self.cursor]


class SessionProgress(RecordModel):
    """Live progress of a session, for display between cards."""

    total: int
    current: int = Field(description="1-based position of the card on screen")
    correct: int
    lapses: int
    skipped: int
    remaining: int
    percent_complete: int


class SessionSummary(RecordModel):
    """Final statistics returned when a session ends."""

    topic_id: str
    total: int
    correct: int
    lapses: int
    skipped: int = 0
    elapsed: timedelta


# ===========================================
# Statistics
# ===========================================


class ReviewForecast(RecordModel):
    """
    Upcoming review workload, by calendar day (UTC).

    Buckets are mutually exclusive: overdue (before today), today,
    tomorrow, this_week (days 3-7) and later.
    """

    overdue: int = 0
    today: int = 0
    tomorrow: int = 0
    this_week: int = 0
    later: int = 0


class CardStats(RecordModel):
    """Aggregate statistics for one topic or the whole collection."""

    total_cards: int
    auto_generated: int
    manual: int
    imported: int
    generated_externally: int
    mastered: int
    to_review: int
    mastery_percentage: int
    due_now: int
    forecast: ReviewForecast


# ===========================================
# Export / Import
# ===========================================


class DeckExport(PortableRecord):
    """Portable backup of one topic's cards."""

    topic_id: str
    cards: list[Flashcard] = Field(default_factory=list)
    exported_at: datetime = Field(
        default_factory=utc_now,
        validation_alias=AliasChoices("exportedAt", "exported_at", "exportDate"),
    )
    format_version: str = Field(
        "1.0",
        validation_alias=AliasChoices("formatVersion", "format_version", "version"),
    )


class ImportResult(RecordModel):
    """Outcome of importing a deck export into a topic."""

    success: bool
    imported: int = 0
    skipped: int = 0
    error: Optional[str] = None
