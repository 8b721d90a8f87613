"""Pydantic models for the engine."""

from studydeck.models.base import RecordModel, StrictModel
from studydeck.models.learning import (
    CandidateCard,
    CardStats,
    DeckExport,
    Flashcard,
    ImportResult,
    ReviewForecast,
    SchedulerConfig,
    SessionProgress,
    SessionSummary,
    StudySession,
)

__all__ = [
    "RecordModel",
    "StrictModel",
    "CandidateCard",
    "CardStats",
    "DeckExport",
    "Flashcard",
    "ImportResult",
    "ReviewForecast",
    "SchedulerConfig",
    "SessionProgress",
    "SessionSummary",
    "StudySession",
]
