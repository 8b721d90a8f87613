"""
Base Models for Engine Records

This module provides base classes with the validation settings shared by
every pydantic model in the engine.

MOTIVATION:
    Records cross two boundaries: they are created by callers (manual cards,
    configuration edits) and they are read back from a key-value store that
    may hold data written by an older version. The two directions want
    different strictness:
    - Caller input rejects unknown fields so typos fail fast
    - Persisted records ignore unknown fields so old exports still load

Usage:
    # For caller-built values (strictest validation)
    class SchedulerConfig(StrictModel):
        max_interval_days: int = 365

    # For records read back from storage (frozen, tolerant of extras)
    class Flashcard(RecordModel):
        question: str
        answer: str

Architecture:
    Caller → StrictModel (extra="forbid") → Service
    Storage JSON → RecordModel (extra="ignore", frozen) → Service
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """
    Base model for values built by callers.

    Rejects any fields not explicitly declared in the model.

    Features:
        - extra="forbid": Unknown fields raise ValidationError
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings

    Example:
        >>> class Limits(StrictModel):
        ...     max_items: int
        >>>
        >>> Limits(max_items=5)  # OK
        >>> Limits(max_item=5)  # Raises ValidationError
    """

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        validate_default=True,  # Validate defaults
        str_strip_whitespace=True,  # Clean string inputs
    )


class RecordModel(BaseModel):
    """
    Base model for immutable records that round-trip through storage.

    Features:
        - extra="ignore": Silently ignores fields written by other versions
        - frozen=True: Records are values; updates go through model_copy()
        - validate_default=True: Validates default values
    """

    model_config = ConfigDict(
        extra="ignore",  # Allow extra fields from older payloads
        frozen=True,  # Updates produce new values
        validate_default=True,  # Validate defaults
    )


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
