"""
Engine Error Taxonomy

Custom exception classes for the flashcard engine. Every error carries a
short machine-readable code and optional details so callers can log or
display them consistently.

Only StorageCapacityExceeded is meant to reach the user. The remaining
classes are raised and caught inside the engine:

    ExtractionSkip           candidate failed validity filtering (dropped)
    DuplicateCard            normalized question already present (ignored)
    CorruptPersistedState    stored record could not be decoded (defaulted)
    InvalidSessionTransition action not allowed in the current phase
    InvalidDeckFormat        import payload is not a deck export

Usage:
    from studydeck.errors import StorageCapacityExceeded

    try:
        store.put(topic_id, card)
    except StorageCapacityExceeded as e:
        print(e.message)
"""

from typing import Optional


class EngineError(Exception):
    """
    Base exception for engine errors.

    Provides consistent error handling with:
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise EngineError("Deck could not be saved", error_code="save_failed")
    """

    error_code: str = "engine_error"

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details


class ExtractionSkip(EngineError):
    """
    Candidate card rejected by the validity filter.

    Never surfaced: the extractor catches it and drops the candidate.
    """

    error_code = "extraction_skip"


class DuplicateCard(EngineError):
    """A card with the same normalized question already exists in the topic."""

    error_code = "duplicate_card"


class StorageCapacityExceeded(EngineError):
    """
    The key-value backend refused a write because it is full.

    The triggering write has been rolled back. The message tells the user
    how to free space; the engine never retries on its own.
    """

    error_code = "storage_capacity_exceeded"

    def __init__(
        self,
        message: str = None,
        attempted_bytes: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        if message is None:
            size = (
                f" (~{attempted_bytes / 1024:.2f} KB)"
                if attempted_bytes is not None
                else ""
            )
            message = (
                f"Storage quota exceeded: your flashcard data{size} does not fit "
                "in the configured storage. Delete some flashcards, or export "
                "the deck and clear old topics, then try again."
            )
        details = dict(details or {})
        if attempted_bytes is not None:
            details.setdefault("attempted_bytes", attempted_bytes)
        super().__init__(message, details=details or None)
        self.attempted_bytes = attempted_bytes


class CorruptPersistedState(EngineError):
    """
    A stored record is malformed.

    Recovered by substituting the documented empty deck or default
    configuration. Logged but never fatal.
    """

    error_code = "corrupt_persisted_state"


class InvalidSessionTransition(EngineError):
    """
    Session action not valid in the current phase (e.g. scoring before reveal).

    Programming error: raised in strict mode, logged and ignored otherwise.
    """

    error_code = "invalid_session_transition"


class InvalidDeckFormat(EngineError):
    """Import payload is not a valid deck export."""

    error_code = "invalid_deck_format"
