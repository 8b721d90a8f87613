"""
Centralized enum definitions.

Usage:
    from studydeck.enums import CardOrigin, Rating

    # Or import from the module directly
    from studydeck.enums.learning import SessionPhase
"""

from studydeck.enums.learning import (
    CardOrigin,
    Confidence,
    DifficultyHint,
    GenerationDiversity,
    PASSING_QUALITY,
    Rating,
    SessionPhase,
    StudyMode,
)

__all__ = [
    "CardOrigin",
    "Confidence",
    "DifficultyHint",
    "GenerationDiversity",
    "PASSING_QUALITY",
    "Rating",
    "SessionPhase",
    "StudyMode",
]
