"""
Learning System Enums

Defines enums for card provenance, the SM-2 review ratings, confidence
levels and the study-session state machine.
"""

from enum import Enum, IntEnum


class CardOrigin(str, Enum):
    """
    Where a flashcard came from.

    The heuristic origins are produced by the text extractor, one per
    extraction strategy. Everything else is submitted from outside it.
    """

    HEURISTIC_HEADING = "heuristic-heading"
    HEURISTIC_DEFINITION = "heuristic-definition"
    HEURISTIC_LIST = "heuristic-list"
    HEURISTIC_CODE = "heuristic-code"
    MANUAL = "manual"
    IMPORTED = "imported"
    GENERATED_EXTERNALLY = "generated-externally"

    @property
    def is_heuristic(self) -> bool:
        """True for cards mined by the text extractor."""
        return self.value.startswith("heuristic-")


class DifficultyHint(str, Enum):
    """Advisory difficulty attached at creation. Never used for scheduling."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Confidence(IntEnum):
    """
    Self-reported mastery of a card, clamped to [UNKNOWN, MASTERED].

    Moves up by one on every passing review and down by one on every lapse.
    """

    UNKNOWN = 0
    LEARNING = 1
    FAMILIAR = 2
    CONFIDENT = 3
    PROFICIENT = 4
    MASTERED = 5


class Rating(IntEnum):
    """
    Review quality reported after revealing the answer.

    Anything below OKAY is a lapse. OKAY is the pass boundary: it passes
    but earns a smaller easiness bump than GOOD.
    """

    AGAIN = 1  # Total lapse
    HARD = 2  # Lapse, recalled with heavy effort
    OKAY = 3  # Pass boundary
    GOOD = 4  # Correct with reasonable effort
    EASY = 5  # Effortless, extra interval boost


PASSING_QUALITY = Rating.OKAY


class StudyMode(str, Enum):
    """Which cards a study session draws from."""

    ALL = "all"
    DUE = "due"


class SessionPhase(str, Enum):
    """
    Study-session states.

    State transitions:
    - (no session) → PRESENTING (start)
    - PRESENTING ↔ REVEALED (reveal toggles)
    - PRESENTING | REVEALED → PRESENTING (skip/score, more cards left)
    - PRESENTING | REVEALED → COMPLETE (skip/score on the last card)

    The idle state is the absence of a session value.
    """

    PRESENTING = "presenting"
    REVEALED = "revealed"
    COMPLETE = "complete"


class GenerationDiversity(str, Enum):
    """How varied the question types requested from a generator should be."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
