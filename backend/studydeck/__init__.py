"""
StudyDeck

Adaptive flashcard engine: mines question/answer cards out of markdown notes,
stores them per topic and schedules their repetition with an SM-2 variant.
"""

__version__ = "0.1.0"
