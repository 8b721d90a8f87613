"""
Study Session Service

Drives one study session over a fixed deck of cards:

    (no session) → PRESENTING ↔ REVEALED → PRESENTING | COMPLETE

Sessions are immutable StudySession values. Every transition returns a
new value; the caller keeps the latest one and drops it after ``end``.
A session only references cards by id, so every score is read from and
written back through the card store immediately.

Invalid transitions (scoring before the answer is revealed, acting on a
completed session) are programming errors. In strict mode they raise
InvalidSessionTransition; otherwise they are logged and the session is
returned unchanged.

Usage:
    from studydeck.services.learning.session_service import SessionService

    service = SessionService(store)

    session = service.start("python", mode=StudyMode.DUE)
    while session and not session.is_complete:
        card = service.current_card(session)
        session = service.reveal(session)
        session = service.score(session, Rating.GOOD)
    summary = service.end(session)
"""

import logging
import random
from datetime import datetime
from typing import Optional, Union

from studydeck.config.settings import settings
from studydeck.enums.learning import Rating, SessionPhase, StudyMode
from studydeck.errors import InvalidSessionTransition
from studydeck.models.base import ensure_utc, utc_now
from studydeck.models.learning import (
    Flashcard,
    SessionProgress,
    SessionSummary,
    StudySession,
)
from studydeck.services.learning.card_store import CardStore
from studydeck.services.learning.scheduler import (
    apply_review_outcome,
    is_passing,
    to_rating,
)

logger = logging.getLogger(__name__)


class SessionService:
    """Study-session state machine on top of the card store."""

    def __init__(self, store: CardStore, strict: Optional[bool] = None):
        """
        Initialize the session service.

        Args:
            store: Card store holding the cards being studied
            strict: Raise on invalid transitions (defaults to settings.DEBUG)
        """
        self.store = store
        self.strict = settings.DEBUG if strict is None else strict

    def start(
        self,
        topic_id: str,
        mode: Union[StudyMode, str] = StudyMode.ALL,
        shuffle: Optional[bool] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> Optional[StudySession]:
        """
        Start a session for a topic.

        The deck is every card of the topic (or only the due ones), ordered
        by next review time with ties kept in stored order, then optionally
        shuffled.

        Args:
            topic_id: Topic to study
            mode: ALL cards or only DUE cards
            shuffle: Shuffle the deck (defaults to SESSION_SHUFFLE_DEFAULT)
            limit: Keep only the first ``limit`` cards (most overdue first)
            now: Session start time (default: now)
            rng: Random source for shuffling

        Returns:
            New session in PRESENTING state, or None if the deck is empty
        """
        mode = StudyMode(mode)
        now = ensure_utc(now) if now else utc_now()
        shuffle = settings.SESSION_SHUFFLE_DEFAULT if shuffle is None else shuffle

        if mode == StudyMode.DUE:
            cards = self.store.due_cards(topic_id, now)
        else:
            cards = self.store.get(topic_id)

        # sorted() is stable, so equal review times keep stored order
        ordered = sorted(cards, key=lambda card: card.next_review_at)
        if limit is not None and limit > 0:
            ordered = ordered[:limit]

        card_ids = [card.id for card in ordered]
        if not card_ids:
            logger.info(f"No {mode.value} cards to study in topic '{topic_id}'")
            return None

        if shuffle:
            (rng or random.Random()).shuffle(card_ids)

        session = StudySession(
            topic_id=topic_id,
            card_ids=tuple(card_ids),
            started_at=now,
        )
        logger.info(
            f"Started {mode.value} session for topic '{topic_id}' "
            f"with {session.total} cards"
        )
        return session

    def current_card(self, session: StudySession) -> Optional[Flashcard]:
        """Live record of the card on screen, or None when complete."""
        card_id = session.current_card_id
        if session.is_complete or card_id is None:
            return None
        return self.store.get_card(session.topic_id, card_id)

    def reveal(self, session: StudySession) -> StudySession:
        """Toggle between showing and hiding the answer."""
        if session.phase == SessionPhase.PRESENTING:
            return session.model_copy(update={"phase": SessionPhase.REVEALED})
        if session.phase == SessionPhase.REVEALED:
            return session.model_copy(update={"phase": SessionPhase.PRESENTING})
        return self._reject(session, "reveal", "session is complete")

    def skip(self, session: StudySession) -> StudySession:
        """Move to the next card without touching the current card's schedule."""
        if session.is_complete:
            return self._reject(session, "skip", "session is complete")
        return self._advance(session, skipped_count=session.skipped_count + 1)

    def score(
        self,
        session: StudySession,
        quality: Union[int, Rating],
        now: Optional[datetime] = None,
    ) -> StudySession:
        """
        Record the user's judgment of the current card and advance.

        The card is rescheduled with the stored scheduler configuration
        and written back through the card store before the session moves
        on.

        Args:
            session: Session in REVEALED state
            quality: Review quality, 1-5
            now: Review time (default: now)

        Returns:
            Session positioned on the next card, or COMPLETE

        Raises:
            ValueError: If quality is outside 1-5
            InvalidSessionTransition: If the answer is not revealed (strict)
            StorageCapacityExceeded: If the card could not be saved; the
                session is not advanced
        """
        rating = to_rating(quality)
        if session.phase != SessionPhase.REVEALED:
            return self._reject(session, "score", "answer has not been revealed")

        card = self.current_card(session)
        if card is None:
            logger.warning(
                f"Card {session.current_card_id} was deleted mid-session, skipping"
            )
            return self._advance(session, skipped_count=session.skipped_count + 1)

        config = self.store.get_scheduler_config()
        updated = apply_review_outcome(card, rating, config, now)
        self.store.put(session.topic_id, updated)

        if is_passing(rating):
            return self._advance(session, correct_count=session.correct_count + 1)
        return self._advance(session, lapse_count=session.lapse_count + 1)

    def progress(self, session: StudySession) -> SessionProgress:
        """Position and running counts for display."""
        total = session.total
        done = min(session.cursor, total)
        return SessionProgress(
            total=total,
            current=min(session.cursor + 1, total),
            correct=session.correct_count,
            lapses=session.lapse_count,
            skipped=session.skipped_count,
            remaining=total - done,
            percent_complete=round(done / total * 100) if total else 100,
        )

    def end(
        self, session: StudySession, now: Optional[datetime] = None
    ) -> SessionSummary:
        """
        Finish a session from any state.

        Returns:
            Final counts and elapsed time
        """
        now = ensure_utc(now) if now else utc_now()
        summary = SessionSummary(
            topic_id=session.topic_id,
            total=session.total,
            correct=session.correct_count,
            lapses=session.lapse_count,
            skipped=session.skipped_count,
            elapsed=now - session.started_at,
        )
        logger.info(
            f"Ended session for topic '{session.topic_id}': "
            f"{summary.correct}/{summary.total} correct, {summary.lapses} lapses, "
            f"{summary.skipped} skipped"
        )
        return summary

    def _advance(self, session: StudySession, **counters: int) -> StudySession:
        cursor = session.cursor + 1
        if cursor >= session.total:
            phase = SessionPhase.COMPLETE
        else:
            phase = SessionPhase.PRESENTING
        return session.model_copy(update={"cursor": cursor, "phase": phase, **counters})

    def _reject(self, session: StudySession, action: str, reason: str) -> StudySession:
        message = f"Cannot {action} in {session.phase.value} state: {reason}"
        if self.strict:
            raise InvalidSessionTransition(
                message, details={"action": action, "phase": session.phase.value}
            )
        logger.warning(message)
        return session
