"""
Card Store

Owns every persisted flashcard. Cards are kept per topic as one JSON
record in a key-value backend, alongside the scheduler configuration.

Keys:
    <prefix>:deck:<topic_id>        JSON list of cards
    <prefix>:settings:scheduler     JSON scheduler configuration

Reads tolerate bad data: a missing or corrupt deck is an empty deck, a
missing or corrupt configuration is the default configuration. Writes are
all-or-nothing: when the backend refuses a write, StorageCapacityExceeded
is raised and the in-memory deck keeps its previous value.

Usage:
    from studydeck.services.learning.card_store import create_card_store

    store = create_card_store()

    card = store.put("python", Flashcard(question="...", answer="..."))
    due = store.due_cards("python")
    accepted = store.submit_candidates("python", extractor.extract(text))
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from pydantic import ValidationError

from studydeck.config.settings import settings
from studydeck.db import KeyValueBackend, create_backend
from studydeck.enums.learning import CardOrigin
from studydeck.errors import CorruptPersistedState, DuplicateCard
from studydeck.models.base import ensure_utc, utc_now
from studydeck.models.learning import (
    CandidateCard,
    CardStats,
    Flashcard,
    SchedulerConfig,
)
from studydeck.services.learning.extractor import filter_candidates
from studydeck.services.learning.scheduler import get_review_forecast
from studydeck.utils.text_utils import normalize_question

logger = logging.getLogger(__name__)

# Key names used by older configuration records
LEGACY_CONFIG_KEYS = {
    "learningSteps": "learning_steps",
    "graduatingInterval": "graduating_interval_days",
    "easyInterval": "easy_interval_days",
    "maxInterval": "max_interval_days",
    "newCardInterval": "new_card_interval_days",
}


def new_card_id() -> str:
    """Generate a card id. Ids are random, so they are never reused."""
    return f"fc-{uuid.uuid4().hex}"


# ===========================================
# Encoding
# ===========================================


def encode_deck(cards: Iterable[Flashcard]) -> str:
    return json.dumps(
        [card.model_dump(mode="json", by_alias=True) for card in cards],
        ensure_ascii=False,
    )


def decode_deck(raw: str) -> list[Flashcard]:
    """
    Decode a stored deck.

    Individual malformed cards are dropped with a warning; cards missing
    an id (or repeating one) get a fresh id.

    Raises:
        CorruptPersistedState: If the record is not a JSON list
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptPersistedState(f"Deck is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise CorruptPersistedState(
            f"Deck must be a JSON list, got {type(data).__name__}"
        )

    cards: list[Flashcard] = []
    seen_ids: set[str] = set()
    for index, item in enumerate(data):
        try:
            card = Flashcard.model_validate(item)
        except ValidationError as e:
            logger.warning(
                f"Dropping malformed card #{index}: {e.error_count()} validation errors"
            )
            continue

        if not card.id or card.id in seen_ids:
            card = card.model_copy(update={"id": new_card_id()})
        seen_ids.add(card.id)
        cards.append(card)

    return cards


def decode_scheduler_config(raw: str) -> SchedulerConfig:
    """
    Decode a stored scheduler configuration.

    Unknown keys are ignored and missing keys take their defaults.

    Raises:
        CorruptPersistedState: If the record cannot be decoded
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptPersistedState(f"Scheduler config is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise CorruptPersistedState("Scheduler config must be a JSON object")

    values = {}
    for key, value in data.items():
        name = LEGACY_CONFIG_KEYS.get(key, key)
        if name in SchedulerConfig.model_fields:
            values[name] = value

    try:
        return SchedulerConfig(**values)
    except ValidationError as e:
        raise CorruptPersistedState(f"Scheduler config is invalid: {e}") from e


# ===========================================
# Store
# ===========================================


class CardStore:
    """
    Per-topic flashcard persistence.

    Provides:
    - get/put/delete keyed by topic and card id
    - due card queries and counts
    - candidate intake with validity filtering and de-duplication
    - statistics and review forecasts
    - scheduler configuration persistence
    """

    def __init__(self, backend: KeyValueBackend, key_prefix: Optional[str] = None):
        """
        Initialize the card store.

        Args:
            backend: Key-value collaborator holding the records
            key_prefix: Namespace for keys (defaults to STORAGE_KEY_PREFIX)
        """
        self.backend = backend
        self.key_prefix = key_prefix or settings.STORAGE_KEY_PREFIX
        self._decks: dict[str, list[Flashcard]] = {}

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    @property
    def deck_key_prefix(self) -> str:
        return f"{self.key_prefix}:deck:"

    def deck_key(self, topic_id: str) -> str:
        return f"{self.deck_key_prefix}{topic_id}"

    @property
    def config_key(self) -> str:
        return f"{self.key_prefix}:settings:scheduler"

    # -------------------------------------------------------------------------
    # Loading and saving decks
    # -------------------------------------------------------------------------

    def _load(self, topic_id: str) -> list[Flashcard]:
        if topic_id in self._decks:
            return self._decks[topic_id]

        raw = self.backend.get(self.deck_key(topic_id))
        deck: list[Flashcard] = []
        if raw is not None:
            try:
                deck = decode_deck(raw)
            except CorruptPersistedState as e:
                logger.warning(
                    f"Corrupt deck for topic '{topic_id}', "
                    f"treating as empty: {e.message}"
                )

        self._decks[topic_id] = deck
        return deck

    def _save(self, topic_id: str, deck: list[Flashcard]) -> None:
        """
        Persist a whole deck, committing it to memory only on success.

        Raises:
            StorageCapacityExceeded: If the backend refused the write
        """
        key = self.deck_key(topic_id)
        if deck:
            self.backend.set(key, encode_deck(deck))
        else:
            self.backend.delete(key)
        self._decks[topic_id] = deck

    def reload(self, topic_id: Optional[str] = None) -> None:
        """Forget cached decks so the next read goes to the backend."""
        if topic_id is None:
            self._decks.clear()
        else:
            self._decks.pop(topic_id, None)

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def get(self, topic_id: str) -> list[Flashcard]:
        """All cards of a topic, in stored order."""
        return list(self._load(topic_id))

    def get_card(self, topic_id: str, card_id: str) -> Optional[Flashcard]:
        """Look up one card by id."""
        for card in self._load(topic_id):
            if card.id == card_id:
                return card
        return None

    def put(self, topic_id: str, card: Flashcard) -> Flashcard:
        """
        Insert or replace a card.

        Cards without an id get a fresh one and are appended; cards with a
        known id replace the stored card in place. Re-submitting a record
        identical to the stored one writes nothing.

        Args:
            topic_id: Topic the card belongs to
            card: Card to store

        Returns:
            The stored card (with its id)

        Raises:
            StorageCapacityExceeded: If the backend refused the write; the
                store is left unchanged
        """
        deck = self._load(topic_id)

        if card.id is None:
            for existing in deck:
                if existing.model_copy(update={"id": None}) == card:
                    return existing
            card = card.model_copy(update={"id": new_card_id()})

        index = next((i for i, c in enumerate(deck) if c.id == card.id), None)
        if index is not None and deck[index] == card:
            return card

        updated = list(deck)
        if index is None:
            updated.append(card)
        else:
            updated[index] = card

        self._save(topic_id, updated)
        logger.debug(f"Saved card {card.id} in topic '{topic_id}'")
        return card

    def put_many(self, topic_id: str, cards: Iterable[Flashcard]) -> list[Flashcard]:
        """
        Insert several new cards in a single write.

        Args:
            topic_id: Topic the cards belong to
            cards: Cards to append; ids already used in the topic are replaced

        Returns:
            The stored cards

        Raises:
            StorageCapacityExceeded: If the backend refused the write; none
                of the cards are stored
        """
        deck = self._load(topic_id)
        used_ids = {card.id for card in deck}

        added = []
        for card in cards:
            if card.id is None or card.id in used_ids:
                card = card.model_copy(update={"id": new_card_id()})
            used_ids.add(card.id)
            added.append(card)

        if added:
            self._save(topic_id, deck + added)
        return added

    def update(self, topic_id: str, card_id: str, **changes) -> Optional[Flashcard]:
        """
        Edit fields of a stored card.

        Changes are validated like a fresh record, so clamping rules apply.

        Args:
            topic_id: Topic of the card
            card_id: Card to edit
            **changes: Field values to replace (question, answer, ...)

        Returns:
            The updated card, or None if the id is unknown
        """
        existing = self.get_card(topic_id, card_id)
        if existing is None:
            return None

        data = existing.model_dump()
        data.update(changes)
        data["id"] = existing.id
        return self.put(topic_id, Flashcard.model_validate(data))

    def delete(self, topic_id: str, card_id: str) -> bool:
        """
        Remove a card.

        Returns:
            True if the card existed

        Raises:
            StorageCapacityExceeded: If the backend refused the write
        """
        deck = self._load(topic_id)
        remaining = [card for card in deck if card.id != card_id]
        if len(remaining) == len(deck):
            return False

        self._save(topic_id, remaining)
        logger.info(f"Deleted card {card_id} from topic '{topic_id}'")
        return True

    def clear(self, topic_id: str) -> int:
        """Remove every card of a topic. Returns the number removed."""
        count = len(self._load(topic_id))
        self._save(topic_id, [])
        if count:
            logger.info(f"Cleared {count} cards from topic '{topic_id}'")
        return count

    def due_cards(
        self, topic_id: str, now: Optional[datetime] = None
    ) -> list[Flashcard]:
        """Cards whose next review time has been reached, in stored order."""
        now = ensure_utc(now) if now else utc_now()
        return [card for card in self._load(topic_id) if card.next_review_at <= now]

    def topics(self) -> list[str]:
        """Topics with at least one stored card."""
        prefix = self.deck_key_prefix
        stored = {key[len(prefix):] for key in self.backend.keys(prefix)}
        cached = {topic for topic, deck in self._decks.items() if deck}
        return sorted(stored | cached)

    def due_count(
        self, topic_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> int:
        """Number of due cards in one topic, or across all topics."""
        topic_ids = [topic_id] if topic_id else self.topics()
        return sum(len(self.due_cards(topic, now)) for topic in topic_ids)

    # -------------------------------------------------------------------------
    # Candidate intake
    # -------------------------------------------------------------------------

    def question_keys(self, topic_id: str) -> set[str]:
        """Normalized questions already present in a topic."""
        return {normalize_question(card.question) for card in self._load(topic_id)}

    def claim_question(self, question: str, seen: set[str]) -> str:
        """
        Reserve a normalized question in ``seen``.

        Raises:
            DuplicateCard: If the question is already taken
        """
        key = normalize_question(question)
        if key in seen:
            raise DuplicateCard(
                f"Duplicate question: {question[:60]}", details={"key": key}
            )
        seen.add(key)
        return key

    def submit_candidates(
        self,
        topic_id: str,
        candidates: Iterable[CandidateCard],
        now: Optional[datetime] = None,
    ) -> list[Flashcard]:
        """
        Accept candidate cards from the extractor or an external generator.

        Candidates go through the validity filter and are de-duplicated by
        normalized question against the topic and within the batch.

        Args:
            topic_id: Topic to add the cards to
            candidates: Proposed cards
            now: Creation time (default: now)

        Returns:
            Newly stored cards (duplicates and invalid candidates excluded)

        Raises:
            StorageCapacityExceeded: If the backend refused the write; none
                of the candidates are stored
        """
        now = ensure_utc(now) if now else utc_now()
        accepted = filter_candidates(candidates, seen=self.question_keys(topic_id))
        added = self.put_many(
            topic_id, [candidate.to_flashcard(now) for candidate in accepted]
        )
        if added:
            logger.info(f"Added {len(added)} cards to topic '{topic_id}'")
        return added

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def stats(
        self, topic_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> CardStats:
        """
        Aggregate statistics for one topic, or for every topic.

        Args:
            topic_id: Topic to report on (None = all topics)
            now: Reference time for due counts and the forecast

        Returns:
            CardStats
        """
        now = ensure_utc(now) if now else utc_now()
        topic_ids = [topic_id] if topic_id else self.topics()
        cards = [card for topic in topic_ids for card in self._load(topic)]

        total = len(cards)
        threshold = settings.MASTERY_CONFIDENCE_THRESHOLD
        mastered = sum(1 for card in cards if card.confidence >= threshold)

        return CardStats(
            total_cards=total,
            auto_generated=sum(1 for card in cards if card.origin.is_heuristic),
            manual=sum(1 for card in cards if card.origin == CardOrigin.MANUAL),
            imported=sum(1 for card in cards if card.origin == CardOrigin.IMPORTED),
            generated_externally=sum(
                1 for card in cards if card.origin == CardOrigin.GENERATED_EXTERNALLY
            ),
            mastered=mastered,
            to_review=total - mastered,
            mastery_percentage=round(mastered / total * 100) if total else 0,
            due_now=sum(1 for card in cards if card.next_review_at <= now),
            forecast=get_review_forecast(cards, as_of=now),
        )

    # -------------------------------------------------------------------------
    # Scheduler configuration
    # -------------------------------------------------------------------------

    def get_scheduler_config(self) -> SchedulerConfig:
        """Stored scheduler configuration, or the defaults."""
        raw = self.backend.get(self.config_key)
        if raw is None:
            return SchedulerConfig()

        try:
            return decode_scheduler_config(raw)
        except CorruptPersistedState as e:
            logger.warning(f"Using default scheduler config: {e.message}")
            return SchedulerConfig()

    def save_scheduler_config(self, config: SchedulerConfig) -> SchedulerConfig:
        """
        Persist the scheduler configuration.

        Only later reviews see the change; stored cards are not rescheduled.

        Raises:
            StorageCapacityExceeded: If the backend refused the write
        """
        self.backend.set(self.config_key, config.model_dump_json())
        logger.info("Saved scheduler configuration")
        return config


def create_card_store(backend: Optional[KeyValueBackend] = None) -> CardStore:
    """
    Create a card store on the configured backend.

    Args:
        backend: Backend to use (default: create_backend() from settings)

    Returns:
        CardStore instance
    """
    return CardStore(backend if backend is not None else create_backend())
