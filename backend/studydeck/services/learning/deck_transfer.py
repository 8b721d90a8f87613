"""
Deck Export / Import

Serializes a topic's cards to a portable JSON record for backup and
restores them into a topic.

Export format:
    {
        "topicId": "python",
        "cards": [{...}, ...],
        "exportedAt": "2024-01-15T10:30:00Z",
        "formatVersion": "1.0"
    }

Older exports ("exportDate", "version", legacy card keys) are accepted on
import.

Usage:
    from studydeck.services.learning.deck_transfer import export_deck, import_deck

    export = export_deck(store, "python")
    Path(export_filename("python")).write_text(deck_to_json(export))

    result = import_deck(store, "python", Path(path).read_text())
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import ValidationError

from studydeck.config.settings import settings
from studydeck.enums.learning import CardOrigin
from studydeck.errors import DuplicateCard, InvalidDeckFormat
from studydeck.models.base import ensure_utc, utc_now
from studydeck.models.learning import DeckExport, Flashcard, ImportResult
from studydeck.services.learning.card_store import CardStore

logger = logging.getLogger(__name__)


def export_deck(
    store: CardStore, topic_id: str, now: Optional[datetime] = None
) -> DeckExport:
    """Snapshot every card of a topic, scheduling state included."""
    now = ensure_utc(now) if now else utc_now()
    export = DeckExport(
        topic_id=topic_id,
        cards=store.get(topic_id),
        exported_at=now,
        format_version=settings.EXPORT_FORMAT_VERSION,
    )
    logger.info(f"Exported {len(export.cards)} cards from topic '{topic_id}'")
    return export


def deck_to_json(export: DeckExport) -> str:
    return export.model_dump_json(by_alias=True, indent=2)


def export_filename(topic_id: str, now: Optional[datetime] = None) -> str:
    """Suggested file name, e.g. ``flashcards-python-2024-01-15.json``."""
    now = ensure_utc(now) if now else utc_now()
    return f"flashcards-{topic_id}-{now:%Y-%m-%d}.json"


def parse_deck_cards(
    payload: Union[str, bytes, dict[str, Any], DeckExport],
) -> tuple[list[Flashcard], int]:
    """
    Read the cards out of an export payload.

    Args:
        payload: JSON text, decoded JSON object or DeckExport

    Returns:
        (valid cards, number of malformed cards dropped)

    Raises:
        InvalidDeckFormat: If the payload is not a deck export
    """
    if isinstance(payload, DeckExport):
        return list(payload.cards), 0

    data = payload
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidDeckFormat(f"Export is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("cards"), list):
        raise InvalidDeckFormat("Invalid flashcard data format: missing 'cards' list")

    cards = []
    invalid = 0
    for item in data["cards"]:
        try:
            cards.append(Flashcard.model_validate(item))
        except ValidationError:
            invalid += 1

    if invalid:
        logger.warning(f"Ignoring {invalid} malformed cards in import payload")
    return cards, invalid


def import_deck(
    store: CardStore,
    topic_id: str,
    payload: Union[str, bytes, dict[str, Any], DeckExport],
) -> ImportResult:
    """
    Import an exported deck into a topic.

    Imported cards keep their scheduling statistics but are re-labelled as
    imported. A card is skipped when its normalized question already
    exists in the topic or earlier in the payload; a card whose id is
    already used in the topic gets a fresh id.

    Args:
        store: Card store to import into
        topic_id: Destination topic
        payload: Export as JSON text, decoded JSON or DeckExport

    Returns:
        ImportResult; a malformed payload gives success=False with the
        reason, never an exception

    Raises:
        StorageCapacityExceeded: If the imported cards do not fit; nothing
            is imported
    """
    try:
        cards, skipped = parse_deck_cards(payload)
    except InvalidDeckFormat as e:
        logger.error(f"Import into topic '{topic_id}' failed: {e.message}")
        return ImportResult(success=False, error=e.message)

    seen = store.question_keys(topic_id)
    accepted = []
    for card in cards:
        try:
            store.claim_question(card.question, seen)
        except DuplicateCard as e:
            logger.debug(f"Skipping import: {e.message}")
            skipped += 1
            continue
        accepted.append(card.model_copy(update={"origin": CardOrigin.IMPORTED}))

    added = store.put_many(topic_id, accepted)
    logger.info(
        f"Imported {len(added)} cards into topic '{topic_id}' ({skipped} skipped)"
    )
    return ImportResult(success=True, imported=len(added), skipped=skipped)
