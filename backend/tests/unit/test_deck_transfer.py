"""
Unit tests for deck export and import.
"""

import json

import pytest

from studydeck.enums.learning import CardOrigin
from studydeck.errors import InvalidDeckFormat
from studydeck.services.learning.deck_transfer import (
    deck_to_json,
    export_deck,
    export_filename,
    import_deck,
    parse_deck_cards,
)


@pytest.fixture
def populated_store(store, make_card):
    store.put("python", make_card("What is a closure?", confidence=3, review_count=4))
    store.put("python", make_card("What is a generator?"))
    return store


class TestExport:
    """Tests for export_deck and its serialization."""

    def test_export_envelope(self, populated_store, now):
        export = export_deck(populated_store, "python", now=now)
        data = json.loads(deck_to_json(export))

        assert data["topicId"] == "python"
        assert data["formatVersion"] == "1.0"
        assert data["exportedAt"].startswith("2024-01-15T10:30:00")
        assert len(data["cards"]) == 2
        assert data["cards"][0]["reviewCount"] == 4

    def test_export_empty_topic(self, store, now):
        assert export_deck(store, "empty", now=now).cards == []

    def test_export_filename(self, now):
        assert export_filename("python", now) == "flashcards-python-2024-01-15.json"


class TestImport:
    """Tests for import_deck."""

    def test_round_trip_into_new_topic(self, populated_store, now):
        payload = deck_to_json(export_deck(populated_store, "python", now=now))

        result = import_deck(populated_store, "backup", payload)

        assert result.success is True
        assert result.imported == 2
        assert result.skipped == 0
        cards = populated_store.get("backup")
        assert all(card.origin == CardOrigin.IMPORTED for card in cards)
        assert cards[0].review_count == 4
        assert cards[0].confidence == 3

    def test_existing_questions_skipped(self, populated_store, now):
        payload = deck_to_json(export_deck(populated_store, "python", now=now))

        result = import_deck(populated_store, "python", payload)

        assert result.imported == 0
        assert result.skipped == 2
        assert len(populated_store.get("python")) == 2

    def test_duplicates_within_payload_skipped(self, store):
        payload = {
            "topicId": "python",
            "cards": [
                {"question": "What is a closure?", "answer": "A function with scope."},
                {"question": "what is a closure", "answer": "Same question again."},
            ],
        }

        result = import_deck(store, "python", payload)

        assert result.imported == 1
        assert result.skipped == 1

    def test_out_of_range_timestamp_counted_as_skipped(self, store):
        payload = {
            "cards": [
                {"question": "What is a closure?", "answer": "A function with scope."},
                {
                    "question": "What is a generator?",
                    "answer": "A lazily evaluated iterator.",
                    "nextReviewAt": "9999-12-31T23:00:00-05:00",
                },
            ]
        }

        result = import_deck(store, "python", payload)

        assert result.success is True
        assert result.imported == 1
        assert result.skipped == 1

    def test_clashing_ids_reassigned(self, store, make_card):
        existing = store.put("python", make_card("What is a closure?", id="fc-1"))
        payload = {
            "cards": [
                make_card("What is a generator?", id="fc-1").model_dump(
                    mode="json", by_alias=True
                )
            ]
        }

        import_deck(store, "python", payload)

        ids = [card.id for card in store.get("python")]
        assert ids[0] == existing.id
        assert len(set(ids)) == 2

    def test_legacy_export_accepted(self, store):
        payload = json.dumps(
            {
                "topicId": "python",
                "exportDate": "2023-06-01T12:00:00.000Z",
                "version": "1.0",
                "cards": [
                    {
                        "id": "card-1",
                        "question": "What is hoisting?",
                        "answer": "Moving declarations to the top of their scope.",
                        "source": "auto",
                        "type": "definition",
                        "interval": 6,
                        "stepIndex": 2,
                        "nextReviewDate": "2023-06-07T12:00:00.000Z",
                        "repetitions": 1,
                        "isNew": False,
                    }
                ],
            }
        )

        result = import_deck(store, "python", payload)

        card = store.get("python")[0]
        assert result.imported == 1
        assert card.interval_days == 6
        assert card.learning_step_index == 2
        assert card.next_review_at.year == 2023

    def test_malformed_cards_counted_as_skipped(self, store):
        payload = {
            "cards": [
                {"question": "What is a closure?", "answer": "A function with scope."},
                {"answer": "No question at all."},
            ]
        }

        result = import_deck(store, "python", payload)

        assert result.imported == 1
        assert result.skipped == 1

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            "[]",
            json.dumps({"topicId": "x"}),
            {"cards": "nope"},
            b'{"cards": [\xff]}',
        ],
    )
    def test_invalid_payload_reports_failure(self, store, payload):
        result = import_deck(store, "python", payload)

        assert result.success is False
        assert "cards" in result.error or "JSON" in result.error
        assert store.get("python") == []


class TestParseDeckCards:
    """Tests for parse_deck_cards."""

    def test_raises_on_non_export(self):
        with pytest.raises(InvalidDeckFormat):
            parse_deck_cards(b"42")

    def test_accepts_bytes(self):
        cards, invalid = parse_deck_cards(
            b'{"cards": [{"question": "What is x?", "answer": "An example."}]}'
        )
        assert len(cards) == 1
        assert invalid == 0
