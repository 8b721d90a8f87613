"""
Unit tests for the card store.

Tests per-topic persistence, idempotent puts, rollback on capacity
failures, corrupt-record recovery, candidate intake, statistics and the
stored scheduler configuration.
"""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from studydeck.db.base import MemoryBackend
from studydeck.enums.learning import CardOrigin
from studydeck.errors import (
    CorruptPersistedState,
    DuplicateCard,
    StorageCapacityExceeded,
)
from studydeck.models.learning import SchedulerConfig
from studydeck.services.learning.card_store import (
    CardStore,
    create_card_store,
    decode_deck,
    decode_scheduler_config,
    encode_deck,
)
from studydeck.services.learning.scheduler import review


class TestPutAndGet:
    """Tests for inserting, replacing and reading cards."""

    def test_put_assigns_id_and_persists(self, store, make_card):
        stored = store.put("python", make_card())

        assert stored.id.startswith("fc-")
        assert store.get("python") == [stored]
        assert store.backend.get("test:deck:python") is not None

    def test_put_replaces_by_id(self, store, make_card):
        stored = store.put("python", make_card())
        edited = stored.model_copy(update={"answer": "A different, longer answer."})

        store.put("python", edited)

        assert store.get("python") == [edited]

    def test_order_preserved(self, store, make_card):
        first = store.put("python", make_card("What is a closure?"))
        second = store.put("python", make_card("What is a generator?"))
        store.put("python", first.model_copy(update={"confidence": 3}))

        assert [c.id for c in store.get("python")] == [first.id, second.id]

    def test_identical_resubmission_does_not_write(self, store, make_card):
        stored = store.put("python", make_card())

        with patch.object(store.backend, "set") as mock_set:
            again = store.put("python", stored)

        mock_set.assert_not_called()
        assert again == stored
        assert len(store.get("python")) == 1

    def test_identical_card_without_id_not_duplicated(self, store, make_card):
        card = make_card()
        first = store.put("python", card)
        second = store.put("python", card)

        assert second.id == first.id
        assert len(store.get("python")) == 1

    def test_topics_are_isolated(self, store, make_card):
        store.put("python", make_card())
        assert store.get("rust") == []

    def test_get_card(self, store, make_card):
        stored = store.put("python", make_card())

        assert store.get_card("python", stored.id) == stored
        assert store.get_card("python", "fc-missing") is None

    def test_update_revalidates(self, store, make_card):
        stored = store.put("python", make_card())

        updated = store.update("python", stored.id, confidence=9)

        assert updated.confidence == 5
        assert updated.id == stored.id
        assert store.update("python", "fc-missing", confidence=1) is None

    def test_reload_reads_backend(self, memory_backend, make_card):
        writer = CardStore(memory_backend, key_prefix="test")
        reader = CardStore(memory_backend, key_prefix="test")
        reader.get("python")

        stored = writer.put("python", make_card())
        assert reader.get("python") == []

        reader.reload("python")
        assert reader.get("python") == [stored]


class TestDelete:
    """Tests for deleting cards."""

    def test_delete_existing(self, store, make_card):
        stored = store.put("python", make_card())

        assert store.delete("python", stored.id) is True
        assert store.get("python") == []
        assert store.backend.get("test:deck:python") is None

    def test_delete_missing(self, store):
        assert store.delete("python", "fc-missing") is False

    def test_clear(self, store, make_card):
        store.put("python", make_card("What is a closure?"))
        store.put("python", make_card("What is a generator?"))

        assert store.clear("python") == 2
        assert store.get("python") == []
        assert store.topics() == []


class TestDueCards:
    """Tests for due queries."""

    def test_due_cards_inclusive(self, store, make_card, now):
        due = store.put("python", make_card("What is due now?", next_review_at=now))
        store.put(
            "python",
            make_card("What is due later?", next_review_at=now + timedelta(minutes=1)),
        )

        assert store.due_cards("python", now) == [due]

    def test_due_count_across_topics(self, store, make_card, now):
        store.put("python", make_card("What is a closure?"))
        store.put("rust", make_card("What is ownership?"))
        store.put(
            "rust",
            make_card("What is borrowing?", next_review_at=now + timedelta(days=1)),
        )

        assert store.due_count(now=now) == 2
        assert store.due_count("rust", now=now) == 1
        assert store.topics() == ["python", "rust"]


class TestCapacityRollback:
    """Tests for all-or-nothing writes."""

    def test_put_rolls_back(self, make_card):
        store = CardStore(MemoryBackend(max_bytes=2000), key_prefix="test")
        first = store.put("python", make_card())

        with pytest.raises(StorageCapacityExceeded) as exc_info:
            store.put("python", make_card("Q?" * 10, answer="x" * 5000))

        assert store.get("python") == [first]
        store.reload()
        assert store.get("python") == [first]
        assert "Delete some flashcards" in exc_info.value.message

    def test_update_rolls_back(self, make_card):
        store = CardStore(MemoryBackend(max_bytes=2000), key_prefix="test")
        stored = store.put("python", make_card())

        with pytest.raises(StorageCapacityExceeded):
            store.put("python", stored.model_copy(update={"answer": "y" * 5000}))

        assert store.get_card("python", stored.id) == stored

    def test_put_many_is_atomic(self, make_candidate):
        store = CardStore(MemoryBackend(max_bytes=1500), key_prefix="test")
        candidates = [
            make_candidate(f"What is concept number {i}?", answer="z" * 200)
            for i in range(10)
        ]

        with pytest.raises(StorageCapacityExceeded):
            store.submit_candidates("python", candidates)

        assert store.get("python") == []


class TestPersistedState:
    """Tests for decoding stored records."""

    def test_corrupt_deck_is_empty(self, memory_backend):
        memory_backend.set("test:deck:python", "{not json")
        store = CardStore(memory_backend, key_prefix="test")

        assert store.get("python") == []

    def test_non_list_deck_is_empty(self, memory_backend):
        memory_backend.set("test:deck:python", json.dumps({"cards": []}))
        store = CardStore(memory_backend, key_prefix="test")

        assert store.get("python") == []

    def test_decode_deck_raises_on_garbage(self):
        with pytest.raises(CorruptPersistedState):
            decode_deck("garbage")

    def test_malformed_cards_dropped(self, make_card):
        raw = json.dumps(
            [
                {"question": "What is a closure?", "answer": "Something long enough."},
                {"question": "No answer here?"},
                "not a card",
            ]
        )
        cards = decode_deck(raw)

        assert len(cards) == 1
        assert cards[0].id.startswith("fc-")

    def test_out_of_range_timestamp_dropped(self, memory_backend):
        raw = json.dumps(
            [
                {"question": "What is a closure?", "answer": "Something long enough."},
                {
                    "question": "What is a generator?",
                    "answer": "A lazily evaluated iterator.",
                    "nextReviewAt": "9999-12-31T23:00:00-05:00",
                },
            ]
        )
        memory_backend.set("test:deck:python", raw)
        store = CardStore(memory_backend, key_prefix="test")

        cards = store.get("python")

        assert [card.question for card in cards] == ["What is a closure?"]

    def test_duplicate_ids_reassigned(self, make_card):
        card = make_card(id="fc-1")
        other = make_card("What is a generator?", id="fc-1")

        cards = decode_deck(encode_deck([card, other]))

        assert cards[0].id == "fc-1"
        assert cards[1].id != "fc-1"

    def test_round_trip_uses_camel_case(self, make_card):
        raw = encode_deck([make_card(id="fc-1")])
        data = json.loads(raw)[0]

        assert "nextReviewAt" in data
        assert "easinessFactor" in data
        assert decode_deck(raw)[0] == make_card(id="fc-1")


class TestCandidateIntake:
    """Tests for submit_candidates and duplicate handling."""

    def test_equal_normalized_questions_store_one(self, store, make_candidate):
        added = store.submit_candidates(
            "python",
            [make_candidate("What is a closure?"), make_candidate("what is a CLOSURE")],
        )

        assert len(added) == 1
        assert len(store.get("python")) == 1

    def test_existing_questions_skipped(self, store, make_card, make_candidate):
        store.put("python", make_card("What is a closure?"))

        added = store.submit_candidates("python", [make_candidate("What is a closure")])

        assert added == []

    def test_invalid_candidates_dropped(self, store, make_candidate):
        added = store.submit_candidates(
            "python", [make_candidate("Why?"), make_candidate(answer="Too short.")]
        )
        assert added == []

    def test_new_cards_are_due_and_new(self, store, make_candidate, now):
        added = store.submit_candidates("python", [make_candidate()], now=now)

        card = added[0]
        assert card.is_new is True
        assert card.next_review_at == now
        assert card.origin == CardOrigin.HEURISTIC_HEADING

    def test_claim_question(self, store):
        seen = set()
        assert store.claim_question("What is a closure?", seen) == "whatisaclosure"

        with pytest.raises(DuplicateCard):
            store.claim_question("what is a closure", seen)


class TestStats:
    """Tests for deck statistics."""

    def test_stats_by_origin_and_mastery(self, store, make_card, now):
        store.put("python", make_card("What is a closure?", confidence=5))
        store.put(
            "python",
            make_card(
                "What is a generator?",
                origin=CardOrigin.HEURISTIC_LIST,
                confidence=4,
            ),
        )
        store.put(
            "python",
            make_card("What is a decorator?", origin=CardOrigin.IMPORTED, confidence=1),
        )
        store.put(
            "python",
            make_card(
                "What is a coroutine?",
                origin=CardOrigin.GENERATED_EXTERNALLY,
                next_review_at=now + timedelta(days=2),
            ),
        )

        stats = store.stats("python", now=now)

        assert stats.total_cards == 4
        assert stats.auto_generated == 1
        assert stats.manual == 1
        assert stats.imported == 1
        assert stats.generated_externally == 1
        assert stats.mastered == 2
        assert stats.to_review == 2
        assert stats.mastery_percentage == 50
        assert stats.due_now == 3

    def test_empty_stats(self, store, now):
        stats = store.stats(now=now)

        assert stats.total_cards == 0
        assert stats.mastery_percentage == 0


class TestSchedulerConfig:
    """Tests for the stored scheduler configuration."""

    def test_defaults_when_missing(self, store):
        config = store.get_scheduler_config()

        assert config.learning_steps == [10, 1440]
        assert config.graduating_interval_days == 6
        assert config.easy_interval_days == 10
        assert config.max_interval_days == 365
        assert config.new_card_interval_days == 1

    def test_save_and_load(self, store):
        store.save_scheduler_config(
            SchedulerConfig(learning_steps=[1, 10], max_interval_days=100)
        )
        config = store.get_scheduler_config()

        assert config.learning_steps == [1, 10]
        assert config.max_interval_days == 100

    def test_corrupt_config_uses_defaults(self, store):
        store.backend.set(store.config_key, "[]")
        assert store.get_scheduler_config() == SchedulerConfig()

    @pytest.mark.parametrize(
        "raw",
        [
            '{"learningSteps": [NaN, 1440]}',
            '{"learningSteps": [Infinity]}',
            '{"learningSteps": [1e300]}',
            '{"graduatingInterval": NaN}',
            '{"max_interval_days": Infinity}',
            '{"graduating_interval_days": 1e9}',
        ],
    )
    def test_non_finite_or_huge_config_uses_defaults(self, store, make_card, now, raw):
        store.backend.set(store.config_key, raw)

        config = store.get_scheduler_config()
        lapsed = review(make_card(repetitions=3, is_new=False), 1, config, now)

        assert config == SchedulerConfig()
        assert lapsed.next_review_at == now + timedelta(minutes=10)

    def test_legacy_keys_accepted(self):
        raw = json.dumps(
            {"learningSteps": [5], "graduatingInterval": 3, "somethingElse": True}
        )
        config = decode_scheduler_config(raw)

        assert config.learning_steps == [5]
        assert config.graduating_interval_days == 3

    def test_invalid_values_raise(self):
        with pytest.raises(CorruptPersistedState):
            decode_scheduler_config(json.dumps({"max_interval_days": 0}))


class TestCreateCardStore:
    """Tests for the factory."""

    def test_uses_given_backend(self, memory_backend):
        store = create_card_store(memory_backend)

        assert store.backend is memory_backend
        assert store.key_prefix == "studydeck-test"

    def test_default_backend_is_memory(self):
        store = create_card_store()
        assert isinstance(store.backend, MemoryBackend)
