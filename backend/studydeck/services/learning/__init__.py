"""
Learning System Services

Services for extracting flashcards from notes and scheduling their review.

Modules:
- question_patterns: Trigger → template tables for question phrasing
- extractor: Heuristic candidate extraction from markdown
- scheduler: SM-2 scheduling with a learning ladder
- card_store: Per-topic card persistence, intake and statistics
- session_service: Study-session state machine
- deck_transfer: Deck export and import
- generated_cards: Intake of externally generated cards

Usage:
    from studydeck.services.learning import (
        CardExtractor,
        CardStore,
        SessionService,
        create_card_store,
    )
"""

from studydeck.services.learning.card_store import CardStore, create_card_store
from studydeck.services.learning.deck_transfer import (
    deck_to_json,
    export_deck,
    export_filename,
    import_deck,
)
from studydeck.services.learning.extractor import CardExtractor, extract
from studydeck.services.learning.generated_cards import (
    NoteSection,
    build_generation_prompt,
    extract_sections,
    parse_generated_cards,
)
from studydeck.services.learning.scheduler import (
    apply_review_outcome,
    get_review_forecast,
    is_passing,
    review,
)
from studydeck.services.learning.session_service import SessionService

__all__ = [
    # Extraction
    "CardExtractor",
    "extract",
    # Scheduling
    "review",
    "apply_review_outcome",
    "is_passing",
    "get_review_forecast",
    # Storage and sessions
    "CardStore",
    "create_card_store",
    "SessionService",
    # Export / import
    "export_deck",
    "export_filename",
    "deck_to_json",
    "import_deck",
    # Generated cards
    "NoteSection",
    "extract_sections",
    "build_generation_prompt",
    "parse_generated_cards",
]
