"""
StudyDeck Test Suite

Test Structure:
    tests/
    ├── conftest.py                  # Shared fixtures and configuration
    └── unit/                        # Unit tests (isolated, no external services)
        ├── test_extractor.py        # Heuristic card extraction
        ├── test_question_patterns.py
        ├── test_scheduler.py        # SM-2 scheduling and forecast
        ├── test_card_store.py       # Per-topic persistence
        ├── test_backends.py         # Memory, SQL (SQLite) and Redis (mocked)
        ├── test_session_service.py  # Study session state machine
        ├── test_deck_transfer.py    # Export / import
        └── ...

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run with coverage
    pytest backend/tests/ --cov=studydeck --cov-report=html
"""
