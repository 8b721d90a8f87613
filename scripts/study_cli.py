#!/usr/bin/env python3
"""
StudyDeck Command-Line Tool

Extract flashcards from markdown notes, study them in the terminal, and
manage decks.

Setup:
    1. Put overrides in a .env file in the project root (optional)
    2. Pick a storage backend with STORAGE_BACKEND=memory|redis|sql
       (memory does not survive the process; use sql for local decks)
    3. Run any command below

Usage:
    # Preview the cards found in a notes file
    python scripts/study_cli.py extract notes/closures.md
    python scripts/study_cli.py extract notes/closures.md --format json --seed 7

    # Extract and save into a topic
    python scripts/study_cli.py extract notes/closures.md --topic javascript --save

    # See what is due, and deck statistics
    python scripts/study_cli.py due javascript
    python scripts/study_cli.py stats
    python scripts/study_cli.py stats javascript

    # Study in the terminal
    python scripts/study_cli.py study javascript --mode due --limit 20

    # Back up and restore
    python scripts/study_cli.py export javascript --output backup.json
    python scripts/study_cli.py import javascript backup.json

Study keys:
    Enter   reveal / hide the answer
    1-5     score (1 Again, 2 Hard, 3 Okay, 4 Good, 5 Easy)
    s       skip the card
    q       end the session

Environment Variables (set in .env or environment):
    - STORAGE_BACKEND: memory, redis or sql
    - DATABASE_URL: SQLAlchemy URL for the sql backend
    - REDIS_URL: Redis URL for the redis backend
    - DEBUG: Raise on invalid session transitions
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

# Add backend to path for imports (must be before studydeck.* imports)
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from dotenv import load_dotenv

# Load environment variables from project root .env
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

# App imports (after sys.path setup and env loading)
from studydeck.enums import Rating, StudyMode
from studydeck.errors import StorageCapacityExceeded
from studydeck.services.learning import (
    CardExtractor,
    SessionService,
    create_card_store,
    deck_to_json,
    export_deck,
    export_filename,
    import_deck,
)
from studydeck.services.learning.card_store import CardStore
from studydeck.utils.text_utils import truncate_text


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    if not debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# =============================================================================
# Extract Command
# =============================================================================


def extract_cards(
    store: CardStore,
    path: str,
    topic: Optional[str] = None,
    save: bool = False,
    seed: Optional[int] = None,
    include_code: bool = True,
    output_format: str = "summary",
) -> int:
    """Extract candidates from a notes file, optionally saving them."""
    source = Path(path)
    if not source.exists():
        print(f"❌ File not found: {path}")
        return 1

    extractor = CardExtractor(seed=seed, include_code=include_code)
    candidates = extractor.extract(source.read_text(encoding="utf-8"))

    if output_format == "json":
        print(json.dumps([c.model_dump(mode="json") for c in candidates], indent=2))
    else:
        print(f"\n🔍 Found {len(candidates)} candidate cards in {source.name}\n")
        for i, candidate in enumerate(candidates, 1):
            print(f"{i:3d}. [{candidate.origin.value}] {candidate.question}")
            print(f"     {truncate_text(candidate.answer.replace(chr(10), ' '), 100)}")

    if save:
        topic_id = topic or source.stem
        added = store.submit_candidates(topic_id, candidates)
        print(f"\n✅ Saved {len(added)} new cards to topic '{topic_id}'")
    return 0


# =============================================================================
# Due / Stats Commands
# =============================================================================


def show_due(store: CardStore, topic: str) -> int:
    """List the cards due now."""
    due = store.due_cards(topic)
    if not due:
        print(f"📭 Nothing due in '{topic}'")
        return 0

    print(f"\n📅 {len(due)} cards due in '{topic}'\n")
    for card in due:
        when = card.next_review_at.strftime("%Y-%m-%d %H:%M")
        print(f"  • {truncate_text(card.question, 70)}  (due {when})")
    return 0


def show_stats(store: CardStore, topic: Optional[str] = None) -> int:
    """Print deck statistics."""
    stats = store.stats(topic)
    scope = f"'{topic}'" if topic else f"all topics ({len(store.topics())})"

    print("\n" + "=" * 60)
    print(f"📊 STATISTICS: {scope}")
    print("=" * 60)
    print(f"  Total cards:        {stats.total_cards}")
    print(f"  Auto-generated:     {stats.auto_generated}")
    print(f"  Manual:             {stats.manual}")
    print(f"  Imported:           {stats.imported}")
    print(f"  Generated:          {stats.generated_externally}")
    print(f"  Mastered:           {stats.mastered} ({stats.mastery_percentage}%)")
    print(f"  To review:          {stats.to_review}")
    print(f"  Due now:            {stats.due_now}")

    forecast = stats.forecast
    print(f"\n{'─' * 60}")
    print("Upcoming reviews:")
    print(f"  Overdue: {forecast.overdue}   Today: {forecast.today}   "
          f"Tomorrow: {forecast.tomorrow}")
    print(f"  This week: {forecast.this_week}   Later: {forecast.later}")
    return 0


# =============================================================================
# Export / Import Commands
# =============================================================================


def export_topic(store: CardStore, topic: str, output: Optional[str] = None) -> int:
    """Write a topic's deck to a JSON file."""
    export = export_deck(store, topic)
    target = Path(output or export_filename(topic))
    target.write_text(deck_to_json(export), encoding="utf-8")
    print(f"💾 Exported {len(export.cards)} cards to {target}")
    return 0


def import_topic(store: CardStore, topic: str, path: str) -> int:
    """Import a deck export into a topic."""
    source = Path(path)
    if not source.exists():
        print(f"❌ File not found: {path}")
        return 1

    result = import_deck(store, topic, source.read_text(encoding="utf-8"))
    if not result.success:
        print(f"❌ Import failed: {result.error}")
        return 1

    print(f"✅ Imported {result.imported} cards ({result.skipped} skipped)")
    return 0


# =============================================================================
# Study Command
# =============================================================================


def study(
    store: CardStore,
    topic: str,
    mode: str = "all",
    shuffle: bool = True,
    limit: Optional[int] = None,
) -> int:
    """Run an interactive study session in the terminal."""
    service = SessionService(store)
    session = service.start(topic, mode=StudyMode(mode), shuffle=shuffle, limit=limit)
    if session is None:
        print(f"📭 No cards to study in '{topic}'")
        return 0

    while not session.is_complete:
        card = service.current_card(session)
        progress = service.progress(session)
        print(f"\n{'─' * 60}")
        print(f"Card {progress.current}/{progress.total}  "
              f"✅ {progress.correct}  ❌ {progress.lapses}")
        print(f"\n❓ {card.question if card else '(card deleted)'}")
        if session.is_answer_revealed and card:
            print(f"\n💡 {card.answer}")

        choice = input("\n[Enter] reveal  [1-5] score  [s] skip  [q] quit > ").strip()

        if choice == "q":
            break
        if choice == "s":
            session = service.skip(session)
        elif choice in {"1", "2", "3", "4", "5"}:
            if not session.is_answer_revealed:
                print("Reveal the answer before scoring.")
                continue
            try:
                session = service.score(session, Rating(int(choice)))
            except StorageCapacityExceeded as e:
                print(f"\n❌ {e.message}")
                break
        else:
            session = service.reveal(session)

    summary = service.end(session)
    minutes, seconds = divmod(int(summary.elapsed.total_seconds()), 60)
    print("\n" + "=" * 60)
    print("🎓 SESSION COMPLETE")
    print("=" * 60)
    print(f"  Cards:    {summary.total}")
    print(f"  Correct:  {summary.correct}")
    print(f"  Lapses:   {summary.lapses}")
    print(f"  Skipped:  {summary.skipped}")
    print(f"  Time:     {minutes}m {seconds}s")
    return 0


# =============================================================================
# Main
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="Extract, schedule and study flashcards from markdown notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Extract command
    extract_parser = subparsers.add_parser(
        "extract", help="Extract candidate cards from a markdown file"
    )
    extract_parser.add_argument("file", help="Markdown notes file")
    extract_parser.add_argument(
        "--topic", help="Topic to save into (default: file name without suffix)"
    )
    extract_parser.add_argument(
        "--save", action="store_true", help="Save new cards into the topic"
    )
    extract_parser.add_argument(
        "--seed", type=int, default=None, help="Seed for question templates"
    )
    extract_parser.add_argument(
        "--no-code", action="store_true", help="Skip fenced code blocks"
    )
    extract_parser.add_argument(
        "--format",
        "-f",
        choices=["summary", "json"],
        default="summary",
        help="Output format (default: summary)",
    )

    # Due command
    due_parser = subparsers.add_parser("due", help="List cards due now")
    due_parser.add_argument("topic", help="Topic id")

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show deck statistics")
    stats_parser.add_argument("topic", nargs="?", help="Topic id (default: all)")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export a topic to JSON")
    export_parser.add_argument("topic", help="Topic id")
    export_parser.add_argument(
        "--output", "-o", help="Output path (default: flashcards-<topic>-<date>.json)"
    )

    # Import command
    import_parser = subparsers.add_parser("import", help="Import a JSON export")
    import_parser.add_argument("topic", help="Destination topic id")
    import_parser.add_argument("file", help="Export file")

    # Study command
    study_parser = subparsers.add_parser("study", help="Study a topic interactively")
    study_parser.add_argument("topic", help="Topic id")
    study_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in StudyMode],
        default="all",
        help="Study all cards or only due cards (default: all)",
    )
    study_parser.add_argument(
        "--no-shuffle", action="store_true", help="Keep most overdue cards first"
    )
    study_parser.add_argument(
        "--limit", type=int, default=None, help="Maximum cards in the session"
    )

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.debug)
    store = create_card_store()

    try:
        if args.command == "extract":
            return extract_cards(
                store,
                args.file,
                topic=args.topic,
                save=args.save,
                seed=args.seed,
                include_code=not args.no_code,
                output_format=args.format,
            )
        if args.command == "due":
            return show_due(store, args.topic)
        if args.command == "stats":
            return show_stats(store, args.topic)
        if args.command == "export":
            return export_topic(store, args.topic, args.output)
        if args.command == "import":
            return import_topic(store, args.topic, args.file)
        if args.command == "study":
            return study(
                store,
                args.topic,
                mode=args.mode,
                shuffle=not args.no_shuffle,
                limit=args.limit,
            )
    except StorageCapacityExceeded as e:
        print(f"❌ {e.message}")
        return 1
    finally:
        store.backend.close()

    return 1


if __name__ == "__main__":
    sys.exit(main())
