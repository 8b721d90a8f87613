"""
Heuristic Card Extractor

Mines candidate question/answer pairs out of loosely structured markdown
notes. Extraction is best-effort: it may miss or garble content, but every
candidate it returns has passed the validity filter and is unique by
normalized question.

Strategies, run in order and merged:
1. Heading blocks: "## Heading" + the prose that follows it
2. Inline definitions: "**Term**: explanation"
3. Bold-led list items, phrased by the heading they live under
4. Fenced code blocks, phrased from the nearest heading and prose line

Template choice is randomized for variety. The random source is either
passed in or seeded per call, so the same text and seed always produce
the same candidates.

Usage:
    from studydeck.services.learning.extractor import CardExtractor

    extractor = CardExtractor(seed=42)
    candidates = extractor.extract(markdown_text)

    # Or, one-shot:
    from studydeck.services.learning.extractor import extract
    candidates = extract(markdown_text, seed=42)
"""

import logging
import random
import re
from typing import Iterable, Iterator, Optional

from studydeck.config.settings import settings
from studydeck.enums.learning import CardOrigin
from studydeck.errors import ExtractionSkip
from studydeck.models.learning import CandidateCard
from studydeck.services.learning.question_patterns import (
    QUESTION_LEAD_RE,
    as_question,
    heading_to_question,
    list_item_to_question,
)
from studydeck.utils.text_utils import normalize_question, normalize_source_text

logger = logging.getLogger(__name__)


FENCE = "```"

# Headings that become cards, and the lines that end their section
SECTION_HEADING_RE = re.compile(r"^(#{2,3})\s+(.+)$")
SECTION_BREAK_RE = re.compile(r"^#{1,3}\s+")
STRUCTURAL_HEADING_RE = re.compile(
    r"table of contents|summary|overview|navigation|resources|references|see also",
    re.IGNORECASE,
)

# Headings that give list items (and code blocks) their context
CONTEXT_HEADING_RE = re.compile(r"^#{2,4}\s+(.+)$")
CONTEXT_BREAK_RE = re.compile(r"^#{1,4}\s+")
STRUCTURAL_CONTEXT_RE = re.compile(
    r"table of contents|summary|overview|navigation", re.IGNORECASE
)

DEFINITION_RE = re.compile(r"\*\*([^*:\n]+)\*\*\s*:\s*([^\n]+)")
BOLD_LIST_ITEM_RE = re.compile(r"^\s*[-*]\s+\*\*(.+?)\*\*[:\s-]+(.+)$")
LIST_ITEM_START_RE = re.compile(r"^\s*[-*]\s+")
LIST_LINE_RE = re.compile(r"^(?:[-*+]\s+|\d+\.\s+)")

# Code-block question cues
EXAMPLE_HEADING_RE = re.compile(r"simple|basic|example|sample", re.IGNORECASE)
SIMPLE_HEADING_RE = re.compile(r"\b(?:simple|basic|examples?)\b", re.IGNORECASE)
ANTI_PATTERN_HEADING_RE = re.compile(
    r"\b(?:wrong|incorrect|pitfalls?|mistakes?|avoid|bad|anti-?patterns?)\b",
    re.IGNORECASE,
)
DEMONSTRATION_RE = re.compile(r"\b(?:example|demonstrates|shows)\b", re.IGNORECASE)
PURPOSE_PHRASE_RE = re.compile(r"\b(?:to|for)\s+([^.:,?!]+)", re.IGNORECASE)
ACTION_VERB_RE = re.compile(
    r"\b(create|use|implement|define|declare|set|get|call|invoke|run|execute)\b",
    re.IGNORECASE,
)

# Structural boilerplate that is never a question or an answer
BOILERPLATE_PATTERNS: tuple[tuple[re.Pattern, str], ...] = (
    (
        re.compile(
            r"^(table of contents|toc|summary|overview|navigation"
            r"|resources|references)$",
            re.IGNORECASE,
        ),
        "navigation phrase",
    ),
    (re.compile(r"^(prev|next|home|back to top)$", re.IGNORECASE), "navigation link"),
)
BARE_MARKER_RE = re.compile(r"^(?:#{1,6}|[-*+])\s*$")


# ===========================================
# Markdown helpers
# ===========================================


def fenced_line_mask(lines: list[str]) -> list[bool]:
    """Flag every line that is a fence marker or sits inside a fenced block."""
    mask = []
    inside = False
    for line in lines:
        if line.strip().startswith(FENCE):
            mask.append(True)
            inside = not inside
        else:
            mask.append(inside)
    return mask


def has_partial_markdown(text: str) -> bool:
    """True when ``text`` holds a dangling fence or is a bare marker."""
    stripped = text.strip()
    if stripped.count(FENCE) % 2 != 0:
        return True
    if stripped.startswith(FENCE) and not stripped.endswith(FENCE):
        return True
    return bool(BARE_MARKER_RE.match(stripped))


def is_list_only(text: str, ratio: Optional[float] = None) -> bool:
    """
    True when ``text`` is (almost) entirely list markup.

    Args:
        text: Answer text
        ratio: Share of non-blank lines above which text counts as a list
            (defaults to EXTRACT_LIST_ONLY_RATIO)
    """
    if ratio is None:
        ratio = settings.EXTRACT_LIST_ONLY_RATIO

    lines = [line.strip() for line in text.split("\n") if line.strip()]
    if not lines:
        return False

    list_lines = sum(1 for line in lines if LIST_LINE_RE.match(line))
    return list_lines == len(lines) or list_lines / len(lines) > ratio


def split_paragraphs(text: str) -> list[str]:
    """Split on blank lines, keeping fenced code blocks in one piece."""
    paragraphs: list[str] = []
    current: list[str] = []
    inside = False

    for line in text.split("\n"):
        if line.strip().startswith(FENCE):
            inside = not inside
        if not line.strip() and not inside:
            if current:
                paragraphs.append("\n".join(current).strip())
                current = []
            continue
        current.append(line)

    if current:
        paragraphs.append("\n".join(current).strip())
    return [p for p in paragraphs if p]


# ===========================================
# Validity filter
# ===========================================


def check_candidate(candidate: CandidateCard) -> None:
    """
    Apply the validity filter to one candidate.

    Raises:
        ExtractionSkip: With the reason the candidate is rejected
    """
    question = candidate.question.strip()
    answer = candidate.answer.strip()

    if not (
        settings.EXTRACT_QUESTION_MIN_LENGTH
        <= len(question)
        <= settings.EXTRACT_QUESTION_MAX_LENGTH
    ):
        raise ExtractionSkip(f"question length {len(question)} out of range")

    if not (
        settings.EXTRACT_ANSWER_MIN_LENGTH
        <= len(answer)
        <= settings.EXTRACT_ANSWER_MAX_LENGTH
    ):
        raise ExtractionSkip(f"answer length {len(answer)} out of range")

    for field_name, text in (("question", question), ("answer", answer)):
        for pattern, label in BOILERPLATE_PATTERNS:
            if pattern.match(text):
                raise ExtractionSkip(f"{field_name} is a {label}")
        if has_partial_markdown(text):
            raise ExtractionSkip(f"{field_name} is partial markdown")

    if is_list_only(answer):
        raise ExtractionSkip("answer is list markup, not prose")


def filter_candidates(
    candidates: Iterable[CandidateCard],
    seen: Optional[set[str]] = None,
) -> list[CandidateCard]:
    """
    Drop invalid candidates and keep the first occurrence per question.

    Args:
        candidates: Candidates in priority order
        seen: Normalized questions to treat as already taken (updated
            in place)

    Returns:
        Surviving candidates, original order preserved
    """
    seen = seen if seen is not None else set()
    accepted = []

    for candidate in candidates:
        try:
            check_candidate(candidate)
        except ExtractionSkip as e:
            logger.debug(f"Skipped candidate '{candidate.question[:60]}': {e.message}")
            continue

        key = normalize_question(candidate.question)
        if key in seen:
            logger.debug(f"Skipped duplicate candidate '{candidate.question[:60]}'")
            continue

        seen.add(key)
        accepted.append(candidate)

    return accepted


# ===========================================
# Extractor
# ===========================================


class CardExtractor:
    """
    Heuristic extractor turning markdown notes into candidate cards.

    Thresholds come from settings (EXTRACT_*); the random source used for
    template choice is seeded per call.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        include_code: Optional[bool] = None,
    ):
        """
        Initialize the extractor.

        Args:
            seed: Seed for template choice. None gives varied output.
            include_code: Mine fenced code blocks (defaults to
                EXTRACT_INCLUDE_CODE_EXAMPLES)
        """
        self.seed = seed
        self.include_code = (
            settings.EXTRACT_INCLUDE_CODE_EXAMPLES
            if include_code is None
            else include_code
        )

    def extract(
        self, source_text: str, rng: Optional[random.Random] = None
    ) -> list[CandidateCard]:
        """
        Extract candidate cards from structured prose.

        Args:
            source_text: Markdown text handed over by the authoring pipeline
            rng: Random source; a fresh generator seeded with ``self.seed``
                is used when omitted

        Returns:
            Valid, de-duplicated candidates in strategy order
        """
        rng = rng if rng is not None else random.Random(self.seed)
        text = normalize_source_text(source_text)
        if not text.strip():
            return []

        lines = text.split("\n")
        fenced = fenced_line_mask(lines)

        raw: list[CandidateCard] = []
        raw.extend(self._from_headings(lines, fenced, rng))
        raw.extend(self._from_definitions(lines, fenced))
        raw.extend(self._from_lists(lines, fenced, rng))
        if self.include_code:
            raw.extend(self._from_code_blocks(lines, fenced))

        candidates = filter_candidates(raw)
        logger.debug(
            f"Extracted {len(candidates)} candidates from {len(raw)} raw matches"
        )
        return candidates

    # -------------------------------------------------------------------------
    # Heading blocks
    # -------------------------------------------------------------------------

    def _from_headings(
        self, lines: list[str], fenced: list[bool], rng: random.Random
    ) -> Iterator[CandidateCard]:
        for i, line in enumerate(lines):
            if fenced[i]:
                continue
            match = SECTION_HEADING_RE.match(line)
            if not match:
                continue

            heading = match.group(2).strip()
            if STRUCTURAL_HEADING_RE.search(heading):
                continue

            body = []
            for j in range(i + 1, len(lines)):
                if not fenced[j] and SECTION_BREAK_RE.match(lines[j]):
                    break
                body.append(lines[j])

            answer = self._section_answer("\n".join(body))
            if answer is None:
                continue

            yield CandidateCard(
                question=heading_to_question(heading, rng),
                answer=answer,
                origin=CardOrigin.HEURISTIC_HEADING,
                context=heading,
                heading_level=len(match.group(1)),
            )

    def _section_answer(self, body: str) -> Optional[str]:
        """Pick the answer text for a heading section, or None to skip it."""
        text = body.strip()
        if not text or has_partial_markdown(text) or is_list_only(text):
            return None

        min_length = settings.EXTRACT_ANSWER_MIN_LENGTH
        max_length = settings.EXTRACT_ANSWER_MAX_LENGTH

        paragraphs = split_paragraphs(text)
        first = paragraphs[0]
        if min_length <= len(first) <= max_length:
            return first
        if len(first) < min_length and len(paragraphs) > 1:
            return "\n\n".join(paragraphs[:2])
        return text

    # -------------------------------------------------------------------------
    # Inline definitions
    # -------------------------------------------------------------------------

    def _from_definitions(
        self, lines: list[str], fenced: list[bool]
    ) -> Iterator[CandidateCard]:
        for i, line in enumerate(lines):
            if fenced[i]:
                continue
            for match in DEFINITION_RE.finditer(line):
                term = match.group(1).strip()
                definition = match.group(2).strip()
                min_length = settings.EXTRACT_DEFINITION_MIN_LENGTH
                if not term or len(definition) <= min_length:
                    continue

                yield CandidateCard(
                    question=f"What is {term}?",
                    answer=definition,
                    origin=CardOrigin.HEURISTIC_DEFINITION,
                )

    # -------------------------------------------------------------------------
    # Bold-led list items
    # -------------------------------------------------------------------------

    def _from_lists(
        self, lines: list[str], fenced: list[bool], rng: random.Random
    ) -> Iterator[CandidateCard]:
        context = ""

        for i, line in enumerate(lines):
            if fenced[i]:
                continue

            heading = CONTEXT_HEADING_RE.match(line)
            if heading:
                heading_text = heading.group(1).strip()
                if not STRUCTURAL_CONTEXT_RE.search(heading_text):
                    context = heading_text
                continue

            match = BOLD_LIST_ITEM_RE.match(line)
            if not match or not context:
                continue

            item = match.group(1).strip()
            description = match.group(2).strip()

            # Fold continuation lines until a blank line, list item or heading
            for j in range(i + 1, len(lines)):
                follower = lines[j]
                if (
                    fenced[j]
                    or not follower.strip()
                    or LIST_ITEM_START_RE.match(follower)
                    or CONTEXT_BREAK_RE.match(follower)
                ):
                    break
                description += " " + follower.strip()

            if not (
                settings.EXTRACT_LIST_ANSWER_MIN_LENGTH
                <= len(description)
                <= settings.EXTRACT_LIST_ANSWER_MAX_LENGTH
            ):
                continue

            yield CandidateCard(
                question=list_item_to_question(item, context, rng),
                answer=description,
                origin=CardOrigin.HEURISTIC_LIST,
                context=context,
            )

    # -------------------------------------------------------------------------
    # Fenced code blocks
    # -------------------------------------------------------------------------

    def _from_code_blocks(
        self, lines: list[str], fenced: list[bool]
    ) -> Iterator[CandidateCard]:
        i = 0
        while i < len(lines):
            opening = lines[i].strip()
            if not opening.startswith(FENCE):
                i += 1
                continue

            language = opening[len(FENCE):].strip()
            start = i
            body = []
            i += 1
            while i < len(lines) and not lines[i].strip().startswith(FENCE):
                body.append(lines[i])
                i += 1

            if i >= len(lines):
                # Unclosed fence: nothing after it is reliable
                break
            i += 1

            code = "\n".join(body).strip()
            if not (
                settings.EXTRACT_CODE_MIN_LENGTH
                <= len(code)
                <= settings.EXTRACT_CODE_MAX_LENGTH
            ):
                continue

            heading, prose = self._code_context(lines, fenced, start)
            yield CandidateCard(
                question=self._code_question(heading, prose),
                answer=f"{FENCE}{language}\n{code}\n{FENCE}",
                origin=CardOrigin.HEURISTIC_CODE,
                language=language or "plaintext",
                context=heading or None,
            )

    def _code_context(
        self, lines: list[str], fenced: list[bool], start: int
    ) -> tuple[str, str]:
        """Nearest heading and prose line within the lookback window."""
        heading = ""
        prose = ""
        stop = max(0, start - settings.EXTRACT_CODE_LOOKBACK_LINES)

        for j in range(start - 1, stop - 1, -1):
            if fenced[j]:
                continue
            previous = lines[j].strip()

            if not heading:
                match = CONTEXT_HEADING_RE.match(previous)
                if match:
                    heading = match.group(1).strip()

            if (
                not prose
                and previous
                and not previous.startswith("#")
                and len(previous) > settings.EXTRACT_CODE_CONTEXT_MIN_LENGTH
            ):
                prose = previous

            if heading and prose:
                break

        return heading, prose

    def _code_question(self, heading: str, prose: str) -> str:
        """Phrase a code block's question from its surroundings."""
        if heading and EXAMPLE_HEADING_RE.search(heading):
            if re.search(r"simple|basic", heading, re.IGNORECASE):
                topic = " ".join(SIMPLE_HEADING_RE.sub(" ", heading).split())
                if topic:
                    return f"What is a simple example of {topic.lower()}?"
            return f"Show an example of {heading.lower()}"

        if heading and ANTI_PATTERN_HEADING_RE.search(heading):
            return "What problem does this code demonstrate?"

        if prose:
            if DEMONSTRATION_RE.search(prose):
                if heading:
                    return f"Show an example of {heading.lower()}"
                return "What does this code demonstrate?"

            purpose = PURPOSE_PHRASE_RE.search(prose)
            if purpose and purpose.group(1).strip():
                return f"How do you {purpose.group(1).strip().lower()}?"

            verb = ACTION_VERB_RE.search(prose)
            if verb:
                target = heading.lower() if heading else "this"
                return f"How do you {verb.group(1).lower()} {target}?"

            if heading:
                return f"How do you implement {heading.lower()}?"
            return "What does this code do?"

        if heading:
            if QUESTION_LEAD_RE.match(heading):
                return as_question(heading)
            return f"How do you implement {heading.lower()}?"

        return "What does this code demonstrate?"


def extract(
    source_text: str,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
    include_code: Optional[bool] = None,
) -> list[CandidateCard]:
    """Extract candidates with a one-off CardExtractor."""
    return CardExtractor(seed=seed, include_code=include_code).extract(
        source_text, rng=rng
    )
