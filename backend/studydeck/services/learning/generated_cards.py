"""
Generated Card Intake

Helpers for cards produced outside the engine by a text generator (for
example a hosted language model). The engine never calls a generator
itself; it only prepares the input and reads back the output:

    sections = extract_sections(markdown)
    prompt = build_generation_prompt("Python", sections[0])
    # ... caller sends the prompt to its generator of choice ...
    candidates = parse_generated_cards(response_text, provider="groq")
    store.submit_candidates("python", candidates)

Submitted candidates go through the same validity filter and
de-duplication as extracted ones.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from studydeck.config.settings import settings
from studydeck.enums.learning import CardOrigin, DifficultyHint, GenerationDiversity
from studydeck.models.learning import CandidateCard
from studydeck.services.learning.extractor import SECTION_HEADING_RE, fenced_line_mask
from studydeck.utils.text_utils import extract_json_from_response, normalize_source_text

logger = logging.getLogger(__name__)


DIVERSITY_INSTRUCTIONS = {
    GenerationDiversity.LOW: "Focus on definition and basic understanding questions.",
    GenerationDiversity.MEDIUM: (
        "Mix definition questions with some application and explanation questions."
    ),
    GenerationDiversity.HIGH: (
        "Use maximum variety: definitions, how-to, when-to-use, comparisons, "
        "debugging, scenarios, and fill-in-blanks."
    ),
}

GENERATION_PROMPT = """You are an expert technical flashcard generator.

TOPIC: {topic}
SECTION: {heading}
CONTENT:
{content}

TASK: Generate exactly {count} diverse flashcard questions from this content.

QUESTION TYPES TO USE ({diversity} diversity):
{diversity_instructions}

Available question formats:
1. definition: "What is X?" - for concepts and terminology
2. explanation: "How does X work?" - for mechanisms and processes
3. application: "When should you use X?" - for practical use cases
4. comparison: "What's the difference between X and Y?" - for contrasts
5. debugging: "What's wrong with this code?" - for common mistakes
6. scenario: "How would you solve X problem?" - for real-world application
7. fill-blank: "A closure is a _____ bundled with _____" - for key facts
8. best-practice: "What's the best way to X?" - for recommendations

REQUIREMENTS:
- Return ONLY valid JSON, no markdown or extra text
- Each question must be clear and specific
- Answers should be concise but complete
- Include code blocks in answers when relevant (use markdown format)
- Vary question types for better learning

Return a JSON array:
[
    {{
        "question": "Question text",
        "answer": "Answer text",
        "type": "definition|explanation|application|comparison|...",
        "difficulty": "easy|medium|hard"
    }}
]
"""


@dataclass
class NoteSection:
    """A level-2/3 heading and the text under it."""

    heading: str
    level: int
    content: str


def extract_sections(
    markdown: str, min_length: Optional[int] = None
) -> list[NoteSection]:
    """
    Split notes into heading sections worth sending to a generator.

    Args:
        markdown: Source notes
        min_length: Sections with less content are dropped
            (defaults to GENERATION_SECTION_MIN_LENGTH)

    Returns:
        Sections in document order
    """
    if min_length is None:
        min_length = settings.GENERATION_SECTION_MIN_LENGTH

    lines = normalize_source_text(markdown).split("\n")
    fenced = fenced_line_mask(lines)

    sections: list[NoteSection] = []
    current: Optional[NoteSection] = None
    body: list[str] = []

    def close_section() -> None:
        if current is not None:
            current.content = "\n".join(body).strip()
            sections.append(current)

    for i, line in enumerate(lines):
        match = None if fenced[i] else SECTION_HEADING_RE.match(line)
        if match:
            close_section()
            current = NoteSection(
                heading=match.group(2).strip(), level=len(match.group(1)), content=""
            )
            body = []
        elif current is not None:
            body.append(line)
    close_section()

    return [section for section in sections if len(section.content) > min_length]


def build_generation_prompt(
    topic_title: str,
    section: NoteSection,
    count: Optional[int] = None,
    diversity: Union[GenerationDiversity, str] = GenerationDiversity.HIGH,
) -> str:
    """
    Render generator instructions for one section.

    Args:
        topic_title: Human-readable topic name
        section: Section to generate cards from
        count: Cards to ask for (defaults to GENERATION_QUESTIONS_PER_SECTION)
        diversity: How varied the question types should be

    Returns:
        Prompt text
    """
    diversity = GenerationDiversity(diversity)
    return GENERATION_PROMPT.format(
        topic=topic_title,
        heading=section.heading,
        content=section.content,
        count=count or settings.GENERATION_QUESTIONS_PER_SECTION,
        diversity=diversity.value,
        diversity_instructions=DIVERSITY_INSTRUCTIONS[diversity],
    )


def parse_generated_cards(
    response_text: str,
    provider: Optional[str] = None,
    section: Optional[NoteSection] = None,
) -> list[CandidateCard]:
    """
    Read candidate cards out of free-form generator output.

    The first JSON array in the text is used (an object with a "cards"
    list is accepted too). Entries without a question or an answer are
    dropped.

    Args:
        response_text: Raw generator output
        provider: Generator name, for logging
        section: Section the cards were generated from, used as context

    Returns:
        Candidates with origin generated-externally; empty if the output
        could not be parsed
    """
    source = provider or "generator"
    data = extract_json_from_response(response_text)
    if isinstance(data, dict):
        data = data.get("cards")

    if not isinstance(data, list):
        logger.warning(
            f"Could not parse cards from {source} output: {response_text[:200]!r}"
        )
        return []

    known_difficulties = {hint.value for hint in DifficultyHint}
    candidates = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        question = entry.get("question")
        answer = entry.get("answer")
        if not isinstance(question, str) or not isinstance(answer, str):
            continue
        if not question.strip() or not answer.strip():
            continue

        difficulty = str(entry.get("difficulty", "")).lower()
        if difficulty not in known_difficulties:
            difficulty = None
        candidates.append(
            CandidateCard(
                question=question,
                answer=answer,
                origin=CardOrigin.GENERATED_EXTERNALLY,
                difficulty_hint=difficulty,
                context=section.heading if section else None,
                heading_level=section.level if section else None,
            )
        )

    logger.info(f"Parsed {len(candidates)} cards from {source} output")
    return candidates
