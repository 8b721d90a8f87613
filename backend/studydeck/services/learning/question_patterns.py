"""
Question Pattern Tables

Ordered trigger → template tables used by the text extractor to turn
headings and list contexts into questions.

Each table is plain data (priority, triggers, templates) consumed by a
single matching function, so a rule can be tested or added without
touching the extractor:

    pattern = match_pattern("Common Pitfalls", HEADING_PATTERNS)
    pattern.render(rng, topic="closures")

Matching is a case-insensitive substring test against the triggers.
Higher priority wins; among equal priorities, table order wins.

Templates use ``str.format`` placeholders:
    {topic}    cleaned heading text (heading questions)
    {item}     bold list item (list questions)
    {context}  heading the list lives under (list questions)
"""

import random
import re
from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class QuestionPattern:
    """One row of a pattern table."""

    name: str
    priority: int
    triggers: tuple[str, ...]
    templates: tuple[str, ...]

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(trigger in lowered for trigger in self.triggers)

    def render(self, rng: random.Random, **values: str) -> str:
        """Fill one template, picked at random when there are several."""
        if len(self.templates) == 1:
            template = self.templates[0]
        else:
            template = rng.choice(self.templates)
        return template.format(**values)


def match_pattern(
    text: str, patterns: Sequence[QuestionPattern]
) -> Optional[QuestionPattern]:
    """
    Find the highest-priority pattern whose triggers occur in ``text``.

    Args:
        text: Heading or context text to classify
        patterns: Pattern table

    Returns:
        Matching pattern, or None if no trigger occurs
    """
    # sorted() is stable, so table order breaks priority ties
    for pattern in sorted(patterns, key=lambda p: -p.priority):
        if pattern.matches(text):
            return pattern
    return None


# ===========================================
# Heading questions
# ===========================================

HEADING_PATTERNS: tuple[QuestionPattern, ...] = (
    QuestionPattern(
        name="scenarios",
        priority=9,
        triggers=(
            "practical",
            "scenarios",
            "use cases",
            "applications",
            "when to use",
            "situations",
        ),
        templates=(
            "When should you use {topic}?",
            "What are practical scenarios for {topic}?",
            "In what situations would you use {topic}?",
        ),
    ),
    QuestionPattern(
        name="benefits",
        priority=8,
        triggers=(
            "importance",
            "benefits",
            "advantages",
            "why use",
            "why important",
            "significance",
        ),
        templates=(
            "Why is {topic} important?",
            "What are the benefits of {topic}?",
            "Why should you use {topic}?",
            "What is the significance of {topic}?",
        ),
    ),
    QuestionPattern(
        name="pitfalls",
        priority=8,
        triggers=(
            "issues",
            "pitfalls",
            "common mistakes",
            "problems",
            "gotchas",
            "avoid",
            "errors",
            "bugs",
        ),
        templates=(
            "What problems should you avoid with {topic}?",
            "What are common pitfalls with {topic}?",
            "What issues should you avoid when using {topic}?",
            "What mistakes are commonly made with {topic}?",
            "What problems can occur with {topic}?",
        ),
    ),
    QuestionPattern(
        name="mechanism",
        priority=7,
        triggers=(
            "how it works",
            "mechanism",
            "behind the scenes",
            "internal",
            "under the hood",
            "how does",
        ),
        templates=(
            "How does {topic} work?",
            "Explain how {topic} works",
            "What happens internally with {topic}?",
            "Describe the mechanism of {topic}",
        ),
    ),
    QuestionPattern(
        name="creation",
        priority=7,
        triggers=(
            "creating",
            "writing",
            "implementing",
            "building",
            "making",
            "developing",
        ),
        templates=(
            "How do you create {topic}?",
            "What are the steps to implement {topic}?",
            "How do you write {topic}?",
            "How do you build {topic}?",
        ),
    ),
    QuestionPattern(
        name="process",
        priority=7,
        triggers=("steps", "process", "procedure", "workflow"),
        templates=(
            "What are the steps to {topic}?",
            "Describe the process of {topic}",
            "What is the procedure for {topic}?",
        ),
    ),
    QuestionPattern(
        name="best-practices",
        priority=6,
        triggers=("best practices", "guidelines", "recommendations", "tips"),
        templates=(
            "What are the best practices for {topic}?",
            "What are recommended guidelines for {topic}?",
            "What tips should you follow for {topic}?",
        ),
    ),
    QuestionPattern(
        name="debugging",
        priority=6,
        triggers=("debugging", "troubleshooting", "fixing", "solving"),
        templates=(
            "How do you debug {topic}?",
            "What are common ways to troubleshoot {topic}?",
            "How do you fix issues with {topic}?",
        ),
    ),
)

COMPARISON_TEMPLATES: tuple[str, ...] = (
    "What is the difference between {left} and {right}?",
    "How does {left} differ from {right}?",
    "When should you choose {left} over {right}?",
)

# Generic lead-ins stripped before matching, applied in order
LEAD_IN_PREFIXES: tuple[re.Pattern, ...] = tuple(
    re.compile(rf"^{prefix}\s+", re.IGNORECASE)
    for prefix in (
        r"understanding",
        r"working\s+with",
        r"introduction\s+to",
        r"intro\s+to",
        r"overview\s+of",
        r"getting\s+started\s+with",
        r"learning",
        r"using",
        r"implementing",
        r"creating",
        r"managing",
        r"exploring",
        r"about",
        r"the",
    )
)

QUESTION_LEAD_RE = re.compile(r"^(how|what|why|when|where|which)\b", re.IGNORECASE)
VERSUS_RE = re.compile(r"\s+(?:vs\.?|versus)\s+", re.IGNORECASE)


def clean_heading_text(heading: str) -> str:
    """Strip generic lead-in verbs and articles ("Understanding the ...")."""
    cleaned = heading.strip()
    for prefix in LEAD_IN_PREFIXES:
        cleaned = prefix.sub("", cleaned)
    return cleaned.strip()


def is_plural(text: str) -> bool:
    """
    Rough plural test on the last word.

    Trailing "s" counts as plural unless the word ends in "ss", "us" or
    "is" (class, status, analysis).
    """
    words = text.strip().split()
    if not words:
        return False
    word = words[-1].lower()
    return word.endswith("s") and not word.endswith(("ss", "us", "is"))


def as_question(text: str) -> str:
    """Keep question-shaped text verbatim, adding the missing "?"."""
    text = text.strip()
    return text if text.endswith("?") else f"{text}?"


def heading_to_question(heading: str, rng: random.Random) -> str:
    """
    Turn a section heading into a question.

    1. Headings already phrased as a question are kept.
    2. "X vs Y" headings become a comparison question.
    3. Otherwise the cleaned heading is matched against HEADING_PATTERNS.
    4. Fallback: "What is X?" / "What are X?".

    Args:
        heading: Heading text without the leading #'s
        rng: Random source for template choice

    Returns:
        Question text
    """
    heading = heading.strip()
    if QUESTION_LEAD_RE.match(heading):
        return as_question(heading)

    cleaned = clean_heading_text(heading) or heading
    topic = cleaned.lower()

    parts = VERSUS_RE.split(cleaned, maxsplit=1)
    if len(parts) == 2 and parts[0].strip() and parts[1].strip():
        template = rng.choice(COMPARISON_TEMPLATES)
        return template.format(
            left=parts[0].strip().lower(), right=parts[1].strip().lower()
        )

    pattern = match_pattern(heading, HEADING_PATTERNS)
    if pattern is not None:
        return pattern.render(rng, topic=topic)

    return f"What are {topic}?" if is_plural(cleaned) else f"What is {topic}?"


# ===========================================
# List-item questions
# ===========================================

LIST_CONTEXT_PATTERNS: tuple[QuestionPattern, ...] = (
    QuestionPattern(
        name="benefits",
        priority=6,
        triggers=("benefits", "advantages"),
        templates=("What is the benefit of {item}?",),
    ),
    QuestionPattern(
        name="types",
        priority=5,
        triggers=("types", "kinds", "categories"),
        templates=("What is {item} as a type of {context}?",),
    ),
    QuestionPattern(
        name="examples",
        priority=4,
        triggers=("examples", "scenarios", "use cases"),
        templates=("When would you use {item}?",),
    ),
    QuestionPattern(
        name="pitfalls",
        priority=3,
        triggers=("pitfalls", "issues", "problems", "mistakes"),
        templates=("What problem is {item}?",),
    ),
    QuestionPattern(
        name="features",
        priority=2,
        triggers=("features", "characteristics"),
        templates=("What does {item} feature provide?",),
    ),
    QuestionPattern(
        name="steps",
        priority=1,
        triggers=("steps", "process"),
        templates=("What happens in the {item} step?",),
    ),
)

GENERIC_LIST_TEMPLATE = "What is {item}?"


def list_item_to_question(item: str, context: str, rng: random.Random) -> str:
    """Render the question for a bold list item under ``context``."""
    values = {"item": item.strip().lower(), "context": context.strip().lower()}
    pattern = match_pattern(context, LIST_CONTEXT_PATTERNS)
    if pattern is None:
        return GENERIC_LIST_TEMPLATE.format(**values)
    return pattern.render(rng, **values)
