"""
Text Processing Utilities

Provides functions for text normalization, question keys, JSON extraction,
and truncation used by the extractor, the card store and the tooling.

Usage:
    from studydeck.utils.text_utils import (
        normalize_question,
        extract_json_from_response,
    )

    key = normalize_question("What is a Closure?")  # "whatisaclosure"
    data = extract_json_from_response(generator_output)
"""

import json
import re
from typing import Any, Optional


def normalize_question(question: str) -> str:
    """
    Build the de-duplication key for a question.

    Lower-cases the text and drops every non-alphanumeric character, so
    "What is a closure?" and "what is a CLOSURE" collide.

    Args:
        question: Question text

    Returns:
        Normalized key (may be empty)
    """
    if not question:
        return ""
    return "".join(ch for ch in question.lower() if ch.isalnum())


def normalize_source_text(text: str) -> str:
    """
    Normalize raw notes before extraction.

    - Removes null characters
    - Normalizes line endings

    Indentation and blank lines are preserved since both carry meaning
    in markdown (code blocks, paragraphs).

    Args:
        text: Raw text

    Returns:
        Normalized text
    """
    if not text:
        return ""

    text = text.replace("\x00", "")
    return text.replace("\r\n", "\n").replace("\r", "\n")


# Fenced block, optionally tagged as json
FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

# Arrays first: card generators answer with a list of objects
JSON_OPENERS = ("[", "{")


def extract_json_from_response(response_text: str) -> Optional[Any]:
    """
    Extract JSON from generator output that may contain markdown code blocks.

    Accepts raw JSON, JSON inside a fenced block (tagged ``json`` or not)
    and JSON surrounded by chatter. In the last case the first decodable
    array wins over the first decodable object.

    Args:
        response_text: Generator response text

    Returns:
        Parsed JSON value, or None if nothing decodes
    """
    if not response_text:
        return None

    text = response_text.strip()
    fenced = FENCED_JSON_RE.search(text)
    if fenced:
        text = fenced.group(1)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for opener in JSON_OPENERS:
        start = text.find(opener)
        while start != -1:
            try:
                value, _ = decoder.raw_decode(text, start)
                return value
            except json.JSONDecodeError:
                start = text.find(opener, start + 1)

    return None


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Shorten text for terminal output, preferring a word boundary."""
    if not text or len(text) <= max_length:
        return text

    room = max_length - len(suffix)
    if room <= 0:
        return suffix[:max_length]

    head = text[:room]
    words = head.rsplit(" ", 1)
    if len(words) == 2 and len(words[0]) > room * 0.7:
        head = words[0]
    return head + suffix
