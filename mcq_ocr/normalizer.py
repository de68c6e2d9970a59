"""
Text Normalizer
===============
Flattens raw OCR output into a single line and repairs known
character-confusion artifacts before any structural parsing.
"""

from __future__ import annotations

import re

NEWLINE_RUN_PATTERN = re.compile(r"\n+")
WHITESPACE_RUN_PATTERN = re.compile(r"\s+")

# Tesseract regularly reads a capital "I" as a vertical bar
OCR_CHARACTER_FIXES = {
    "|": "I",
}


def normalize_text(text: str) -> str:
    """
    Collapse newlines and whitespace runs to single spaces, apply the
    character fixes and strip the ends. Normalizing twice is a no-op.
    """
    if not text:
        return ""

    cleaned = NEWLINE_RUN_PATTERN.sub(" ", text)
    cleaned = WHITESPACE_RUN_PATTERN.sub(" ", cleaned)
    for wrong, right in OCR_CHARACTER_FIXES.items():
        cleaned = cleaned.replace(wrong, right)
    return cleaned.strip()


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs inside an already extracted fragment."""
    return WHITESPACE_RUN_PATTERN.sub(" ", text).strip()
