# ============================================================================
# src/clinical_extraction/utils/text_normalizer.py
# ============================================================================
"""
Text Normalizer

Repairs known OCR misreads and strips "no data" placeholder tokens that
language models emit instead of leaving a field empty.

The fixup rules and the placeholder vocabulary live in knowledge/*.json
so they can be extended without touching this module.
"""

from typing import Any

from ..constants.ocr_fixups import OCR_FIXUPS
from ..constants.placeholders import PLACEHOLDER_VALUES


def fix_known_ocr_errors(text: str) -> str:
    """
    Apply the ordered OCR fixup rules to text.

    Rules run top to bottom; a later rule may rely on an earlier one
    having already rewritten the text. Unmatched text is returned as-is.
    """
    if not text:
        return text
    for fixup in OCR_FIXUPS:
        text = fixup.pattern.sub(fixup.replacement, text)
    return text


def is_placeholder(value: Any) -> bool:
    """True for empty/whitespace strings and known "no data" tokens."""
    if value is None:
        return True
    stripped = str(value).strip()
    if not stripped:
        return True
    return stripped.lower() in PLACEHOLDER_VALUES


def clean_field(value: Any) -> str:
    """Return "" for placeholders, otherwise the OCR-fixed, stripped value."""
    if is_placeholder(value):
        return ""
    return fix_known_ocr_errors(str(value).strip())


def upper_same_length(text: str) -> str:
    """
    Upper-case text without changing its length.

    Characters whose upper-case form is longer ("ß" -> "SS") are kept
    as-is, so offsets found in the result index the original text.
    """
    return "".join(ch if len(ch.upper()) != 1 else ch.upper() for ch in text or "")
