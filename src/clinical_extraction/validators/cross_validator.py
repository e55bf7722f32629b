# ============================================================================
# src/clinical_extraction/validators/cross_validator.py
# ============================================================================
"""
Cross-Validator

Checks that a value the model asserted actually occurs in the source
document, either verbatim or through its numeric core. Used to blank
identifier-like patient fields that cannot be traced back to the text.
"""

import re
from typing import Optional

# Leading bare number or n/n ratio ("B+ 12/3" -> "12/3", "Ward 7A" -> "7")
_NUMERIC_CORE = re.compile(r"(\d+/\d+|\d+\.?\d*)")

# Values this short are accepted without checking
MIN_VERIFIABLE_LENGTH = 3


def numeric_core(value: str) -> Optional[str]:
    """Return the first number or n/n ratio in value, or None."""
    match = _NUMERIC_CORE.search(value or "")
    return match.group(1) if match else None


def cross_validate(value: str, source_text: str) -> bool:
    """
    Verify that value can be traced back to source_text.

    Args:
        value: Candidate field value (already sanitized)
        source_text: Full source document text

    Returns:
        True when the value is too short to verify, occurs verbatim
        (case-insensitive), or its numeric core occurs in the source.
    """
    if not value or len(value.strip()) < MIN_VERIFIABLE_LENGTH:
        return True
    if not source_text:
        return False

    if value.strip().lower() in source_text.lower():
        return True

    core = numeric_core(value)
    if core and core in source_text:
        return True

    return False
