# ============================================================================
# src/clinical_extraction/sections/section_detector.py
# ============================================================================
"""
Section Detector

Splits raw discharge-summary text into named clinical windows using
ordered marker search. Each window starts at the earliest start marker
found and ends at the earliest end marker after it, capped at a maximum
length. A missing section is an empty string, never an error.

Also hosts the input-quality gate that runs before any extraction.
"""

import re
import logging
from dataclasses import dataclass, asdict
from typing import List, Dict

from ..utils.text_normalizer import upper_same_length

logger = logging.getLogger(__name__)

HEADER_CHARS = 800

# Any one of these makes the text look clinical
CLINICAL_MARKERS = [
    "DISCHARGE", "DIAGNOSIS", "PATIENT", "TREATMENT", "MEDICATION",
    "HISTORY", "EXAMINATION", "ADMISSION", "HOSPITAL", "COMPLAINT",
    "C/O", "K/C/O", "H/O", "DOA", "DOD", "INJ.", "INJ ",
    "TAB.", "TAB ", "CAP.", "SYP.", "VITALS", "PR:", "BP:",
]


@dataclass(frozen=True)
class SectionRule:
    starts: List[str]
    ends: List[str]
    max_len: int


SECTION_RULES: Dict[str, SectionRule] = {
    "diagnosis": SectionRule(
        ["DIAGNOSIS:", "FINAL DIAGNOSIS", "DX:", "DIAGNOSIS\n"],
        ["PROCEDURE", "CHIEF COMPLAINT", "BRIEF HISTORY", "HISTORY OF"],
        500,
    ),
    "comorbidities": SectionRule(
        ["COMORBIDITIES", "CO-MORBIDITIES", "PAST HISTORY", "K/C/O"],
        ["PROCEDURE", "PHYSICAL EXAMINATION", "SYSTEMIC EXAMINATION", "BRIEF HISTORY"],
        600,
    ),
    "chief_complaint": SectionRule(
        ["CHIEF COMPLAINT", "BRIEF HISTORY", "C/O "],
        ["PAST HISTORY", "HISTORY OF PRESENT", "DIAGNOSIS", "PHYSICAL EXAMINATION"],
        400,
    ),
    "procedures": SectionRule(
        ["PROCEDURE:", "OPERATIVE PROCEDURE", "TREATMENT GIVEN", "SURGERY:"],
        ["MEDICATIONS", "TREATMENT:", "COURSE IN HOSPITAL", "DISCHARGE MEDICATION"],
        800,
    ),
    "medications": SectionRule(
        [
            "DISCHARGE MEDICATION", "MEDICATIONS:", "MEDICATIONS\n",
            "TREATMENT:", "TREATMENT\n", "DRUG PRESCRIBED", "DRUGS:",
            "INJ. ", "INJ.\n", "TAB. METFORMIN", "IV FLUIDS",
        ],
        [
            "CONDITION AT DISCHARGE", "DISCHARGE INSTRUCTION",
            "FOLLOW UP", "FOLLOW-UP", "ADVICE", "REVIEW AFTER",
            "VITALS AT DISCHARGE", "END OF REPORT",
        ],
        3000,
    ),
    "investigations": SectionRule(
        ["INVESTIGATIONS:", "INVESTIGATIONS\n", "LAB REPORTS"],
        ["DIAGNOSIS", "PROCEDURE", "TREATMENT", "COURSE IN HOSPITAL"],
        600,
    ),
    "discharge": SectionRule(
        ["CONDITION AT DISCHARGE", "DISCHARGE INSTRUCTION", "ADVICE AT DISCHARGE"],
        ["FOLLOW UP", "FOLLOW-UP", "REVIEW AFTER", "END OF REPORT"],
        600,
    ),
    "follow_up": SectionRule(
        ["FOLLOW UP", "FOLLOW-UP", "REVIEW AFTER", "REVIEW IN"],
        ["END OF REPORT", "SIGNATURE", "DR."],
        300,
    ),
}

# Vitals is two windows: examination vitals and discharge-condition vitals
VITALS_RULES = [
    SectionRule(
        ["VITALS:", "VITALS\n", "VITALS AT", "PHYSICAL EXAMINATION",
         "PULSE:", "PULSE RATE:", "HEART RATE:"],
        ["SYSTEMIC EXAMINATION", "INVESTIGATIONS", "DIAGNOSIS",
         "PROCEDURE", "MEDICATIONS", "TREATMENT"],
        600,
    ),
    SectionRule(
        ["CONDITION AT DISCHARGE", "VITALS AT DISCHARGE", "DISCHARGE VITALS"],
        ["FOLLOW UP", "FOLLOW-UP", "ADVICE", "END OF REPORT"],
        400,
    ),
]


@dataclass(frozen=True)
class ClinicalSections:
    """
    Named text windows of one document.

    Every field is a substring of the source text (or empty);
    raw is always the full input.
    """
    header: str = ""
    chief_complaint: str = ""
    diagnosis: str = ""
    comorbidities: str = ""
    procedures: str = ""
    medications: str = ""
    vitals: str = ""
    investigations: str = ""
    discharge: str = ""
    follow_up: str = ""
    raw: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class TextQuality:
    is_usable: bool
    char_count: int
    reason: str


def _slice_between(text: str, upper: str, rule: SectionRule) -> str:
    starts = [idx for idx in (upper.find(p) for p in rule.starts) if idx != -1]
    if not starts:
        return ""
    start = min(starts)

    end = start + rule.max_len
    for pattern in rule.ends:
        idx = upper.find(pattern, start + 1)
        if idx != -1 and idx < end:
            end = idx

    return text[start:end].strip()


def extract_clinical_sections(raw: str) -> ClinicalSections:
    """
    Split raw document text into clinical windows.

    Args:
        raw: Full document text (OCR or text layer)

    Returns:
        ClinicalSections; absent sections are empty strings
    """
    text = raw or ""
    upper = upper_same_length(text)

    windows = {name: _slice_between(text, upper, rule) for name, rule in SECTION_RULES.items()}
    vitals = "\n".join(_slice_between(text, upper, rule) for rule in VITALS_RULES).strip()

    sections = ClinicalSections(
        header=text[:HEADER_CHARS],
        vitals=vitals,
        raw=text,
        **windows,
    )

    logger.debug(
        "Section windows: " + ", ".join(f"{k}={len(v)}" for k, v in sections.to_dict().items())
    )
    return sections


def count_usable_chars(text: str) -> int:
    """Printable-ASCII characters after collapsing whitespace."""
    collapsed = re.sub(r"\s+", " ", text or "")
    return len(re.sub(r"[^\x20-\x7E]", "", collapsed).strip())


def has_clinical_content(text: str) -> bool:
    upper = (text or "").upper()
    return any(marker in upper for marker in CLINICAL_MARKERS)


def assess_text_quality(text: str, min_chars: int = 100) -> TextQuality:
    """
    Decide whether text is worth sending to extraction.

    Args:
        text: Source text
        min_chars: Minimum usable characters

    Returns:
        TextQuality(is_usable, char_count, reason)
    """
    char_count = count_usable_chars(text)
    if char_count < min_chars:
        return TextQuality(False, char_count, f"Insufficient text ({char_count} chars)")
    if not has_clinical_content(text):
        return TextQuality(False, char_count, "No clinical content markers found")
    return TextQuality(True, char_count, "OK")
