# ============================================================================
# src/clinical_extraction/parsers/vitals_parser.py
# ============================================================================
"""
Deterministic Vitals Parser

Vitals are short numeric tokens that a language model readily copies from
the wrong place (admission vitals instead of discharge vitals) or invents
outright, so they are only ever parsed here.

Algorithm:
1. Find the LAST vitals marker in the text. Discharge vitals sit near the
   end of a discharge summary, admission vitals near the top.
2. Without a marker, slide a window backward from the end and keep the
   rightmost window with the most vital-sign abbreviations.
3. Inside the window, run one label-anchored regex per vital.
4. Drop readings outside physiological ranges.
"""

import re
import logging
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

from ..utils.text_normalizer import fix_known_ocr_errors, upper_same_length
from ..validators.plausibility import VitalPlausibilityChecker

logger = logging.getLogger(__name__)

VITALS_CONFIDENCE = 95

# Strategy 1: vitals markers, OCR often drops the colon
VITALS_MARKERS = [
    "VITALS:", "VITALS AT", "VITAL SIGNS:", "VITALS-", "VITALS -",
    "VITALS\n", "VITALS\r", "VITALS ",
]
MARKER_WINDOW = 600
SECTION_STOPS = [
    "MEDICATIONS", "TREATMENT", "FOLLOW-UP", "FOLLOW UP",
    "DISCHARGE INS", "ADVICE", "INVESTIGATIONS", "SIGNATURE",
]
# Stops inside the marker's own line are ignored
STOP_SEARCH_OFFSET = 5

# Strategy 2: density scan
VITAL_ABBREVIATIONS = ["PR:", "BP:", "TEMP:", "RR:", "SPO2:", "SP02:", "SPO 2:", "SP O2:"]
SCAN_WINDOW = 500
SCAN_STEP = 50
DENSE_CLUSTER = 4
MIN_CLUSTER = 2

_FLAGS = re.IGNORECASE | re.MULTILINE

# (key, display label, regex) - each regex is anchored on its own label
VITAL_PATTERNS = [
    ("PR", "PR (Pulse Rate)",
     re.compile(r"(?:^|\s|:)(?:PR|PULSE(?:\s*RATE)?)\s*[:\-]\s*(\d{2,3})\s*(BPM|/MIN|BEATS/MIN)?", _FLAGS)),
    ("BP", "BP (Blood Pressure)",
     re.compile(r"(?:^|\s|:)BP\s*[:\-]?\s*(\d{2,3}\s*/\s*\d{2,3})\s*(MM\s*HG|MMHG)?", _FLAGS)),
    ("TEMP", "Temperature",
     re.compile(r"TEMP(?:ERATURE)?\s*[:\-]?\s*(AFEBRILE|[\d.]+\s*°?\s*[FC]?)", _FLAGS)),
    ("RR", "RR (Respiratory Rate)",
     re.compile(r"(?:^|\s|:)RR\s*[:\-]?\s*(\d{1,3})\s*(CYCLES?/\s*MIN|/MIN|BREATHS/?MIN)?", _FLAGS)),
    ("SPO2", "SpO2",
     re.compile(r"(?:(?:^|\s|:)SPO2|SP\s*[O0]?\s*2)\s*[:\-]?\s*(\d{2,3})\s*(%\s*(?:AT\s*RA|ON\s*RA)?)?", _FLAGS)),
]


@dataclass(frozen=True)
class VitalsWindow:
    """Slice of the source text believed to hold discharge vitals."""
    start: int
    end: int
    strategy: str  # "marker" | "density"
    text: str


def _marker_window(text: str, upper: str) -> Optional[VitalsWindow]:
    best_idx, best_marker = -1, ""
    for marker in VITALS_MARKERS:
        idx = upper.rfind(marker)
        if idx > best_idx:
            best_idx, best_marker = idx, marker

    if best_idx < 0:
        return None

    end = min(best_idx + MARKER_WINDOW, len(text))
    search_from = best_idx + len(best_marker) + STOP_SEARCH_OFFSET
    for stop in SECTION_STOPS:
        stop_idx = upper.find(stop, search_from)
        if best_idx < stop_idx < end:
            end = stop_idx

    logger.debug(f"Vitals marker {best_marker!r} at {best_idx}, window ends at {end}")
    return VitalsWindow(best_idx, end, "marker", text[best_idx:end])


def _density_window(text: str, upper: str) -> Optional[VitalsWindow]:
    best_idx, best_count = -1, 0
    i = max(0, len(upper) - SCAN_WINDOW)
    while i >= 0:
        chunk = upper[i:i + SCAN_WINDOW]
        count = sum(1 for abbr in VITAL_ABBREVIATIONS if abbr in chunk)
        if count > best_count:
            best_idx, best_count = i, count
        if best_count >= DENSE_CLUSTER:
            break
        i -= SCAN_STEP

    if best_count < MIN_CLUSTER or best_idx < 0:
        return None

    end = min(best_idx + SCAN_WINDOW, len(text))
    logger.debug(f"Vitals density window at {best_idx} ({best_count} abbreviations)")
    return VitalsWindow(best_idx, end, "density", text[best_idx:end])


def locate_vitals_window(text: str) -> Optional[VitalsWindow]:
    """
    Locate the discharge vitals window.

    Returns:
        VitalsWindow, or None when neither a marker nor a dense cluster
        of vital abbreviations exists.
    """
    if not text:
        return None

    # Same length as text, so offsets index the original
    upper = upper_same_length(text)

    return _marker_window(text, upper) or _density_window(text, upper)


def _accept(key: str, raw: str, checker: VitalPlausibilityChecker) -> bool:
    if key == "PR":
        ok, _ = checker.check("pulse", float(raw))
    elif key == "RR":
        ok, _ = checker.check("respiratory_rate", float(raw))
    elif key == "SPO2":
        ok, _ = checker.check("spo2", float(raw))
    elif key == "BP":
        ok, _ = checker.check_blood_pressure(raw)
    elif key == "TEMP":
        ok, _ = checker.check_temperature(raw)
    else:
        ok = True
    return ok


def parse_vitals(text: str) -> List[Dict[str, Any]]:
    """
    Parse discharge vitals from document text.

    Args:
        text: Source text (typically vitals + discharge + raw windows)

    Returns:
        Up to five {name, value, confidence} dicts. Empty when no vitals
        window is found; never a guess.
    """
    window = locate_vitals_window(text)
    if window is None or len(window.text.strip()) <= 10:
        logger.info("No vitals window found")
        return []

    clean = fix_known_ocr_errors(window.text).upper()
    checker = VitalPlausibilityChecker()
    vitals = []

    for key, label, pattern in VITAL_PATTERNS:
        match = pattern.search(clean)
        if not match:
            logger.debug(f"No match for {key}")
            continue

        raw = match.group(1).strip()
        # Temperature carries its unit inside group 1
        unit = (match.group(2) or "").strip() if pattern.groups >= 2 else ""

        if not _accept(key, raw, checker):
            logger.warning(f"Dropping implausible {key} reading '{raw}'")
            continue

        value = f"{raw} {unit}" if unit else raw
        vitals.append({"name": label, "value": value, "confidence": VITALS_CONFIDENCE})

    logger.info(f"Parsed {len(vitals)} vitals from {window.strategy} window")
    return vitals
