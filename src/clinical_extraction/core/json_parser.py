# ============================================================================
# src/clinical_extraction/core/json_parser.py
# ============================================================================
"""
Lenient Structured-Output Parser

Model responses are JSON-shaped at best: wrapped in markdown fences,
preceded by chatter, or cut off mid-array when the token budget runs out.

Contract: given a string, return a ParseResult that is exactly one of
- PARSED:   the text decoded as-is (after fence/preamble cleanup)
- REPAIRED: a partial object whose unparsed trailing fields were
            re-closed with empty defaults (named in defaulted_fields)
- FAILED:   nothing usable; data is None and error says why

Malformed data is never returned silently.
"""

import json
import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

from json_repair import repair_json

from ..utils.exceptions import JSONRepairError

logger = logging.getLogger(__name__)

REPAIRED_CONFIDENCE = 65

EMPTY_PATIENT = {
    "name": "", "age": "", "sex": "", "identifier": "", "bloodGroup": "",
    "hospital": "", "ward": "", "admission": "", "discharge": "",
    "attending": "", "chiefComplaint": "",
}

# Top-level field order per response shape; the backward walk relies on it
PATIENT_AND_DIAGNOSES_FIELDS = ("patient", "diagnoses")
PROCEDURES_AND_DISCHARGE_FIELDS = ("procedures", "labValues", "dischargeInstructions", "followUp")
FULL_RECORD_FIELDS = (
    "patient", "diagnoses", "medications", "labValues",
    "procedures", "dischargeInstructions", "followUp",
)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


class ParseStatus(Enum):
    PARSED = "parsed"
    REPAIRED = "repaired"
    FAILED = "failed"


@dataclass
class ParseResult:
    status: ParseStatus
    data: Any = None
    defaulted_fields: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != ParseStatus.FAILED


def strip_fences(text: str) -> str:
    return _FENCE.sub("", text or "").strip()


def _default_for(field_name: str) -> str:
    if field_name == "patient":
        return f'"patient":{json.dumps(EMPTY_PATIENT)}'
    return f'"{field_name}":[]'


def _last_closing_bracket(text: str, start: int, stop: int) -> int:
    """Index of the last bracket in text[start:stop] that closes back to depth <= 0."""
    depth, in_string, escape, cut = 0, False, False, -1
    for j in range(start, stop):
        ch = text[j]
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth <= 0:
                cut = j
    return cut


def _walk_back(text: str, field_order: Sequence[str]) -> Optional[ParseResult]:
    """
    Re-close a truncated object at the last complete top-level field.

    Walks field boundaries from the end: for each pair of adjacent field
    names, finds the last bracket closing the earlier field's value and
    appends the later fields with empty defaults.
    """
    for i in range(len(field_order) - 1, 0, -1):
        prev_idx = text.rfind(f'"{field_order[i - 1]}"')
        next_idx = text.rfind(f'"{field_order[i]}"')
        if prev_idx == -1 or next_idx <= prev_idx:
            continue

        cut = _last_closing_bracket(text, prev_idx, next_idx)
        if cut <= 0:
            continue

        defaulted = list(field_order[i:])
        suffix = ",".join(_default_for(f) for f in defaulted)
        candidate = f'{text[:cut + 1]},{suffix},"overallConfidence":{REPAIRED_CONFIDENCE}}}'
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return ParseResult(ParseStatus.REPAIRED, data, defaulted)
    return None


def _repair(text: str, expected: type) -> Any:
    try:
        repaired = repair_json(text, return_objects=True)
    except Exception as e:
        raise JSONRepairError(f"json_repair failed: {e}") from e
    if not isinstance(repaired, expected) or not repaired:
        raise JSONRepairError(f"json_repair produced {type(repaired).__name__}, expected {expected.__name__}")
    return repaired


def parse_json_object(text: str, field_order: Sequence[str] = FULL_RECORD_FIELDS) -> ParseResult:
    """
    Parse a model response expected to hold one JSON object.

    Args:
        text: Raw model response
        field_order: Top-level keys in the order the prompt asked for them

    Returns:
        ParseResult (PARSED, REPAIRED or FAILED)
    """
    cleaned = strip_fences(text)
    start = cleaned.find("{")
    if start == -1:
        return ParseResult(ParseStatus.FAILED, error="No JSON object in response")
    cleaned = cleaned[start:]

    end = cleaned.rfind("}")
    if end > 0:
        try:
            data = json.loads(cleaned[:end + 1])
            if isinstance(data, dict):
                return ParseResult(ParseStatus.PARSED, data)
        except json.JSONDecodeError as e:
            logger.debug(f"Strict parse failed: {e}")

    walked = _walk_back(cleaned, field_order)
    if walked is not None:
        logger.warning(f"Repaired truncated response, defaulted {walked.defaulted_fields}")
        return walked

    try:
        data = _repair(cleaned, dict)
        logger.warning("Response repaired by json_repair")
        return ParseResult(ParseStatus.REPAIRED, data)
    except JSONRepairError as e:
        logger.warning(f"Could not parse JSON object: {e}")
        return ParseResult(ParseStatus.FAILED, error=str(e))


def parse_json_array(text: str) -> ParseResult:
    """
    Parse a model response expected to hold one JSON array.

    A response that wraps the array in an object ({"medications": [...]})
    is unwrapped to its first list value.
    """
    cleaned = strip_fences(text)
    start, end = cleaned.find("["), cleaned.rfind("]")
    if start != -1 and end > start:
        try:
            data = json.loads(cleaned[start:end + 1])
            if isinstance(data, list):
                return ParseResult(ParseStatus.PARSED, data)
        except json.JSONDecodeError as e:
            logger.debug(f"Strict array parse failed: {e}")

    if start == -1:
        obj = parse_json_object(cleaned, ())
        if obj.ok:
            lists = [v for v in obj.data.values() if isinstance(v, list)]
            if lists:
                return ParseResult(obj.status, lists[0])
        return ParseResult(ParseStatus.FAILED, error="No JSON array in response")

    try:
        data = _repair(cleaned[start:], list)
        logger.warning("Array response repaired by json_repair")
        return ParseResult(ParseStatus.REPAIRED, data)
    except JSONRepairError as e:
        logger.warning(f"Could not parse JSON array: {e}")
        return ParseResult(ParseStatus.FAILED, error=str(e))
