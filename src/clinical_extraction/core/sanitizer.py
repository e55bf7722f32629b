# ============================================================================
# src/clinical_extraction/core/sanitizer.py
# ============================================================================
"""
Record Sanitizer

Turns whatever the model returned (after JSON decoding) into a canonical
ExtractedRecord:

- every string: OCR fixups, then placeholder stripping
- every confidence: int clamped to [0, 100], 70 when absent or non-numeric
- array entries missing their required key(s) are dropped, not kept as stubs
- letterhead text in the patient name is rejected
- lab values that only defer elsewhere ("AS ENCLOSED") are dropped

Sanitising an already sanitised record is a no-op.
"""

import math
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .record import (
    ExtractedRecord,
    PatientInfo,
    Diagnosis,
    Medication,
    Vital,
    LabValue,
    Procedure,
    LabeledItem,
)
from ..constants.institutions import INSTITUTION_KEYWORDS
from ..parsers.route_lookup import canonical_route
from ..parsers.diagnosis_normalizer import normalize_diagnosis
from ..utils.text_normalizer import clean_field

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 70
MAX_NAME_LENGTH = 60
MAX_CAPS_WORDS = 4
DEFERRAL_PHRASES = ("ENCLOSED", "ATTACHED")

T = TypeVar("T")


def is_valid_patient_name(name: str) -> bool:
    """
    Reject names that are really letterhead text.

    A name fails if it contains an institution keyword, is longer than
    60 characters, or is an all-caps run of more than four words.
    """
    if not name or not name.strip():
        return False
    stripped = name.strip()
    upper = stripped.upper()
    if any(kw in upper for kw in INSTITUTION_KEYWORDS):
        return False
    if len(stripped) > MAX_NAME_LENGTH:
        return False
    if len(stripped.split()) > MAX_CAPS_WORDS and stripped == upper:
        return False
    return True


def _str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return clean_field(str(value))


def _confidence(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(number):
        return DEFAULT_CONFIDENCE
    return int(round(min(100.0, max(0.0, number))))


def _status(value: Any) -> str:
    text = str(value if value is not None else "N").strip().upper()
    if text in ("H", "HIGH"):
        return "H"
    if text in ("L", "LOW"):
        return "L"
    return "N"


def _obj(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _array(value: Any, build: Callable[[Dict[str, Any]], Optional[T]]) -> List[T]:
    if not isinstance(value, list):
        return []
    items = []
    for element in value:
        item = build(_obj(element))
        if item is not None:
            items.append(item)
    return items


def _patient(raw: Dict[str, Any]) -> PatientInfo:
    name = _str(raw.get("name"))
    if name and not is_valid_patient_name(name):
        logger.warning(f"Rejecting patient name that looks like letterhead: '{name}'")
        name = ""

    identifier = raw.get("identifier")
    if identifier is None:
        identifier = raw.get("abha")

    return PatientInfo(
        name=name,
        age=_str(raw.get("age")),
        sex=_str(raw.get("sex")),
        identifier=_str(identifier),
        blood_group=_str(raw.get("bloodGroup")),
        hospital=_str(raw.get("hospital")),
        ward=_str(raw.get("ward")),
        admission=_str(raw.get("admission")),
        discharge=_str(raw.get("discharge")),
        attending=_str(raw.get("attending")),
        chief_complaint=_str(raw.get("chiefComplaint")),
    )


def _diagnosis(raw: Dict[str, Any]) -> Optional[Diagnosis]:
    name = _str(raw.get("name"))
    if not name:
        return None
    normalized = normalize_diagnosis({
        "name": name,
        "icd": _str(raw.get("icd")),
        "snomed": _str(raw.get("snomed")),
    })
    return Diagnosis(
        name=normalized["name"],
        icd=normalized["icd"],
        snomed=normalized["snomed"],
        confidence=_confidence(raw.get("confidence")),
    )


def _medication(raw: Dict[str, Any]) -> Optional[Medication]:
    name = _str(raw.get("name"))
    if not name:
        return None
    return Medication(
        name=name,
        dosage=_str(raw.get("dosage")),
        route=canonical_route(name, _str(raw.get("route"))),
        confidence=_confidence(raw.get("confidence")),
    )


def _vital(raw: Dict[str, Any]) -> Optional[Vital]:
    name, value = _str(raw.get("name")), _str(raw.get("value"))
    if not (name and value):
        return None
    return Vital(name=name, value=value, confidence=_confidence(raw.get("confidence")))


def _lab_value(raw: Dict[str, Any]) -> Optional[LabValue]:
    test, value = _str(raw.get("test")), _str(raw.get("value"))
    if not (test and value):
        return None
    if any(phrase in value.upper() for phrase in DEFERRAL_PHRASES):
        logger.debug(f"Dropping deferred lab value for '{test}': '{value}'")
        return None
    return LabValue(
        test=test,
        value=value,
        unit=_str(raw.get("unit")),
        ref=_str(raw.get("ref")),
        status=_status(raw.get("status")),
        loinc=_str(raw.get("loinc")),
        confidence=_confidence(raw.get("confidence")),
    )


def _procedure(raw: Dict[str, Any]) -> Optional[Procedure]:
    name = _str(raw.get("name"))
    if not name:
        return None
    return Procedure(
        name=name,
        snomed=_str(raw.get("snomed")),
        day=_str(raw.get("day")),
        findings=_str(raw.get("findings")),
        confidence=_confidence(raw.get("confidence")),
    )


def _labeled(raw: Dict[str, Any]) -> Optional[LabeledItem]:
    label, value = _str(raw.get("label")), _str(raw.get("value"))
    if not (label and value):
        return None
    return LabeledItem(label=label, value=value, confidence=_confidence(raw.get("confidence")))


def sanitize_extracted(raw: Any) -> ExtractedRecord:
    """
    Coerce a decoded model response into an ExtractedRecord.

    Args:
        raw: Any JSON-like value; non-dicts are treated as {}

    Returns:
        Canonical ExtractedRecord (possibly entirely empty)
    """
    data = _obj(raw)
    return ExtractedRecord(
        patient=_patient(_obj(data.get("patient"))),
        diagnoses=_array(data.get("diagnoses"), _diagnosis),
        medications=_array(data.get("medications"), _medication),
        vitals=_array(data.get("vitals"), _vital),
        lab_values=_array(data.get("labValues"), _lab_value),
        procedures=_array(data.get("procedures"), _procedure),
        discharge_instructions=_array(data.get("dischargeInstructions"), _labeled),
        follow_up=_array(data.get("followUp"), _labeled),
        overall_confidence=_confidence(data.get("overallConfidence")),
    )


def sanitize_medications(raw: Any) -> List[Medication]:
    """Sanitise a bare medication array (medications pass output)."""
    return _array(raw, _medication)
