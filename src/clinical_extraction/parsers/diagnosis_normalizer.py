# ============================================================================
# src/clinical_extraction/parsers/diagnosis_normalizer.py
# ============================================================================
"""
Diagnosis canonicalisation: colloquial or partial names mapped to a
canonical name with ICD-10 and SNOMED CT codes.
"""

import re
from typing import Optional, Dict, Any

from ..constants.diagnoses import DIAGNOSIS_TABLE, DiagnosisEntry

# Abbreviation keys ("t2dm", "copd") must match as whole words
_SHORT_KEY = 4


def _matches(key: str, name: str) -> bool:
    if len(key) <= _SHORT_KEY:
        return re.search(rf"\b{re.escape(key)}\b", name) is not None
    return key in name


def lookup_diagnosis(name: str) -> Optional[DiagnosisEntry]:
    """First table entry matching name (case-insensitive), or None."""
    lowered = (name or "").lower()
    if not lowered:
        return None
    for entry in DIAGNOSIS_TABLE:
        if _matches(entry.match, lowered):
            return entry
    return None


def normalize_diagnosis(diagnosis: Dict[str, Any]) -> Dict[str, Any]:
    """
    Canonicalise a diagnosis dict ({name, icd, snomed, confidence}).

    A table match replaces name, icd and snomed; other keys are kept.
    No match returns the input unchanged.
    """
    entry = lookup_diagnosis(diagnosis.get("name", ""))
    if entry is None:
        return diagnosis
    return {**diagnosis, "name": entry.name, "icd": entry.icd, "snomed": entry.snomed}
