# ============================================================================
# src/clinical_extraction/constants/diagnoses.py
# ============================================================================
"""
Diagnosis Canonicalisation Table
- Colloquial / partial names -> canonical name + ICD-10 + SNOMED CT
"""

from dataclasses import dataclass
from typing import List

from ._loader import load_table


@dataclass(frozen=True)
class DiagnosisEntry:
    match: str
    name: str
    icd: str
    snomed: str


DIAGNOSIS_TABLE: List[DiagnosisEntry] = [
    DiagnosisEntry(
        match=row["match"].lower(),
        name=row["name"],
        icd=row["icd"],
        snomed=row["snomed"],
    )
    for row in load_table("diagnoses.json")
]
