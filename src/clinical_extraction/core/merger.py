# ============================================================================
# src/clinical_extraction/core/merger.py
# ============================================================================
"""
Deterministic Merge

Runs after the model passes and overrides or corrects what the model
produced:

- vitals come only from the regex parser
- empty admission/discharge dates are filled from labelled header dates
- identifier, blood group and ward must be traceable to the source text
- every medication route goes through the canonical drug table
- commonly missed drugs are captured straight from the treatment text
- diagnoses are canonicalised
"""

import logging
from dataclasses import replace
from typing import List, Optional

from .record import ExtractedRecord, Medication, Vital
from ..constants.drug_routes import MUST_CAPTURE_DRUGS
from ..parsers.vitals_parser import parse_vitals
from ..parsers.date_parser import parse_dates
from ..parsers.route_lookup import canonical_route
from ..parsers.diagnosis_normalizer import normalize_diagnosis
from ..sections.section_detector import ClinicalSections
from ..validators.cross_validator import cross_validate

logger = logging.getLogger(__name__)

MUST_CAPTURE_CONFIDENCE = 88
DEFAULT_PASS_CONFIDENCE = 70

# (minimum medication count, confidence) - first tier that applies wins
MEDICATION_CONFIDENCE_TIERS = [(9, 90), (5, 78), (0, 55)]

CROSS_VALIDATED_FIELDS = ("identifier", "blood_group", "ward")


def merge_medications(medications: List[Medication]) -> List[Medication]:
    """Canonicalise routes and drop entries with a near-empty name."""
    merged = []
    for med in medications:
        if len(med.name.strip()) <= 1:
            continue
        merged.append(replace(med, route=canonical_route(med.name, med.route)))
    return merged


def ensure_critical_drugs(medications: List[Medication], source_text: str) -> List[Medication]:
    """
    Append commonly missed drugs found directly in the treatment text.

    A drug is skipped when an existing medication name already contains
    the first word of its canonical name.
    """
    result = list(medications)
    for drug in MUST_CAPTURE_DRUGS:
        first_word = drug["name"].split(" ")[0].lower()
        if any(first_word in m.name.lower() for m in result):
            continue

        match = drug["pattern"].search(source_text or "")
        if not match:
            continue

        dosage = match.group(1).strip() if match.groups() and match.group(1) else ""
        logger.info(f"Captured missed drug {drug['name']} ({dosage or 'no dosage'})")
        result.append(Medication(
            name=drug["name"],
            dosage=dosage,
            route=drug["route"],
            confidence=MUST_CAPTURE_CONFIDENCE,
        ))
    return result


def medication_confidence_tier(count: int) -> int:
    for minimum, confidence in MEDICATION_CONFIDENCE_TIERS:
        if count >= minimum:
            return confidence
    return MEDICATION_CONFIDENCE_TIERS[-1][1]


def compute_overall_confidence(
    pass1_confidence: Optional[int],
    medication_count: int,
    pass3_confidence: Optional[int],
) -> int:
    """Rounded mean of pass 1, the medication-count tier and pass 3."""
    p1 = DEFAULT_PASS_CONFIDENCE if pass1_confidence is None else pass1_confidence
    p3 = DEFAULT_PASS_CONFIDENCE if pass3_confidence is None else pass3_confidence
    total = p1 + medication_confidence_tier(medication_count) + p3
    return int(round(total / 3))


def vitals_source(sections: ClinicalSections) -> str:
    return "\n".join([sections.vitals, sections.discharge, sections.raw])


def date_source(sections: ClinicalSections, prefix_chars: int = 1200) -> str:
    return sections.header + "\n" + sections.raw[:prefix_chars]


def finalize_record(
    record: ExtractedRecord,
    sections: ClinicalSections,
    medication_text: Optional[str] = None,
    date_prefix_chars: int = 1200,
) -> ExtractedRecord:
    """
    Apply the deterministic corrections to a merged record.

    Args:
        record: Record assembled from model output
        sections: Section windows of the same document
        medication_text: Text scanned for must-capture drugs
            (defaults to the raw text)
        date_prefix_chars: Raw-text prefix scanned for labelled dates

    Returns:
        New ExtractedRecord; the input is not modified
    """
    if record.vitals:
        logger.info(f"Discarding {len(record.vitals)} model-produced vitals")
    vitals = [Vital(**v) for v in parse_vitals(vitals_source(sections))]

    patient = replace(record.patient)
    dates = parse_dates(date_source(sections, date_prefix_chars))
    if not patient.admission and dates["admission"]:
        patient.admission = dates["admission"]
    if not patient.discharge and dates["discharge"]:
        patient.discharge = dates["discharge"]

    for attr in CROSS_VALIDATED_FIELDS:
        value = getattr(patient, attr)
        if value and not cross_validate(value, sections.raw):
            logger.warning(f"Dropping unverifiable {attr}: '{value}'")
            setattr(patient, attr, "")

    medications = ensure_critical_drugs(
        merge_medications(record.medications),
        sections.raw if medication_text is None else medication_text,
    )

    diagnoses = []
    for dx in record.diagnoses:
        normalized = normalize_diagnosis(dx.to_dict())
        diagnoses.append(replace(dx, name=normalized["name"], icd=normalized["icd"], snomed=normalized["snomed"]))

    return replace(
        record,
        patient=patient,
        vitals=vitals,
        medications=medications,
        diagnoses=diagnoses,
    )
