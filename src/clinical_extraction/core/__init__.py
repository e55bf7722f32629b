# ============================================================================
# src/clinical_extraction/core/__init__.py
# ============================================================================
"""
Core components: record types, parsing, sanitisation, merge,
orchestration and the conversion pipeline.
"""

from .record import (
    PatientInfo,
    Diagnosis,
    Medication,
    Vital,
    LabValue,
    Procedure,
    LabeledItem,
    ExtractedRecord,
)
from .config import get_config, reload_config
from .json_parser import ParseStatus, ParseResult, parse_json_object, parse_json_array
from .sanitizer import sanitize_extracted, sanitize_medications, is_valid_patient_name
from .merger import finalize_record, ensure_critical_drugs, merge_medications
from .progress import ProgressChannel, ProgressEvent

# Orchestration (the conversion pipeline lives in core.pipeline; it depends on fhir_utils)
from .orchestrator import ExtractionOrchestrator, ExtractionStage, PassOutcome

__all__ = [
    "PatientInfo",
    "Diagnosis",
    "Medication",
    "Vital",
    "LabValue",
    "Procedure",
    "LabeledItem",
    "ExtractedRecord",
    "get_config",
    "reload_config",
    "ParseStatus",
    "ParseResult",
    "parse_json_object",
    "parse_json_array",
    "sanitize_extracted",
    "sanitize_medications",
    "is_valid_patient_name",
    "finalize_record",
    "ensure_critical_drugs",
    "merge_medications",
    "ProgressChannel",
    "ProgressEvent",
    "ExtractionOrchestrator",
    "ExtractionStage",
    "PassOutcome",
]
