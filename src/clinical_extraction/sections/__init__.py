# ============================================================================
# src/clinical_extraction/sections/__init__.py
# ============================================================================
"""
Section detection and input-quality gate.
"""

from .section_detector import (
    ClinicalSections,
    TextQuality,
    extract_clinical_sections,
    count_usable_chars,
    has_clinical_content,
    assess_text_quality,
)

__all__ = [
    "ClinicalSections",
    "TextQuality",
    "extract_clinical_sections",
    "count_usable_chars",
    "has_clinical_content",
    "assess_text_quality",
]
