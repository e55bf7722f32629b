# ============================================================================
# src/clinical_extraction/utils/__init__.py
# ============================================================================
"""
Shared utilities: text normalisation, exceptions, logging setup.
"""

from .text_normalizer import fix_known_ocr_errors, is_placeholder, clean_field, upper_same_length
from .exceptions import (
    ClinicalExtractionError,
    InputQualityError,
    InferenceServiceError,
    InferenceTimeoutError,
    InferenceConnectionError,
    JSONRepairError,
    ConfigurationError,
)
from .logging import setup_logging, stage_extra, JsonFormatter, PlainFormatter

__all__ = [
    "fix_known_ocr_errors",
    "is_placeholder",
    "clean_field",
    "upper_same_length",
    "ClinicalExtractionError",
    "InputQualityError",
    "InferenceServiceError",
    "InferenceTimeoutError",
    "InferenceConnectionError",
    "JSONRepairError",
    "ConfigurationError",
    "setup_logging",
    "stage_extra",
    "PlainFormatter",
    "JsonFormatter",
]
