# ============================================================================
# src/clinical_extraction/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for clinical record extraction.

Only input-quality and inference-service failures ever reach the caller.
Parse failures and field-level plausibility failures are recovered inside
the pipeline and never raised past it.
"""


class ClinicalExtractionError(Exception):
    """Base exception for all clinical extraction errors."""
    pass


class InputQualityError(ClinicalExtractionError):
    """Source text has too little usable clinical content to extract from."""

    def __init__(self, reason: str, char_count: int = 0):
        self.reason = reason
        self.char_count = char_count
        super().__init__(f"{reason} ({char_count} usable characters)")


class InferenceServiceError(ClinicalExtractionError):
    """Inference service call failed (non-success status, bad payload)."""
    pass


class InferenceTimeoutError(InferenceServiceError):
    """Inference service call exceeded its per-call timeout."""
    pass


class InferenceConnectionError(InferenceServiceError):
    """Inference service could not be reached."""
    pass


class JSONRepairError(ClinicalExtractionError):
    """Model output could not be coerced into JSON."""
    pass


class ConfigurationError(ClinicalExtractionError):
    """Invalid configuration."""
    pass
