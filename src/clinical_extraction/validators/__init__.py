# ============================================================================
# src/clinical_extraction/validators/__init__.py
# ============================================================================
"""
Source-text cross-validation and vital-sign plausibility checks.
"""

from .cross_validator import cross_validate, numeric_core
from .plausibility import VitalPlausibilityChecker, check_plausibility

__all__ = [
    "cross_validate",
    "numeric_core",
    "VitalPlausibilityChecker",
    "check_plausibility",
]
