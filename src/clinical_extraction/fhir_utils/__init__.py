# ============================================================================
# src/clinical_extraction/fhir_utils/__init__.py
# ============================================================================
"""Validation/scoring engine and FHIR bundle export."""

from .validation_engine import (
    NodeStatus,
    Severity,
    TreeNode,
    ValidationIssue,
    ComplianceItem,
    ValidationReport,
    build_validation_report,
    compute_health_score,
    has_coded_timing,
)
from .builder import FHIRBundleBuilder

__all__ = [
    "NodeStatus",
    "Severity",
    "TreeNode",
    "ValidationIssue",
    "ComplianceItem",
    "ValidationReport",
    "build_validation_report",
    "compute_health_score",
    "has_coded_timing",
    "FHIRBundleBuilder",
]
