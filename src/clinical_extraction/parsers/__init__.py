# ============================================================================
# src/clinical_extraction/parsers/__init__.py
# ============================================================================
"""
Deterministic field parsers.

These fields are never trusted to the language model: vitals and dates
are parsed from the source text, routes and diagnosis codes come from
curated lookup tables.
"""

from .vitals_parser import VitalsWindow, locate_vitals_window, parse_vitals
from .date_parser import parse_dates
from .route_lookup import canonical_route
from .diagnosis_normalizer import normalize_diagnosis, lookup_diagnosis

__all__ = [
    "VitalsWindow",
    "locate_vitals_window",
    "parse_vitals",
    "parse_dates",
    "canonical_route",
    "normalize_diagnosis",
    "lookup_diagnosis",
]
