# ============================================================================
# src/clinical_extraction/constants/institutions.py
# ============================================================================
"""
Letterhead words that never belong in a patient name
"""

from ._loader import load_table

INSTITUTION_KEYWORDS = tuple(kw.upper() for kw in load_table("institution_keywords.json"))
