# ============================================================================
# src/clinical_extraction/constants/placeholders.py
# ============================================================================
"""
"No data" tokens the model emits instead of leaving a field blank
"""

from ._loader import load_table

PLACEHOLDER_VALUES = frozenset(v.lower() for v in load_table("placeholders.json"))
