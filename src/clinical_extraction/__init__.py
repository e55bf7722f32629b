# ============================================================================
# src/clinical_extraction/__init__.py
# ============================================================================
"""
Clinical record extraction.

Turns discharge summaries and diagnostic reports into structured clinical
records with a local language model plus deterministic correction rules,
then scores them against a FHIR compliance profile.
"""

__version__ = "0.1.0"
