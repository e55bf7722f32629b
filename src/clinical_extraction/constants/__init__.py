# ============================================================================
# src/clinical_extraction/constants/__init__.py
# ============================================================================
"""
Convenient imports for all constants
"""

from .ocr_fixups import OCR_FIXUPS, OcrFixup
from .placeholders import PLACEHOLDER_VALUES
from .drug_routes import DRUG_ROUTE_TABLE, ROUTE_KEYWORDS, MUST_CAPTURE_DRUGS, ROUTE_CODES
from .diagnoses import DIAGNOSIS_TABLE, DiagnosisEntry
from .vitals import VITAL_RANGES
from .institutions import INSTITUTION_KEYWORDS
