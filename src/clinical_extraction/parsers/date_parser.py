# ============================================================================
# src/clinical_extraction/parsers/date_parser.py
# ============================================================================
"""
Admission / discharge date extraction from labelled header lines.
"""

import re
from typing import Dict

ADMISSION_LABELS = ["DOA", "DATE OF ADMISSION", "ADMISSION DATE"]
DISCHARGE_LABELS = ["DOD", "DATE OF DISCHARGE", "DISCHARGE DATE"]

_DATE = r"\s*[:\-]?\s*(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})"


def _find_date(text: str, label: str) -> str:
    match = re.search(re.escape(label) + _DATE, text, re.IGNORECASE)
    return match.group(1).replace("-", "/") if match else ""


def parse_dates(text: str) -> Dict[str, str]:
    """
    Extract admission and discharge dates.

    Labels are tried in order; the first hit wins. Separators are
    normalised to "/". A field with no labelled date stays "".

    Returns:
        {"admission": str, "discharge": str}
    """
    text = text or ""
    admission = next((d for d in (_find_date(text, l) for l in ADMISSION_LABELS) if d), "")
    discharge = next((d for d in (_find_date(text, l) for l in DISCHARGE_LABELS) if d), "")
    return {"admission": admission, "discharge": discharge}
