# ============================================================================
# src/clinical_extraction/constants/ocr_fixups.py
# ============================================================================
"""
Known OCR Misreads
- Drug-name misspellings, digit insertions near vitals, diagnosis misreads

Loaded from ocr_fixups.json. Order matters: rules run top to bottom.
"""

import re
from dataclasses import dataclass
from typing import List

from ._loader import load_table


@dataclass(frozen=True)
class OcrFixup:
    pattern: "re.Pattern[str]"
    replacement: str


def _compile(rows) -> List[OcrFixup]:
    fixups = []
    for row in rows:
        flags = re.IGNORECASE if row.get("ignore_case") else 0
        fixups.append(OcrFixup(re.compile(row["pattern"], flags), row["replacement"]))
    return fixups


OCR_FIXUPS: List[OcrFixup] = _compile(load_table("ocr_fixups.json"))
