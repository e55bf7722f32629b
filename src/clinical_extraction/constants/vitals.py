# ============================================================================
# src/clinical_extraction/constants/vitals.py
# ============================================================================
"""
Physiological plausibility ranges for vital signs
"""

from typing import Dict, Tuple

from ._loader import load_table

# {vital: (min, max, unit)}
VITAL_RANGES: Dict[str, Tuple[float, float, str]] = {
    name: (float(r["min"]), float(r["max"]), r["unit"])
    for name, r in load_table("vital_ranges.json").items()
}
