# ============================================================================
# src/clinical_extraction/constants/drug_routes.py
# ============================================================================
"""
Drug -> Route Tables
- Curated drug-name fragment to route mapping (first match wins)
- Route keyword vocabulary for model-suggested route strings
- Commonly-missed drugs captured directly from the treatment text
"""

import re
from typing import List, Tuple, Dict, Any

from ._loader import load_table

ROUTE_CODES = ("PO", "IV", "IM", "SC", "INH", "unspecified")

DRUG_ROUTE_TABLE: List[Tuple[str, str]] = [
    (row["fragment"].lower(), row["route"]) for row in load_table("drug_routes.json")
]

ROUTE_KEYWORDS: List[Tuple[str, List[str]]] = [
    (row["route"], [kw.upper() for kw in row["keywords"]])
    for row in load_table("route_keywords.json")
]

MUST_CAPTURE_DRUGS: List[Dict[str, Any]] = [
    {
        "pattern": re.compile(row["pattern"], re.IGNORECASE),
        "name": row["name"],
        "route": row["route"],
    }
    for row in load_table("must_capture_drugs.json")
]
