# ============================================================================
# src/clinical_extraction/constants/_loader.py
# ============================================================================
"""
Shared loader for the JSON lookup tables in knowledge/
"""

import json
from pathlib import Path
from typing import Any

# Path: constants/ -> clinical_extraction/ -> knowledge/
KNOWLEDGE_DIR = Path(__file__).parent.parent / "knowledge"


def load_table(filename: str) -> Any:
    with open(KNOWLEDGE_DIR / filename, encoding="utf-8") as f:
        return json.load(f)
