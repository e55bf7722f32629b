# ============================================================================
# src/clinical_extraction/config/extraction_config.py
# ============================================================================
"""
Extraction Settings
- Input quality gate
- Per-section prompt budgets (characters)
- Multi-pass path selection
- Progress rate limit
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ExtractionSettings(BaseSettings):
    MIN_USABLE_CHARS: int = Field(
        default=100,
        description="Below this many printable characters the document is rejected"
    )

    # Prompt budgets
    HEADER_BUDGET: int = Field(default=800, description="Header window chars in pass 1")
    DIAGNOSIS_BUDGET: int = Field(default=500, description="Diagnosis window chars in pass 1")
    COMORBIDITIES_BUDGET: int = Field(default=400, description="Comorbidity window chars in pass 1")
    CHIEF_COMPLAINT_BUDGET: int = Field(default=300, description="Chief complaint chars in pass 1")
    MEDICATIONS_BUDGET: int = Field(default=3500, description="Treatment text chars in pass 2")
    PROCEDURES_BUDGET: int = Field(default=700, description="Procedure window chars in pass 3")
    INVESTIGATIONS_BUDGET: int = Field(default=400, description="Investigations chars in pass 3")
    DISCHARGE_BUDGET: int = Field(default=500, description="Discharge condition chars in pass 3")
    FOLLOW_UP_BUDGET: int = Field(default=300, description="Follow-up chars in pass 3")
    SINGLE_PASS_BUDGET: int = Field(default=4000, description="Full-text chars for the fallback pass")
    DIAGNOSTIC_REPORT_BUDGET: int = Field(default=6000, description="Full-text chars for lab/imaging reports")

    # Path selection
    MEDICATION_SECTION_MIN_CHARS: int = Field(
        default=100,
        description="Shorter medication windows fall back to the raw text in pass 2"
    )
    MULTIPASS_MIN_MEDICATION_CHARS: int = Field(
        default=50,
        description="Medication window longer than this enables the multi-pass path"
    )
    MULTIPASS_MIN_DIAGNOSIS_CHARS: int = Field(
        default=10,
        description="Diagnosis window longer than this enables the multi-pass path"
    )
    DATE_HEADER_PREFIX_CHARS: int = Field(
        default=1200,
        description="Raw-text prefix scanned by the date parser together with the header"
    )

    PROGRESS_MIN_INTERVAL: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum seconds between coalesced streaming progress events"
    )


extraction_settings = ExtractionSettings()
