# ============================================================================
# src/clinical_extraction/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .llm_config import LLMSettings, llm_settings
from .extraction_config import ExtractionSettings, extraction_settings
from .logging_config import LoggingSettings, logging_settings
