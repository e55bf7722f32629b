# ============================================================================
# src/clinical_extraction/config/llm_config.py
# ============================================================================
"""
Inference Service Settings (local Ollama)
- Host and fallback model
- Model preference order for discovery
- Generation options
- Per-call timeouts
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class LLMSettings(BaseSettings):
    OLLAMA_HOST: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server"
    )
    OLLAMA_MODEL: str = Field(
        default="llama3.2:3b",
        description="Fallback model when discovery fails or returns nothing"
    )
    PREFERRED_MODELS: List[str] = Field(
        default=["llama3.1:8b", "llama3.2:3b", "llama3:8b", "llama3", "mistral", "phi3", "gemma"],
        description="Model preference order, matched as case-insensitive substrings"
    )
    LLM_TEMPERATURE: float = Field(
        default=0.05,
        ge=0.0, le=2.0,
        description="Sampling temperature (near-deterministic extraction)"
    )
    LLM_NUM_CTX: int = Field(
        default=8192,
        description="Context window size requested from the server"
    )
    LLM_NUM_PREDICT: int = Field(
        default=1800,
        description="Max output tokens for a single extraction pass"
    )
    LLM_STREAM_NUM_PREDICT: int = Field(
        default=2000,
        description="Max output tokens for the streaming single-pass fallback"
    )
    LLM_REPEAT_PENALTY: float = Field(
        default=1.1,
        description="Repetition penalty"
    )
    LLM_TOP_P: float = Field(
        default=0.9,
        ge=0.0, le=1.0,
        description="Nucleus sampling cutoff"
    )
    LLM_REQUEST_TIMEOUT: int = Field(
        default=180,
        description="Timeout for one request/response call (seconds)"
    )
    LLM_STREAM_TIMEOUT: int = Field(
        default=300,
        description="Timeout for the whole streaming call (seconds)"
    )


llm_settings = LLMSettings()
