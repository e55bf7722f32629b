# ============================================================================
# src/clinical_extraction/llm/__init__.py
# ============================================================================
"""
Inference service interface: clients, model selection, prompts.
"""

from .base import BaseLLMClient, BackendType, GenerationOptions
from .ollama_client import OllamaClient
from .client import create_client, select_model, discover_model
from .prompts import PromptTemplate, PromptTask, ExtractionPrompts, get_prompt

__all__ = [
    "BaseLLMClient",
    "BackendType",
    "GenerationOptions",
    "OllamaClient",
    "create_client",
    "select_model",
    "discover_model",
    "PromptTemplate",
    "PromptTask",
    "ExtractionPrompts",
    "get_prompt",
]
