# ============================================================================
# src/clinical_extraction/llm/client.py
# ============================================================================
"""
Inference Client Factory

Creates inference clients and picks a model from what the server has.

Usage:
    from clinical_extraction.llm.client import create_client, discover_model

    client = create_client({'backend': 'ollama'})
    model = await discover_model(client)
    result = await client.generate("...", model=model)
"""

from typing import Dict, Any, Optional, Sequence, List
import logging

from .base import BaseLLMClient, BackendType
from .ollama_client import OllamaClient, DEFAULT_OLLAMA_MODEL
from ..core.config import get_config
from ..utils.exceptions import ConfigurationError, InferenceServiceError


DEFAULT_BACKEND = "ollama"

DEFAULT_PREFERRED_MODELS = [
    "llama3.1:8b", "llama3.2:3b", "llama3:8b", "llama3", "mistral", "phi3", "gemma",
]

_logger = logging.getLogger(__name__)


def create_client(config: Optional[Dict[str, Any]] = None) -> BaseLLMClient:
    """
    Factory function to create an inference client.

    Configuration is loaded from the environment (.env) and merged with
    any passed config. Passed config values take precedence.

    Args:
        config: Configuration dict with at minimum:
            - backend: "ollama" (default: "ollama")

            Ollama-specific:
            - ollama_host: Server URL (default: http://localhost:11434)
            - ollama_model: Model name (default: llama3.2:3b)

    Returns:
        Configured client instance

    Raises:
        ConfigurationError: If backend type is not supported
    """
    env_config = get_config()
    config = {**env_config, **(config or {})}
    backend = str(config.get('backend', DEFAULT_BACKEND)).lower()

    if backend == BackendType.OLLAMA.value:
        client = OllamaClient(config)
    else:
        raise ConfigurationError(
            f"Unknown backend: {backend}. Supported backends: ollama"
        )

    _logger.info(f"Created {backend} client: {config.get('ollama_host')}")
    return client


def select_model(
    available: Sequence[str],
    preferred: Optional[Sequence[str]] = None,
    fallback: str = DEFAULT_OLLAMA_MODEL,
) -> str:
    """
    Pick a model identifier.

    First available model matching the preference order (case-insensitive
    substring), else the first available model, else the fallback.
    """
    preferred = DEFAULT_PREFERRED_MODELS if preferred is None else preferred
    available = [m for m in available if m]

    for wanted in preferred:
        wanted_lower = wanted.lower()
        for name in available:
            if wanted_lower in name.lower():
                return name

    if available:
        return available[0]
    return fallback


async def discover_model(
    client: BaseLLMClient,
    preferred: Optional[Sequence[str]] = None,
    fallback: Optional[str] = None,
) -> str:
    """
    Ask the server which models exist and pick one.

    Without an explicit preference the client's configured
    preferred_models (PREFERRED_MODELS in the environment) are used.
    Discovery failures are logged and degrade to the fallback identifier.
    """
    fallback = fallback or client.model_name or DEFAULT_OLLAMA_MODEL
    if preferred is None:
        preferred = client.config.get("preferred_models")
    try:
        available: List[str] = await client.list_models()
    except InferenceServiceError as e:
        _logger.warning(f"Model discovery failed, using {fallback}: {e}")
        return fallback

    model = select_model(available, preferred, fallback)
    _logger.info(f"Selected model {model} from {len(available)} available")
    return model


__all__ = [
    "create_client",
    "select_model",
    "discover_model",
    "BaseLLMClient",
    "BackendType",
    "OllamaClient",
    "DEFAULT_BACKEND",
    "DEFAULT_OLLAMA_MODEL",
    "DEFAULT_PREFERRED_MODELS",
]
