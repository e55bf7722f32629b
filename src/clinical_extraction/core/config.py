# ============================================================================
# src/clinical_extraction/core/config.py
# ============================================================================
"""
Centralized Configuration Management

Loads a .env file (if present) and flattens the settings objects into the
plain dict that the inference client factory consumes.

Usage:
    from clinical_extraction.core.config import get_config

    config = get_config()
    client = create_client({**config, 'ollama_model': 'mistral'})
"""

from pathlib import Path
from typing import Dict, Any
from functools import lru_cache

from dotenv import load_dotenv

from ..config.llm_config import LLMSettings
from ..config.extraction_config import ExtractionSettings
from ..config.logging_config import LoggingSettings


def _load_dotenv() -> bool:
    """Load .env from the project root, then the current directory."""
    env_path = Path(__file__).parent.parent.parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
        return True

    cwd_env = Path.cwd() / '.env'
    if cwd_env.exists():
        load_dotenv(cwd_env)
        return True

    return False


@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    Get configuration dictionary.

    Cached - call once and pass to components.
    """
    _load_dotenv()
    llm = LLMSettings()
    extraction = ExtractionSettings()
    logging_cfg = LoggingSettings()

    return {
        # Logging
        'log_level': logging_cfg.LOG_LEVEL,
        'log_json': logging_cfg.LOG_JSON,

        # Inference service
        'backend': 'ollama',
        'ollama_host': llm.OLLAMA_HOST,
        'ollama_model': llm.OLLAMA_MODEL,
        'preferred_models': list(llm.PREFERRED_MODELS),
        'temperature': llm.LLM_TEMPERATURE,
        'num_ctx': llm.LLM_NUM_CTX,
        'num_predict': llm.LLM_NUM_PREDICT,
        'stream_num_predict': llm.LLM_STREAM_NUM_PREDICT,
        'repeat_penalty': llm.LLM_REPEAT_PENALTY,
        'top_p': llm.LLM_TOP_P,
        'request_timeout': llm.LLM_REQUEST_TIMEOUT,
        'stream_timeout': llm.LLM_STREAM_TIMEOUT,

        # Extraction
        'min_usable_chars': extraction.MIN_USABLE_CHARS,
        'progress_min_interval': extraction.PROGRESS_MIN_INTERVAL,
    }


def reload_config() -> Dict[str, Any]:
    """Reload configuration from environment."""
    get_config.cache_clear()
    return get_config()
