# ============================================================================
# src/clinical_extraction/llm/base.py
# ============================================================================
"""
Base Inference Client Interface

Defines the abstract interface every inference backend implements.
The pipeline only needs text back that is JSON-shaped after light
cleanup; it does not depend on a particular model family.

Supported backends:
- ollama: local Ollama server
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, AsyncIterator, List
from enum import Enum
import logging


class BackendType(Enum):
    """Supported inference backends."""
    OLLAMA = "ollama"


@dataclass
class GenerationOptions:
    """Sampling options sent with every call."""
    temperature: float = 0.05
    num_ctx: int = 8192
    num_predict: int = 1800
    repeat_penalty: float = 1.1
    top_p: float = 0.9

    def to_ollama(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any], streaming: bool = False) -> "GenerationOptions":
        num_predict_key = "stream_num_predict" if streaming else "num_predict"
        defaults = cls()
        return cls(
            temperature=config.get("temperature", defaults.temperature),
            num_ctx=config.get("num_ctx", defaults.num_ctx),
            num_predict=config.get(num_predict_key, 2000 if streaming else defaults.num_predict),
            repeat_penalty=config.get("repeat_penalty", defaults.repeat_penalty),
            top_p=config.get("top_p", defaults.top_p),
        )


class BaseLLMClient(ABC):
    """
    Abstract base class for inference clients.

    All backends must implement:
    - generate(): one request/response completion
    - generate_stream(): incremental completion
    - list_models(): model discovery
    - health_check(): verify backend is available
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

        self._inference_count = 0
        self._total_inference_time = 0.0
        self._failure_count = 0

    @property
    @abstractmethod
    def backend_type(self) -> BackendType:
        """Return the backend type."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate a response from prompt.

        Args:
            prompt: Input text prompt
            options: Sampling options (defaults from config)
            model: Override the client's model for this call

        Returns:
            {
                "text": str,              # Generated text
                "prompt_tokens": int,     # Input token count
                "generated_tokens": int,  # Output token count
                "model": str,             # Model identifier
                "inference_time": float   # Seconds
            }

        Raises:
            InferenceServiceError: non-success response
            InferenceTimeoutError: per-call timeout exceeded
            InferenceConnectionError: server unreachable
        """
        pass

    @abstractmethod
    def generate_stream(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
        model: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a response as text chunks.

        The iterator ends when the server signals completion.
        Raises the same errors as generate().
        """
        pass

    @abstractmethod
    async def list_models(self) -> List[str]:
        """Return identifiers of models currently available on the backend."""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """
        Check if the backend is available and ready.

        Returns:
            {
                "healthy": bool,
                "backend": str,
                "model": str,
                "details": str
            }
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    def get_statistics(self) -> Dict[str, Any]:
        """Get inference statistics."""
        avg_time = (
            self._total_inference_time / self._inference_count
            if self._inference_count > 0
            else 0.0
        )

        return {
            "backend": self.backend_type.value,
            "model": self.model_name,
            "inference_count": self._inference_count,
            "failure_count": self._failure_count,
            "total_inference_time": self._total_inference_time,
            "average_inference_time": avg_time,
        }
