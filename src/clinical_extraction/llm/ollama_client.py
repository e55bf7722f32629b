# ============================================================================
# src/clinical_extraction/llm/ollama_client.py
# ============================================================================
"""
Ollama Inference Client

Uses a local Ollama server for inference. Ollama handles model
management and quantization behind a small HTTP API:

- POST /api/generate  (stream false: one JSON body; stream true:
  newline-delimited JSON chunks, the last one carrying "done": true)
- GET  /api/tags      (available models)

Setup:
    1. Install Ollama: https://ollama.ai
    2. Pull a model: ollama pull llama3.2:3b
    3. Start server: ollama serve (or it runs automatically)
"""

import aiohttp
import asyncio
import json
from typing import Dict, Any, Optional, AsyncIterator, List
from datetime import datetime

from .base import BaseLLMClient, BackendType, GenerationOptions
from ..utils.exceptions import (
    InferenceServiceError,
    InferenceTimeoutError,
    InferenceConnectionError,
)


DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama3.2:3b"


class OllamaClient(BaseLLMClient):
    """
    Ollama-based inference client.

    Config options:
        ollama_host: Ollama server URL (default: http://localhost:11434)
        ollama_model: Model name (default: llama3.2:3b)
        temperature, num_ctx, num_predict, stream_num_predict,
        repeat_penalty, top_p: generation defaults
        request_timeout: Per-call timeout in seconds (default: 180)
        stream_timeout: Whole-stream timeout in seconds (default: 300)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.host = self.config.get('ollama_host', DEFAULT_OLLAMA_HOST).rstrip('/')
        self._model_name = self.config.get('ollama_model', DEFAULT_OLLAMA_MODEL)

        self.request_timeout = self.config.get('request_timeout', 180)
        self.stream_timeout = self.config.get('stream_timeout', 300)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

        self.logger.info(f"Initialized Ollama client: {self.host} / {self._model_name}")

    @property
    def backend_type(self) -> BackendType:
        return BackendType.OLLAMA

    @property
    def model_name(self) -> str:
        return self._model_name

    @model_name.setter
    def model_name(self, value: str) -> None:
        self._model_name = value

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is None
            or self._session_loop != current_loop
            or (self._session_loop is not None and self._session_loop.is_closed())
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                try:
                    await self._session.close()
                except Exception as e:
                    self.logger.debug(f"Ignoring error closing stale session: {e}")

            timeout = aiohttp.ClientTimeout(
                total=None,       # Per-call limits are applied with wait_for
                sock_connect=30,
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    def _payload(self, prompt: str, options: GenerationOptions, model: Optional[str], stream: bool) -> Dict[str, Any]:
        return {
            "model": model or self._model_name,
            "prompt": prompt,
            "stream": stream,
            "options": options.to_ollama(),
        }

    async def list_models(self) -> List[str]:
        """
        List models available on the server.

        Bounded by request_timeout.

        Raises:
            InferenceConnectionError: server unreachable
            InferenceTimeoutError: no answer within request_timeout
            InferenceServiceError: non-200 response, dropped connection
                or a body that is not a JSON object
        """
        try:
            session = await self._get_session()

            async def _do_request():
                async with session.get(f"{self.host}/api/tags") as response:
                    if response.status != 200:
                        raise InferenceServiceError(f"Ollama /api/tags returned status {response.status}")
                    return await response.json()

            data = await asyncio.wait_for(_do_request(), timeout=self.request_timeout)

        except asyncio.TimeoutError as e:
            self.logger.error(f"Ollama /api/tags timed out after {self.request_timeout}s")
            raise InferenceTimeoutError(
                f"Listing models timed out after {self.request_timeout}s."
            ) from e
        except aiohttp.ClientConnectorError as e:
            raise InferenceConnectionError(
                f"Cannot connect to Ollama at {self.host}. Is it running? Try: ollama serve"
            ) from e
        except aiohttp.ClientError as e:
            self.logger.error(f"Ollama /api/tags failed: {e}")
            raise InferenceServiceError(f"Listing models failed: {e}") from e
        except ValueError as e:
            raise InferenceServiceError(f"Ollama /api/tags returned malformed JSON: {e}") from e

        if not isinstance(data, dict):
            raise InferenceServiceError(f"Ollama /api/tags returned {type(data).__name__}, expected an object")

        return [m.get('name', '') for m in data.get('models', []) if isinstance(m, dict) and m.get('name')]

    async def health_check(self) -> Dict[str, Any]:
        """
        Check if Ollama server is running and model is available.
        """
        try:
            models = await self.list_models()
        except InferenceConnectionError as e:
            return {
                "healthy": False,
                "backend": "ollama",
                "model": self._model_name,
                "details": str(e)
            }
        except Exception as e:
            return {
                "healthy": False,
                "backend": "ollama",
                "model": self._model_name,
                "details": f"Health check failed: {str(e)}"
            }

        if not any(self._model_name in m for m in models):
            return {
                "healthy": False,
                "backend": "ollama",
                "model": self._model_name,
                "details": f"Model not found. Available: {models}. Run: ollama pull {self._model_name}"
            }

        return {
            "healthy": True,
            "backend": "ollama",
            "model": self._model_name,
            "details": "Ollama server running and model available"
        }

    async def generate(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate response using Ollama (stream: false).

        Args:
            prompt: Input prompt
            options: Sampling options
            model: Model override for this call

        Returns:
            Response dict with text, tokens, timing info
        """
        start_time = datetime.now()
        options = options or GenerationOptions.from_config(self.config)
        model_name = model or self._model_name

        try:
            session = await self._get_session()
            payload = self._payload(prompt, options, model_name, stream=False)

            async def _do_request():
                async with session.post(f"{self.host}/api/generate", json=payload) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise InferenceServiceError(f"Ollama HTTP {response.status}: {error_text}")
                    return await response.json()

            data = await asyncio.wait_for(_do_request(), timeout=self.request_timeout)

        except asyncio.TimeoutError as e:
            self._failure_count += 1
            self.logger.error(
                f"Ollama request timed out after {self.request_timeout}s "
                f"(model={model_name}, num_predict={options.num_predict})"
            )
            raise InferenceTimeoutError(
                f"LLM request timed out after {self.request_timeout}s. "
                "The model may be overloaded or the document too large."
            ) from e
        except aiohttp.ClientConnectorError as e:
            self._failure_count += 1
            raise InferenceConnectionError(
                f"Cannot connect to Ollama at {self.host}. "
                "Make sure Ollama is running: ollama serve"
            ) from e
        except aiohttp.ClientError as e:
            self._failure_count += 1
            self.logger.error(f"Ollama inference failed: {e}")
            raise InferenceServiceError(f"Ollama request failed: {e}") from e
        except InferenceServiceError:
            self._failure_count += 1
            raise
        except ValueError as e:
            self._failure_count += 1
            self.logger.error(f"Ollama returned malformed JSON: {e}")
            raise InferenceServiceError(f"Ollama returned malformed JSON: {e}") from e

        if not isinstance(data, dict):
            self._failure_count += 1
            raise InferenceServiceError(f"Ollama returned {type(data).__name__}, expected an object")

        generated_text = data.get('response', '') or ''
        inference_time = (datetime.now() - start_time).total_seconds()
        prompt_tokens = data.get('prompt_eval_count', 0)
        generated_tokens = data.get('eval_count', 0)

        self._inference_count += 1
        self._total_inference_time += inference_time

        self.logger.info(f"Generated {generated_tokens} tokens in {inference_time:.2f}s")

        return {
            "text": generated_text.strip(),
            "prompt_tokens": prompt_tokens,
            "generated_tokens": generated_tokens,
            "model": model_name,
            "inference_time": inference_time,
        }

    async def generate_stream(
        self,
        prompt: str,
        options: Optional[GenerationOptions] = None,
        model: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a response from Ollama (stream: true).

        Yields text chunks until a chunk carries "done": true. The whole
        stream is bounded by stream_timeout.
        """
        options = options or GenerationOptions.from_config(self.config, streaming=True)
        model_name = model or self._model_name
        payload = self._payload(prompt, options, model_name, stream=True)
        start_time = datetime.now()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.stream_timeout

        try:
            session = await self._get_session()
            async with session.post(f"{self.host}/api/generate", json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise InferenceServiceError(f"Ollama HTTP {response.status}: {error_text}")

                while True:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise asyncio.TimeoutError()
                    line = await asyncio.wait_for(response.content.readline(), timeout=remaining)
                    if not line:
                        break
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        self.logger.debug(f"Skipping non-JSON stream line: {line[:80]!r}")
                        continue

                    text = chunk.get('response')
                    if isinstance(text, str) and text:
                        yield text
                    if chunk.get('done') is True:
                        break

        except asyncio.TimeoutError as e:
            self._failure_count += 1
            self.logger.error(f"Ollama stream timed out after {self.stream_timeout}s (model={model_name})")
            raise InferenceTimeoutError(
                f"LLM stream timed out after {self.stream_timeout}s."
            ) from e
        except aiohttp.ClientConnectorError as e:
            self._failure_count += 1
            raise InferenceConnectionError(
                f"Cannot connect to Ollama at {self.host}. "
                "Make sure Ollama is running: ollama serve"
            ) from e
        except aiohttp.ClientError as e:
            self._failure_count += 1
            self.logger.error(f"Ollama stream failed: {e}")
            raise InferenceServiceError(f"Ollama stream failed: {e}") from e
        except InferenceServiceError:
            self._failure_count += 1
            raise

        self._inference_count += 1
        self._total_inference_time += (datetime.now() - start_time).total_seconds()

    def get_statistics(self) -> Dict[str, Any]:
        """Get inference statistics."""
        stats = super().get_statistics()
        stats["ollama_host"] = self.host
        return stats
