"""
Local HTTP text-generation backend (Ollama-compatible ``/api/generate``).
"""

import logging
import threading
import time
from typing import Callable, Optional

import httpx
from dotenv import load_dotenv

from ..logging_config import format_log_text, get_log_level, setup_module_logger
from .base import TranslationBackend, TranslationBackendError, TranslationRequest, TranslationTimeout
from .prompts import build_strict_retry_prompt, build_translation_prompt, clean_llm_output

load_dotenv()

logger = setup_module_logger(
    __name__,
    "translation/backends.log",
    level=get_log_level("BACKEND_LOG_LEVEL", logging.INFO),
)

DEFAULT_GENERATE_URL = "http://localhost:11434/api/generate"
MODEL_LIST_TTL_S = 30.0
MODEL_LIST_TIMEOUT_S = 5.0

NO_MODELS_MESSAGE = "Error: No Ollama models found. Please install one first."
RATE_LIMITED_MESSAGE = "Error: rate limited"
UNREACHABLE_MESSAGE = "Error: Ollama unreachable"

# tags url -> (fetched_at, model names)
_model_cache: dict[str, tuple[float, list[str]]] = {}
_model_cache_lock = threading.Lock()


def normalize_generate_url(url: Optional[str]) -> str:
    """Empty -> local default; a bare base URL gets ``/api/generate`` appended."""
    url = (url or "").strip()
    if not url:
        return DEFAULT_GENERATE_URL
    if url.rstrip("/").endswith("/api/generate"):
        return url.rstrip("/")
    return url.rstrip("/") + "/api/generate"


def tags_url_for(generate_url: str) -> str:
    return generate_url[: -len("/generate")] + "/tags"


def clear_model_cache() -> None:
    with _model_cache_lock:
        _model_cache.clear()


class OllamaBackend(TranslationBackend):
    """Strict-prompt translation through a local text-generation server."""

    name = "ollama"

    def __init__(
        self,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.generate_url = normalize_generate_url(api_url)
        self.tags_url = tags_url_for(self.generate_url)
        self._model = (model or "").strip() or None
        self._client = client
        self._clock = clock

    @property
    def model_name(self) -> Optional[str]:
        return self._model

    async def _post(self, url: str, payload: dict, timeout: Optional[float]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=timeout)
        async with httpx.AsyncClient() as client:
            return await client.post(url, json=payload, timeout=timeout)

    async def _get(self, url: str, timeout: float) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, timeout=timeout)
        async with httpx.AsyncClient() as client:
            return await client.get(url, timeout=timeout)

    async def list_models(self) -> list[str]:
        """Installed model names, cached for a short TTL; [] when the server is unreachable."""
        now = self._clock()
        with _model_cache_lock:
            cached = _model_cache.get(self.tags_url)
        if cached and now - cached[0] < MODEL_LIST_TTL_S:
            return list(cached[1])

        try:
            resp = await self._get(self.tags_url, MODEL_LIST_TIMEOUT_S)
            resp.raise_for_status()
            models = [m.get("name", "") for m in resp.json().get("models", []) if m.get("name")]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"ollama: model list failed: {type(e).__name__}: {e}")
            return []

        with _model_cache_lock:
            _model_cache[self.tags_url] = (now, models)
        return list(models)

    async def resolve_model(self) -> str:
        if self._model:
            return self._model
        models = await self.list_models()
        if not models:
            raise TranslationBackendError(NO_MODELS_MESSAGE)
        self._model = models[0]
        logger.info(f"ollama: no model configured, using {self._model}")
        return self._model

    async def prepare(self) -> None:
        await self.resolve_model()

    def _build_payload(self, model: str, request: TranslationRequest) -> dict:
        if request.strict:
            prompt = build_strict_retry_prompt(request.text, request.target_language)
        else:
            prompt = build_translation_prompt(request.text, request.source_language, request.target_language)
        return {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.0,
                "top_p": 0.1,
                "repeat_penalty": 1.0,
                "num_predict": 512,
                "seed": request.seed,
            },
        }

    async def translate(self, request: TranslationRequest, timeout: Optional[float] = None) -> str:
        model = await self.resolve_model()
        payload = self._build_payload(model, request)
        start = time.perf_counter()
        try:
            resp = await self._post(self.generate_url, payload, timeout)
        except httpx.TimeoutException as e:
            raise TranslationTimeout(f"ollama timed out after {timeout}s") from e
        except httpx.RequestError as e:
            logger.error(f"ollama: request failed: {type(e).__name__}: {e}")
            raise TranslationBackendError(UNREACHABLE_MESSAGE) from e

        duration_ms = (time.perf_counter() - start) * 1000
        if resp.status_code == 404:
            raise TranslationBackendError(f"Error: Model '{model}' not found.", status_code=404)
        if resp.status_code == 429:
            raise TranslationBackendError(RATE_LIMITED_MESSAGE, status_code=429)
        if resp.status_code >= 400:
            logger.error(f"ollama: HTTP {resp.status_code}: {resp.text[:200]}")
            raise TranslationBackendError(f"Error: Ollama {resp.status_code}", status_code=resp.status_code)

        try:
            raw = resp.json().get("response", "")
        except ValueError as e:
            raise TranslationBackendError(f"Error: Ollama {resp.status_code}") from e
        result = clean_llm_output(str(raw or ""))
        logger.info(
            f"ollama: ok model={model} strict={request.strict} ms={duration_ms:.0f} out_len={len(result)}"
        )
        log_output = format_log_text(result)
        if log_output is not None:
            logger.info(f'ollama: out="{log_output}"')
        return result
