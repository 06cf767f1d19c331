"""
Cloud translation backend (Gemini, native google-genai SDK).
"""

import asyncio
import logging
import os
import time
from typing import Any, Optional

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

_STATUS_MESSAGES = {
    400: "Error: bad request",
    401: "Error: invalid API key",
    403: "Error: invalid API key",
    404: "Error: model not found",
    429: "Error: rate limited",
}
GENERIC_FAILURE_MESSAGE = "Error: cloud translation failed"
MISSING_KEY_MESSAGE = "Error: API key not configured"

_HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def _is_timeout(exc: BaseException) -> bool:
    msg = f"{type(exc).__name__} {exc}".lower()
    return "timeout" in msg or "timed out" in msg or "deadline" in msg


def error_message_for_status(status: Optional[int]) -> str:
    return _STATUS_MESSAGES.get(status, GENERIC_FAILURE_MESSAGE)


class GeminiBackend(TranslationBackend):
    """Strict-prompt translation via ``generate_content`` with safety filters disabled."""

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Any = None,
    ):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self._model = model or os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.client = client

    @property
    def model_name(self) -> Optional[str]:
        return self._model

    def _init_client(self):
        """初始化 Gemini 客户端（使用原生 google-genai SDK）。"""
        if self.client is not None:
            return self.client
        if not self.api_key:
            raise TranslationBackendError(MISSING_KEY_MESSAGE)
        from google import genai

        self.client = genai.Client(api_key=self.api_key)
        return self.client

    def _build_config(self, timeout: Optional[float] = None):
        from google.genai import types

        # HttpOptions.timeout is in milliseconds.
        http_options = types.HttpOptions(timeout=int(timeout * 1000)) if timeout else None
        return types.GenerateContentConfig(
            temperature=0.0,
            max_output_tokens=512,
            http_options=http_options,
            safety_settings=[
                types.SafetySetting(category=category, threshold="BLOCK_NONE")
                for category in _HARM_CATEGORIES
            ],
        )

    @staticmethod
    def _extract_text(response) -> str:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            raise TranslationBackendError(f"Error: blocked ({getattr(block_reason, 'name', block_reason)})")

        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise TranslationBackendError("Error: blocked (no candidates)")
        text = getattr(response, "text", None)
        if not text:
            finish = getattr(candidates[0], "finish_reason", None)
            reason = getattr(finish, "name", finish) or "empty response"
            raise TranslationBackendError(f"Error: blocked ({reason})")
        return str(text)

    async def translate(self, request: TranslationRequest, timeout: Optional[float] = None) -> str:
        client = self._init_client()
        if request.strict:
            prompt = build_strict_retry_prompt(request.text, request.target_language)
        else:
            prompt = build_translation_prompt(request.text, request.source_language, request.target_language)
        config = self._build_config(timeout)

        def call_gemini():
            return client.models.generate_content(
                model=self._model,
                contents=prompt,
                config=config,
            )

        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        try:
            response = await loop.run_in_executor(None, call_gemini)
        except TranslationBackendError:
            raise
        except Exception as e:
            if _is_timeout(e):
                raise TranslationTimeout(f"gemini timed out: {e}") from e
            status = _status_of(e)
            logger.error(f"gemini: error model={self._model} status={status} err={type(e).__name__}: {e}")
            raise TranslationBackendError(error_message_for_status(status), status_code=status) from e

        result = clean_llm_output(self._extract_text(response))
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(f"gemini: ok model={self._model} strict={request.strict} ms={duration_ms:.0f} out_len={len(result)}")
        log_output = format_log_text(result)
        if log_output is not None:
            logger.info(f'gemini: out="{log_output}"')
        return result
