"""
Translation dispatcher.

State flow per call:
    Idle -> ScriptCheck -> (Bypassed | Translating) -> Validating
         -> (Accepted | Retrying -> Accepted | Fallback)

The dispatcher never raises to its caller except for cancellation: timeouts
degrade to the source text, backend errors surface as their short message,
and rejected results degrade to a sanitised fallback.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..cancellation import CancellationToken, check_cancelled
from ..errors import OperationAborted, TranslationBackendError, TranslationTimeout
from ..logging_config import format_log_text, get_log_level, setup_module_logger
from ..models import EngineConfig, TranslationEngine
from .base import TranslationBackend, TranslationRequest
from .retry_policy import TimeoutLadder, run_with_deadline
from .text_checks import fallback_text, is_acceptable, needs_strict_retry, should_bypass

logger = setup_module_logger(
    __name__,
    "translation/dispatcher.log",
    level=get_log_level("DISPATCHER_LOG_LEVEL", logging.INFO),
)


class DispatchState(str, Enum):
    BYPASSED = "bypassed"
    ACCEPTED = "accepted"
    RETRY_ACCEPTED = "retry_accepted"
    FALLBACK = "fallback"
    TIMEOUT_FALLBACK = "timeout_fallback"
    BACKEND_ERROR = "backend_error"


@dataclass(frozen=True)
class DispatchResult:
    text: str
    state: DispatchState
    backend: Optional[str] = None
    attempts: int = 0
    duration_ms: float = 0.0


def build_backend(config: EngineConfig) -> TranslationBackend:
    """Instantiate the backend selected by ``config.engine``."""
    if config.engine == TranslationEngine.LOCAL_SEQ2SEQ:
        from .local_seq2seq import LocalSeq2SeqBackend

        return LocalSeq2SeqBackend(model_dir=config.nmt_model_dir)
    if config.engine == TranslationEngine.GEMINI:
        from .cloud_backend import GeminiBackend

        return GeminiBackend(api_key=config.gemini_api_key, model=config.gemini_model)
    from .ollama_backend import OllamaBackend

    return OllamaBackend(api_url=config.ollama_api_url, model=config.ollama_model)


def _backend_key(config: EngineConfig) -> tuple:
    if config.engine == TranslationEngine.LOCAL_SEQ2SEQ:
        return (config.engine, config.nmt_model_dir)
    if config.engine == TranslationEngine.GEMINI:
        return (config.engine, config.gemini_api_key, config.gemini_model)
    return (config.engine, config.ollama_api_url, config.ollama_model)


class TranslationDispatcher:
    """Chooses a backend, escalates timeouts, validates and degrades."""

    def __init__(
        self,
        backend_factory: Callable[[EngineConfig], TranslationBackend] = build_backend,
        ladder_factory: Callable[[bool], TimeoutLadder] = TimeoutLadder.from_env,
    ):
        self._backend_factory = backend_factory
        self._ladder_factory = ladder_factory
        self._backends: dict[tuple, TranslationBackend] = {}
        self.last_metrics: Optional[dict] = None

    def backend_for(self, config: EngineConfig) -> TranslationBackend:
        key = _backend_key(config)
        backend = self._backends.get(key)
        if backend is None:
            backend = self._backend_factory(config)
            self._backends[key] = backend
        return backend

    async def _call(
        self,
        backend: TranslationBackend,
        request: TranslationRequest,
        ladder: Optional[TimeoutLadder],
    ) -> str:
        if ladder is None:
            return await backend.translate(request)
        return await ladder.run(lambda timeout: backend.translate(request, timeout), request.cancel_token)

    async def _strict_retry(
        self,
        backend: TranslationBackend,
        request: TranslationRequest,
        timeout: float,
    ) -> Optional[str]:
        """One stricter re-ask; returns None when it fails in any non-cancel way."""
        retry_request = request.as_strict_retry()
        try:
            return await run_with_deadline(
                lambda t: backend.translate(retry_request, t),
                timeout,
                request.cancel_token,
            )
        except OperationAborted:
            raise
        except (TranslationTimeout, TranslationBackendError) as e:
            logger.warning(f"dispatch: strict retry failed: {e}")
            return None
        except Exception as e:
            logger.error(f"dispatch: strict retry error: {type(e).__name__}: {e}")
            return None

    def _finish(self, result: DispatchResult, source: str) -> DispatchResult:
        self.last_metrics = {
            "state": result.state.value,
            "backend": result.backend,
            "attempts": result.attempts,
            "duration_ms": result.duration_ms,
            "in_len": len(source),
            "out_len": len(result.text),
        }
        logger.info(
            f"dispatch: state={result.state.value} backend={result.backend} "
            f"attempts={result.attempts} ms={result.duration_ms:.0f}"
        )
        log_in = format_log_text(source)
        if log_in is not None:
            logger.info(f'dispatch: in="{log_in}" out="{format_log_text(result.text)}"')
        return result

    async def translate(
        self,
        text: str,
        config: EngineConfig,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DispatchResult:
        start = time.perf_counter()

        def done(out: str, state: DispatchState, backend=None, attempts=0) -> DispatchResult:
            return self._finish(
                DispatchResult(
                    text=out,
                    state=state,
                    backend=backend,
                    attempts=attempts,
                    duration_ms=(time.perf_counter() - start) * 1000,
                ),
                text,
            )

        check_cancelled(cancel_token)
        target = config.target_language
        if should_bypass(text, target):
            return done(text, DispatchState.BYPASSED)

        request = TranslationRequest(
            text=text,
            source_language=config.source_language,
            target_language=target,
            cancel_token=cancel_token,
        )

        try:
            backend = self.backend_for(config)
        except OperationAborted:
            raise
        except Exception as e:
            logger.error(f"dispatch: backend init failed: {type(e).__name__}: {e}")
            return done(fallback_text(text, target), DispatchState.FALLBACK)

        try:
            await backend.prepare()
        except (OperationAborted, asyncio.CancelledError):
            raise
        except TranslationBackendError as e:
            return done(e.user_message, DispatchState.BACKEND_ERROR, backend.name)
        except Exception as e:
            logger.error(f"dispatch: {backend.name} prepare failed: {type(e).__name__}: {e}")
            return done(fallback_text(text, target), DispatchState.FALLBACK, backend.name)

        ladder = self._ladder_factory(backend.is_slow()) if backend.uses_timeout_ladder else None
        attempts = 0
        try:
            result = await self._call(backend, request, ladder)
            attempts = ladder.attempts if ladder else 1
        except (OperationAborted, asyncio.CancelledError):
            raise
        except TranslationTimeout:
            logger.warning(f"dispatch: {backend.name} timed out twice; returning source text")
            return done(text, DispatchState.TIMEOUT_FALLBACK, backend.name, ladder.attempts if ladder else 1)
        except TranslationBackendError as e:
            return done(e.user_message, DispatchState.BACKEND_ERROR, backend.name, ladder.attempts if ladder else 1)
        except Exception as e:
            logger.error(f"dispatch: {backend.name} failed: {type(e).__name__}: {e}")
            result = ""
            attempts = ladder.attempts if ladder else 1

        check_cancelled(cancel_token)
        if is_acceptable(text, result, target):
            return done(result, DispatchState.ACCEPTED, backend.name, attempts)

        logger.info(f"dispatch: result rejected by validation (backend={backend.name})")
        if backend.supports_strict_retry and needs_strict_retry(text, target):
            retry_timeout = ladder.timeouts[-1] if ladder else 30.0
            retried = await self._strict_retry(backend, request, retry_timeout)
            attempts += 1
            check_cancelled(cancel_token)
            if retried is not None and is_acceptable(text, retried, target):
                return done(retried, DispatchState.RETRY_ACCEPTED, backend.name, attempts)

        return done(fallback_text(text, target), DispatchState.FALLBACK, backend.name, attempts)

    async def aclose(self) -> None:
        for backend in self._backends.values():
            await backend.aclose()
        self._backends.clear()
