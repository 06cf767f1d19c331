"""Translation backends and the dispatcher that drives them."""

from .base import TranslationBackend, TranslationRequest, is_slow_model
from .dispatcher import DispatchResult, DispatchState, TranslationDispatcher, build_backend
from .local_seq2seq import LocalSeq2SeqBackend, LocalSeq2SeqEngine
from .retry_policy import TimeoutLadder
from .text_checks import fallback_text, is_acceptable, sanitize_fallback, should_bypass

__all__ = [
    "TranslationBackend",
    "TranslationRequest",
    "is_slow_model",
    "DispatchResult",
    "DispatchState",
    "TranslationDispatcher",
    "build_backend",
    "LocalSeq2SeqBackend",
    "LocalSeq2SeqEngine",
    "TimeoutLadder",
    "fallback_text",
    "is_acceptable",
    "sanitize_fallback",
    "should_bypass",
]
