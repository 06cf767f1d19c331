"""
Translation backend interface.

Backends translate one merged paragraph. They raise ``TranslationTimeout``
on transport timeouts and ``TranslationBackendError`` (carrying a short
user-visible message) on any other remote failure; the dispatcher owns
retries, validation and fallback.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..cancellation import CancellationToken
from ..errors import TranslationBackendError, TranslationTimeout
from ..models import OCRLanguage, TranslationLanguage

DEFAULT_SEED = 42
STRICT_RETRY_SEED = 43

# Model names that usually need longer than the short first-attempt timeout.
_SLOW_MODEL_RE = re.compile(
    r"(70b|72b|32b|34b|qwq|deepseek-r1|mixtral)",
    re.IGNORECASE,
)


def is_slow_model(model_name: Optional[str]) -> bool:
    return bool(model_name and _SLOW_MODEL_RE.search(model_name))


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    source_language: OCRLanguage = OCRLanguage.AUTO
    target_language: TranslationLanguage = TranslationLanguage.TRADITIONAL_CHINESE
    strict: bool = False
    seed: int = DEFAULT_SEED
    cancel_token: Optional[CancellationToken] = None

    def as_strict_retry(self) -> "TranslationRequest":
        return TranslationRequest(
            text=self.text,
            source_language=self.source_language,
            target_language=self.target_language,
            strict=True,
            seed=STRICT_RETRY_SEED,
            cancel_token=self.cancel_token,
        )


class TranslationBackend(ABC):
    """One translation engine (local seq2seq, local HTTP LLM, cloud API)."""

    name: str = "backend"
    # Prompt-driven backends can be re-asked with the stricter prompt.
    supports_strict_retry: bool = True
    # Network backends go through the timeout ladder.
    uses_timeout_ladder: bool = True

    @property
    def model_name(self) -> Optional[str]:
        return None

    def is_slow(self) -> bool:
        return is_slow_model(self.model_name)

    async def prepare(self) -> None:
        """Resolve anything the timeout choice depends on before the first call."""

    @abstractmethod
    async def translate(self, request: TranslationRequest, timeout: Optional[float] = None) -> str:
        """Return the raw translated text (already cleaned of prompt echoes)."""

    async def aclose(self) -> None:
        pass


__all__ = [
    "TranslationBackend",
    "TranslationBackendError",
    "TranslationRequest",
    "TranslationTimeout",
    "DEFAULT_SEED",
    "STRICT_RETRY_SEED",
    "is_slow_model",
]
