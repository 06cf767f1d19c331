"""Detection / recognition session cache keyed by the active OCR language."""

import contextlib
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from ...config import get_settings
from ...models import OCRLanguage
from ..dictionary import DictionaryLoader, LabelTable, realign_labels
from ..inference import InferenceSession, onnx_session_factory

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], InferenceSession]

# Recognition model directory per OCR language.
_REC_MODEL_DIRS = {
    OCRLanguage.AUTO: "ch",
    OCRLanguage.ENGLISH: "en",
    OCRLanguage.JAPANESE: "japan",
    OCRLanguage.KOREAN: "korean",
    OCRLanguage.TRADITIONAL_CHINESE: "chinese_cht",
    OCRLanguage.SIMPLIFIED_CHINESE: "ch",
}


@dataclass
class OCRSessions:
    language: OCRLanguage
    detector: InferenceSession
    recognizer: InferenceSession
    labels: LabelTable


@dataclass(frozen=True)
class OCRModelPaths:
    detector: Path
    recognizer: Path
    dictionary: Path


def declared_class_count(session: InferenceSession, table_size: int) -> Optional[int]:
    """Pick the declared trailing output axis closest to the table size, if any is static."""
    shape = list(session.output_shape(0) or ())
    candidates = [d for d in shape[-2:] if isinstance(d, int) and d > 0]
    if not candidates:
        return None
    return min(candidates, key=lambda d: abs(d - table_size))


def _close_quietly(*sessions: Optional[InferenceSession]) -> None:
    for session in sessions:
        if session is None:
            continue
        try:
            session.close()
        except Exception as e:
            logger.warning(f"session close failed: {e}")


class OCRSessionManager:
    """
    Owns the loaded sessions and label table for one OCR language at a time.

    ``ensure_loaded`` disposes the previous language before loading the next
    one; ``use`` holds the lock for the duration of an OCR pass so no caller
    sees a half-switched state.
    """

    def __init__(
        self,
        model_root: Optional[str] = None,
        session_factory: Optional[SessionFactory] = None,
        dictionary_loader: Optional[DictionaryLoader] = None,
    ):
        self.model_root = Path(model_root or get_settings().model_root)
        self._factory = session_factory or onnx_session_factory
        self._loader = dictionary_loader or DictionaryLoader()
        self._lock = threading.RLock()
        self._sessions: Optional[OCRSessions] = None
        self.load_count = 0

    @property
    def active_language(self) -> Optional[OCRLanguage]:
        sessions = self._sessions
        return sessions.language if sessions else None

    def paths_for(self, language: OCRLanguage) -> OCRModelPaths:
        lang_dir = self.model_root / "ocr" / _REC_MODEL_DIRS.get(language, "ch")
        return OCRModelPaths(
            detector=self.model_root / "ocr" / "det.onnx",
            recognizer=lang_dir / "rec.onnx",
            dictionary=lang_dir / "dict.txt",
        )

    def ensure_loaded(self, language: OCRLanguage) -> OCRSessions:
        with self._lock:
            if self._sessions is not None and self._sessions.language == language:
                return self._sessions
            self.unload()

            paths = self.paths_for(language)
            logger.info(f"loading OCR sessions for {language.value}: {paths.recognizer}")
            detector = recognizer = None
            try:
                detector = self._factory(str(paths.detector))
                recognizer = self._factory(str(paths.recognizer))
                labels = self._loader.load(paths.dictionary)
                labels = realign_labels(labels, declared_class_count(recognizer, len(labels)))
            except Exception:
                _close_quietly(detector, recognizer)
                raise

            self._sessions = OCRSessions(
                language=language,
                detector=detector,
                recognizer=recognizer,
                labels=labels,
            )
            self.load_count += 1
            return self._sessions

    def unload(self) -> None:
        with self._lock:
            sessions = self._sessions
            self._sessions = None
            if sessions is None:
                return
            _close_quietly(sessions.detector, sessions.recognizer)
            logger.info(f"unloaded OCR sessions for {sessions.language.value}")

    @contextlib.contextmanager
    def use(self, language: OCRLanguage) -> Iterator[OCRSessions]:
        with self._lock:
            yield self.ensure_loaded(language)


_default_manager: Optional[OCRSessionManager] = None
_default_lock = threading.Lock()


def get_session_manager() -> OCRSessionManager:
    global _default_manager
    if _default_manager is None:
        with _default_lock:
            if _default_manager is None:
                _default_manager = OCRSessionManager()
    return _default_manager
