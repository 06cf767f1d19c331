"""OCR subpackage exposing the engine and its stages."""

from .ctc import CTCResult, decode_auto, greedy_decode
from .engine import OCRResult, OnnxOCREngine
from .postprocessing import BlockAggregator, is_useful_text
from .recognizer import GlyphRecognizer
from .session_cache import OCRSessionManager, OCRSessions, get_session_manager

__all__ = [
    "CTCResult",
    "decode_auto",
    "greedy_decode",
    "OCRResult",
    "OnnxOCREngine",
    "BlockAggregator",
    "is_useful_text",
    "GlyphRecognizer",
    "OCRSessionManager",
    "OCRSessions",
    "get_session_manager",
]
