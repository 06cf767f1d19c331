"""
ONNX OCR engine: detect -> recognize (per box) -> aggregate.

同步实现，由 OCRModule 放入线程池执行；取消信号在检测前与每次识别前检查。
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ...cancellation import CancellationToken, check_cancelled
from ...errors import OperationAborted
from ...models import OCRLanguage, RecognizedBlock, TextRegion
from ..text_detector import TextRegionDetector, full_image_region
from .postprocessing import BlockAggregator
from .recognizer import GlyphRecognizer
from .session_cache import OCRSessionManager, OCRSessions, get_session_manager

logger = logging.getLogger(__name__)


@dataclass
class OCRResult:
    regions: list[TextRegion] = field(default_factory=list)
    blocks: list[RecognizedBlock] = field(default_factory=list)
    merged: Optional[RecognizedBlock] = None
    retry_used: Optional[str] = None


class OnnxOCREngine:
    """Runs the full OCR pass for one image against the active-language sessions."""

    def __init__(
        self,
        session_manager: Optional[OCRSessionManager] = None,
        detector: Optional[TextRegionDetector] = None,
        recognizer: Optional[GlyphRecognizer] = None,
        aggregator: Optional[BlockAggregator] = None,
    ):
        self.sessions = session_manager or get_session_manager()
        self.detector = detector or TextRegionDetector()
        self.recognizer = recognizer or GlyphRecognizer()
        self.aggregator = aggregator or BlockAggregator()
        self.last_metrics: Optional[dict] = None

    def _detect(self, image: np.ndarray, sessions: OCRSessions) -> list[TextRegion]:
        h, w = image.shape[:2]
        try:
            return self.detector.detect(image, sessions.detector)
        except OperationAborted:
            raise
        except Exception as e:
            logger.warning(f"detection failed ({type(e).__name__}: {e}); using full image")
            return [full_image_region(w, h)]

    def _recognize(
        self,
        image: np.ndarray,
        region: TextRegion,
        sessions: OCRSessions,
    ) -> RecognizedBlock:
        text, confidence = self.recognizer.recognize(image, region, sessions.recognizer, sessions.labels)
        return RecognizedBlock(box=region, text=text, confidence=confidence)

    def run(
        self,
        image: np.ndarray,
        language: OCRLanguage = OCRLanguage.AUTO,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OCRResult:
        h, w = image.shape[:2]
        result = OCRResult()
        t0 = time.perf_counter()

        with self.sessions.use(language) as sessions:
            check_cancelled(cancel_token)
            result.regions = self._detect(image, sessions)
            t_det = time.perf_counter()

            recognized: list[RecognizedBlock] = []
            for region in result.regions:
                check_cancelled(cancel_token)
                recognized.append(self._recognize(image, region, sessions))
            result.blocks = self.aggregator.filter(recognized)

            if not result.blocks:
                for label, region in zip(
                    ("union", "full_image"),
                    self.aggregator.retry_regions(result.regions, w, h),
                ):
                    check_cancelled(cancel_token)
                    kept = self.aggregator.filter([self._recognize(image, region, sessions)])
                    if kept:
                        result.blocks = kept
                        result.retry_used = label
                        break
            t_rec = time.perf_counter()

        result.merged = self.aggregator.merge(result.blocks)
        self.last_metrics = {
            "det_ms": (t_det - t0) * 1000,
            "rec_ms": (t_rec - t_det) * 1000,
            "regions": len(result.regions),
            "recognized": len(recognized),
            "accepted": len(result.blocks),
            "retry_used": result.retry_used,
            "detector": self.detector.last_metrics,
        }
        logger.info(
            f"ocr: lang={language.value} regions={len(result.regions)} "
            f"accepted={len(result.blocks)} retry={result.retry_used}"
        )
        return result
