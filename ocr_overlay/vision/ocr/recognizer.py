"""
Glyph recognizer: crop -> normalised line tensor -> CTC text.

浅色文字/深色背景时额外识别一份反色版本，取置信度较高者。
"""

import logging
from typing import Optional

import cv2
import numpy as np

from ...models import TextRegion
from ..dictionary import LabelTable
from ..inference import InferenceSession, first_input_name
from .ctc import CTCResult, EMPTY_RESULT, decode_auto

logger = logging.getLogger(__name__)

_LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)


def mean_luminance(crop: np.ndarray) -> float:
    if crop.size == 0:
        return 0.0
    return float((crop[..., :3].astype(np.float32) @ _LUMA_WEIGHTS).mean())


class GlyphRecognizer:
    """Recognises one TextRegion at a time; failures decode as ``("", 0.0)``."""

    def __init__(
        self,
        target_height: int = 48,
        min_width: int = 16,
        max_width: int = 1536,
        width_multiple: int = 32,
        dark_threshold: float = 120.0,
    ):
        self.target_height = target_height
        self.min_width = min_width
        self.max_width = max_width
        self.width_multiple = width_multiple
        self.dark_threshold = dark_threshold

    @staticmethod
    def crop(image: np.ndarray, region: TextRegion) -> np.ndarray:
        h, w = image.shape[:2]
        left, top = max(0, region.left), max(0, region.top)
        right, bottom = min(w, region.right), min(h, region.bottom)
        if right <= left or bottom <= top:
            return image[0:0, 0:0]
        return image[top:bottom, left:right]

    def _resize(self, crop: np.ndarray) -> np.ndarray:
        h, w = crop.shape[:2]
        width = int(round(w * self.target_height / float(h)))
        width = max(self.min_width, min(self.max_width, width))
        return cv2.resize(crop, (width, self.target_height), interpolation=cv2.INTER_CUBIC)

    def _to_tensor(self, line: np.ndarray) -> np.ndarray:
        width = line.shape[1]
        padded_width = ((width + self.width_multiple - 1) // self.width_multiple) * self.width_multiple
        canvas = np.full((self.target_height, padded_width, 3), 255, dtype=np.uint8)
        canvas[:, :width] = line[..., :3]
        tensor = (canvas.astype(np.float32) / 255.0 - 0.5) / 0.5
        return np.ascontiguousarray(tensor.transpose(2, 0, 1)[np.newaxis, ...], dtype=np.float32)

    def prepare(self, crop: np.ndarray) -> tuple[np.ndarray, Optional[np.ndarray]]:
        """Normal tensor, plus an inverted one when the crop looks light-on-dark."""
        line = self._resize(crop)
        normal = self._to_tensor(line)
        inverted = None
        if mean_luminance(crop) < self.dark_threshold:
            inverted = self._to_tensor(255 - line)
        return normal, inverted

    def _run(self, session: InferenceSession, tensor: np.ndarray, labels: LabelTable) -> CTCResult:
        outputs = session.run({first_input_name(session): tensor})
        if not outputs:
            return EMPTY_RESULT
        return decode_auto(outputs[0], labels)

    def recognize(
        self,
        image: np.ndarray,
        region: TextRegion,
        session: InferenceSession,
        labels: LabelTable,
    ) -> tuple[str, float]:
        try:
            crop = self.crop(image, region)
            if crop.size == 0:
                return "", 0.0
            normal, inverted = self.prepare(crop)
            best = self._run(session, normal, labels)
            if inverted is not None:
                alt = self._run(session, inverted, labels)
                if not best.text or (alt.text and alt.confidence > best.confidence):
                    best = alt
            confidence = min(1.0, max(0.0, best.confidence))
            return best.text, confidence
        except Exception as e:
            logger.warning(f"recognition failed for {region.to_rect().model_dump()}: {type(e).__name__}: {e}")
            return "", 0.0
