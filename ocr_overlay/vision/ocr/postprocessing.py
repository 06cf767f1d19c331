"""Post-processing for recognized blocks: usefulness filter and paragraph merge."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ...models import RecognizedBlock, TextRegion
from ...scripts import is_meaningful
from ..text_detector import full_image_region, sort_reading_order

logger = logging.getLogger(__name__)

# Characters emitted for labels the decoder could not map.
DECODE_FAILURE_MARKERS = ("\ufffd", "<unk>")
UNKNOWN_MARKERS = frozenset({"?", "？", "□", "■"})

MIN_CONFIDENCE = 0.10
MIN_MEANINGFUL_RATIO = 0.5
MAX_UNKNOWN_RATIO = 1.0 / 3.0


def is_useful_text(text: Optional[str], confidence: float) -> bool:
    """Reject empty, low-confidence, garbled or punctuation-only recognitions."""
    trimmed = (text or "").strip()
    if not trimmed:
        return False
    if confidence < MIN_CONFIDENCE:
        return False
    if any(marker in trimmed for marker in DECODE_FAILURE_MARKERS):
        return False

    meaningful = sum(1 for ch in trimmed if is_meaningful(ch))
    if meaningful == 0:
        return False
    unknown = sum(1 for ch in trimmed if ch in UNKNOWN_MARKERS)
    if unknown / len(trimmed) >= MAX_UNKNOWN_RATIO:
        return False
    if meaningful / len(trimmed) < MIN_MEANINGFUL_RATIO:
        return False

    # Short strings are usually noise unless the recognizer is confident.
    if len(trimmed) <= 2 and meaningful == 1 and confidence < 0.35:
        return False
    if len(trimmed) <= 4 and confidence < 0.5:
        return False
    return True


def union_region(regions: Iterable[TextRegion]) -> Optional[TextRegion]:
    result: Optional[TextRegion] = None
    for region in regions:
        result = region if result is None else result.union(region)
    return result


class BlockAggregator:
    """Filters recognitions and merges the survivors into one paragraph block."""

    def __init__(self, row_band: int = 16):
        self.row_band = row_band

    def filter(self, blocks: Iterable[RecognizedBlock]) -> list[RecognizedBlock]:
        kept = [b for b in blocks if is_useful_text(b.text, b.confidence)]
        return kept

    def merge(self, blocks: list[RecognizedBlock]) -> Optional[RecognizedBlock]:
        if not blocks:
            return None
        ordered = sort_reading_order(blocks, self.row_band, key=lambda b: b.box)
        box = union_region(b.box for b in ordered)
        confidence = sum(b.confidence for b in ordered) / len(ordered)
        return RecognizedBlock(
            box=box,
            text="\n".join(b.text.strip() for b in ordered),
            confidence=min(1.0, max(0.0, confidence)),
        )

    def aggregate(self, blocks: Iterable[RecognizedBlock]) -> Optional[RecognizedBlock]:
        blocks = list(blocks)
        kept = self.filter(blocks)
        if len(kept) != len(blocks):
            logger.debug(f"aggregator: kept {len(kept)}/{len(blocks)} blocks")
        return self.merge(kept)

    @staticmethod
    def retry_regions(regions: list[TextRegion], image_width: int, image_height: int) -> list[TextRegion]:
        """Fallback boxes when nothing passes: union of detections, then the whole image."""
        candidates: list[TextRegion] = []
        union = union_region(regions)
        if union is not None:
            candidates.append(union)
        whole = full_image_region(image_width, image_height)
        if whole not in candidates:
            candidates.append(whole)
        return candidates
