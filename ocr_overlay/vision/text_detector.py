"""
Text Region Detector - DB-style probability map -> reading-ordered boxes.

Pre-processing resizes and normalises the capture for the detection model;
post-processing thresholds the probability map, extracts 4-connected blobs,
expands them back to glyph size and merges fragments of the same line.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from ..models import TextRegion
from .inference import InferenceSession, first_input_name
from .tensor_layout import to_probability_map

logger = logging.getLogger(__name__)

_IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
_IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


def _round_up(value: int, multiple: int) -> int:
    return max(multiple, ((value + multiple - 1) // multiple) * multiple)


def preprocess_for_detection(image: np.ndarray, limit_side: int = 1280) -> np.ndarray:
    """
    RGB uint8 (H, W, 3) -> float32 NCHW tensor.

    Longest side limited to ``limit_side``, both sides rounded up to a
    multiple of 32, ImageNet mean/std normalisation.
    """
    h, w = image.shape[:2]
    scale = min(1.0, limit_side / float(max(h, w)))
    new_w = _round_up(int(round(w * scale)), 32)
    new_h = _round_up(int(round(h * scale)), 32)
    resized = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_LINEAR)
    tensor = (resized.astype(np.float32) / 255.0 - _IMAGENET_MEAN) / _IMAGENET_STD
    return np.ascontiguousarray(tensor.transpose(2, 0, 1)[np.newaxis, ...], dtype=np.float32)


def full_image_region(width: int, height: int) -> TextRegion:
    return TextRegion(left=0, top=0, right=max(1, width), bottom=max(1, height))


def _overlaps(a: TextRegion, b: TextRegion, buffer: int) -> bool:
    # Horizontal buffer only; separate lines must not fuse.
    return (
        a.left - buffer < b.right
        and a.right + buffer > b.left
        and a.top < b.bottom
        and a.bottom > b.top
    )


def merge_regions(regions: list[TextRegion], buffer: int = 5) -> list[TextRegion]:
    """Repeatedly union boxes whose horizontally-expanded bounds intersect."""
    merged = list(regions)
    changed = True
    while changed:
        changed = False
        i = 0
        while i < len(merged):
            j = i + 1
            while j < len(merged):
                if _overlaps(merged[i], merged[j], buffer):
                    merged[i] = merged[i].union(merged[j])
                    merged.pop(j)
                    changed = True
                else:
                    j += 1
            i += 1
    return merged


def sort_reading_order(items: list, band: int = 16, key=lambda r: r):
    """Ascending ``(top // band, left)``; ``key`` maps an item to its TextRegion."""
    return sorted(items, key=lambda item: (key(item).top // band, key(item).left))


class TextRegionDetector:
    """
    Probability map -> boxes in original-image coordinates.

    At least one box is always returned: when nothing survives (or the
    layout is unrecognised) the whole image is one box.
    """

    def __init__(
        self,
        threshold: float = 0.3,
        min_area_ratio: float = 0.00005,
        min_blob_side: int = 3,
        unclip_ratio: float = 1.6,
        min_box_side: int = 6,
        max_boxes: int = 256,
        merge_buffer: int = 5,
        row_band: int = 16,
        limit_side: int = 1280,
    ):
        self.threshold = threshold
        self.min_area_ratio = min_area_ratio
        self.min_blob_side = min_blob_side
        self.unclip_ratio = unclip_ratio
        self.min_box_side = min_box_side
        self.max_boxes = max_boxes
        self.merge_buffer = merge_buffer
        self.row_band = row_band
        self.limit_side = limit_side
        self.last_metrics: Optional[dict] = None

    def detect(self, image: np.ndarray, session: InferenceSession) -> list[TextRegion]:
        h, w = image.shape[:2]
        tensor = preprocess_for_detection(image, self.limit_side)
        outputs = session.run({first_input_name(session): tensor})
        if not outputs:
            logger.warning("detection model returned no outputs; using full image")
            return [full_image_region(w, h)]
        return self.boxes_from_output(outputs[0], w, h)

    def boxes_from_output(self, output, image_width: int, image_height: int) -> list[TextRegion]:
        prob_map = to_probability_map(output)
        if prob_map is None:
            logger.warning(f"unrecognised detection layout {np.shape(output)}; using full image")
            self.last_metrics = {"blobs": 0, "boxes": 1, "fallback": True}
            return [full_image_region(image_width, image_height)]

        boxes = self._extract_boxes(prob_map, image_width, image_height)
        raw_count = len(boxes)
        boxes = merge_regions(boxes, self.merge_buffer)
        boxes = sort_reading_order(boxes, self.row_band)
        if not boxes:
            boxes = [full_image_region(image_width, image_height)]
        self.last_metrics = {
            "map_shape": list(prob_map.shape),
            "boxes_raw": raw_count,
            "boxes": len(boxes),
            "fallback": raw_count == 0,
        }
        logger.debug(f"detector: raw={raw_count} merged={len(boxes)}")
        return boxes

    def _extract_boxes(self, prob_map: np.ndarray, image_width: int, image_height: int) -> list[TextRegion]:
        map_h, map_w = prob_map.shape
        mask = (prob_map > self.threshold).astype(np.uint8)
        if not mask.any():
            return []

        count, _labels, stats, _ = cv2.connectedComponentsWithStats(mask, connectivity=4)
        min_area = map_h * map_w * self.min_area_ratio
        scale_x = image_width / float(map_w)
        scale_y = image_height / float(map_h)

        boxes: list[TextRegion] = []
        # label 0 is background
        for idx in range(1, count):
            if len(boxes) >= self.max_boxes:
                break
            x, y, bw, bh, area = (int(v) for v in stats[idx])
            if area < min_area or bw < self.min_blob_side or bh < self.min_blob_side:
                continue
            expand = area * self.unclip_ratio / (2.0 * (bw + bh))
            left = int((x - expand) * scale_x)
            top = int((y - expand) * scale_y)
            width = int((bw + 2 * expand) * scale_x)
            height = int((bh + 2 * expand) * scale_y)

            right = min(image_width, left + width)
            bottom = min(image_height, top + height)
            left = max(0, left)
            top = max(0, top)
            if right - left <= self.min_box_side or bottom - top <= self.min_box_side:
                continue
            boxes.append(TextRegion(left=left, top=top, right=right, bottom=bottom))
        return boxes
