import numpy as np

from ocr_overlay.models import TextRegion
from ocr_overlay.vision.inference import InferenceSession
from ocr_overlay.vision.text_detector import (
    TextRegionDetector,
    full_image_region,
    merge_regions,
    preprocess_for_detection,
    sort_reading_order,
)


class _DummySession(InferenceSession):
    def __init__(self, outputs):
        self._outputs = outputs
        self.feeds = []

    @property
    def input_names(self):
        return ["x"]

    def run(self, feeds):
        self.feeds.append(feeds)
        return self._outputs


def _region(left, top, right, bottom):
    return TextRegion(left=left, top=top, right=right, bottom=bottom)


def test_empty_probability_map_yields_full_image_box():
    detector = TextRegionDetector()
    boxes = detector.boxes_from_output(np.zeros((1, 1, 37, 53), dtype=np.float32), 53, 37)
    assert boxes == [_region(0, 0, 53, 37)]


def test_unknown_layout_yields_full_image_box():
    detector = TextRegionDetector()
    boxes = detector.boxes_from_output(np.zeros((2, 1, 1, 8, 8), dtype=np.float32), 80, 40)
    assert boxes == [full_image_region(80, 40)]
    assert detector.last_metrics["fallback"] is True


def test_single_blob_is_expanded_to_glyph_size():
    prob = np.zeros((100, 200), dtype=np.float32)
    prob[40:50, 20:80] = 0.9
    detector = TextRegionDetector()

    boxes = detector.boxes_from_output(prob, 200, 100)

    # area 600, perimeter 140 -> expand by 600 * 1.6 / 140 on each side
    assert boxes == [_region(13, 33, 86, 56)]


def test_logit_maps_in_nhwc_layout_match_probability_maps():
    logits = np.full((1, 100, 200, 1), -10.0, dtype=np.float32)
    logits[0, 40:50, 20:80, 0] = 10.0
    boxes = TextRegionDetector().boxes_from_output(logits, 200, 100)
    assert boxes == [_region(13, 33, 86, 56)]


def test_boxes_are_clamped_and_capped():
    prob = np.zeros((200, 200), dtype=np.float32)
    for y in range(1, 197, 7):
        for x in range(1, 197, 7):
            prob[y:y + 3, x:x + 3] = 1.0
    detector = TextRegionDetector()

    boxes = detector.boxes_from_output(prob, 2000, 2000)

    assert 0 < len(boxes) <= detector.max_boxes
    for box in boxes:
        assert 0 <= box.left < box.right <= 2000
        assert 0 <= box.top < box.bottom <= 2000
        assert box.width > detector.min_box_side
        assert box.height > detector.min_box_side


def test_tiny_blobs_are_rejected():
    prob = np.zeros((100, 100), dtype=np.float32)
    prob[10:12, 10:40] = 1.0  # 2 px tall
    prob[60:90, 50:51] = 1.0  # 1 px wide
    boxes = TextRegionDetector().boxes_from_output(prob, 100, 100)
    assert boxes == [full_image_region(100, 100)]


def test_merge_fuses_fragments_of_one_line():
    merged = merge_regions([_region(0, 0, 10, 10), _region(12, 0, 20, 10)], buffer=5)
    assert merged == [_region(0, 0, 20, 10)]


def test_merge_keeps_separate_lines_apart():
    regions = [_region(0, 0, 10, 10), _region(12, 15, 20, 25)]
    assert merge_regions(regions, buffer=5) == regions


def test_merge_is_transitive():
    regions = [_region(0, 0, 10, 10), _region(30, 0, 40, 10), _region(14, 2, 27, 8)]
    assert merge_regions(regions, buffer=5) == [_region(0, 0, 40, 10)]


def test_reading_order_groups_rows_into_bands():
    a = _region(100, 3, 120, 12)
    b = _region(0, 10, 20, 20)
    c = _region(0, 40, 20, 50)
    assert sort_reading_order([c, a, b], band=16) == [b, a, c]


def test_preprocess_rounds_up_to_multiple_of_32():
    image = np.zeros((100, 200, 3), dtype=np.uint8)
    tensor = preprocess_for_detection(image)
    assert tensor.shape == (1, 3, 128, 224)
    assert tensor.dtype == np.float32


def test_preprocess_limits_longest_side():
    image = np.zeros((500, 4000, 3), dtype=np.uint8)
    tensor = preprocess_for_detection(image, limit_side=1280)
    assert tensor.shape == (1, 3, 160, 1280)


def test_detect_feeds_model_and_maps_output_back():
    image = np.zeros((100, 200, 3), dtype=np.uint8)
    session = _DummySession([np.zeros((1, 1, 128, 224), dtype=np.float32)])
    detector = TextRegionDetector()

    boxes = detector.detect(image, session)

    assert boxes == [full_image_region(200, 100)]
    assert session.feeds[0]["x"].shape == (1, 3, 128, 224)


def test_detect_without_outputs_uses_full_image():
    image = np.zeros((30, 40, 3), dtype=np.uint8)
    boxes = TextRegionDetector().detect(image, _DummySession([]))
    assert boxes == [full_image_region(40, 30)]
