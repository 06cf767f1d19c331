import numpy as np
import pytest

from ocr_overlay.models import TextRegion
from ocr_overlay.vision.dictionary import LabelTable
from ocr_overlay.vision.inference import InferenceSession
from ocr_overlay.vision.ocr.recognizer import GlyphRecognizer, mean_luminance

LABELS = LabelTable(labels=["", "a", "b", "c"])


def _output(indices, conf, steps=80, classes=4):
    scores = np.zeros((steps, classes), dtype=np.float32)
    scores[:, 0] = conf
    for t, idx in enumerate(indices):
        scores[t, :] = 0.0
        scores[t, idx] = conf
    return scores[np.newaxis]


class _PolaritySession(InferenceSession):
    """Returns one decode for dark-looking tensors and another for light ones."""

    def __init__(self, on_dark, on_light):
        self.on_dark = on_dark
        self.on_light = on_light
        self.calls = 0

    @property
    def input_names(self):
        return ["x"]

    def run(self, feeds):
        self.calls += 1
        tensor = feeds["x"]
        return [self.on_dark if tensor.mean() < 0 else self.on_light]


class _BrokenSession(InferenceSession):
    @property
    def input_names(self):
        return ["x"]

    def run(self, feeds):
        raise RuntimeError("kernel exploded")


def test_prepare_resizes_to_target_height_and_pads_width():
    crop = np.full((20, 100, 3), 255, dtype=np.uint8)
    normal, inverted = GlyphRecognizer().prepare(crop)

    # 100 * 48 / 20 = 240 -> padded to 256
    assert normal.shape == (1, 3, 48, 256)
    assert inverted is None
    assert normal.max() == pytest.approx(1.0)


@pytest.mark.parametrize("shape, width", [((48, 5, 3), 32), ((10, 1000, 3), 1536)])
def test_prepare_clamps_width(shape, width):
    crop = np.full(shape, 255, dtype=np.uint8)
    normal, _ = GlyphRecognizer().prepare(crop)
    assert normal.shape == (1, 3, 48, width)


def test_dark_crop_also_gets_inverted_tensor():
    crop = np.zeros((24, 64, 3), dtype=np.uint8)
    normal, inverted = GlyphRecognizer().prepare(crop)

    assert inverted is not None
    assert normal.shape == inverted.shape
    assert normal[0, :, :, :10].max() == pytest.approx(-1.0)
    assert inverted[0, :, :, :10].min() == pytest.approx(1.0)


def test_mean_luminance():
    assert mean_luminance(np.zeros((2, 2, 3), dtype=np.uint8)) == 0.0
    assert mean_luminance(np.full((2, 2, 3), 255, dtype=np.uint8)) == pytest.approx(255.0, rel=1e-4)


def test_recognize_prefers_more_confident_inverted_pass():
    image = np.zeros((40, 120, 3), dtype=np.uint8)
    session = _PolaritySession(on_dark=_output([1], 0.6), on_light=_output([2, 3], 0.9))

    text, conf = GlyphRecognizer().recognize(image, TextRegion(left=0, top=0, right=120, bottom=40), session, LABELS)

    assert session.calls == 2
    assert text == "bc"
    assert conf == pytest.approx(0.9)


def test_recognize_light_crop_runs_once():
    image = np.full((40, 120, 3), 255, dtype=np.uint8)
    session = _PolaritySession(on_dark=_output([1], 0.6), on_light=_output([1, 2], 0.8))

    text, conf = GlyphRecognizer().recognize(image, TextRegion(left=10, top=5, right=90, bottom=35), session, LABELS)

    assert session.calls == 1
    assert text == "ab"
    assert conf == pytest.approx(0.8)


def test_recognize_failure_returns_empty():
    image = np.full((40, 120, 3), 255, dtype=np.uint8)
    region = TextRegion(left=0, top=0, right=120, bottom=40)
    assert GlyphRecognizer().recognize(image, region, _BrokenSession(), LABELS) == ("", 0.0)


def test_recognize_region_outside_image_returns_empty():
    image = np.full((40, 120, 3), 255, dtype=np.uint8)
    region = TextRegion(left=200, top=0, right=260, bottom=40)
    session = _PolaritySession(on_dark=_output([1], 0.6), on_light=_output([1], 0.6))
    assert GlyphRecognizer().recognize(image, region, session, LABELS) == ("", 0.0)
    assert session.calls == 0
