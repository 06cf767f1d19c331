import numpy as np
import pytest

from ocr_overlay.vision.tensor_layout import (
    ProbMapLayout,
    classify_prob_map,
    logistic,
    recognition_views,
    to_probability_map,
)


@pytest.mark.parametrize("x", [-1e6, -500.0, -3.0, 0.0, 2.5, 500.0, 1e6])
def test_logistic_stays_in_unit_interval(x):
    value = logistic(x)
    assert isinstance(value, float)
    assert 0.0 <= value <= 1.0


def test_logistic_midpoint_and_array_input():
    assert logistic(0.0) == pytest.approx(0.5)
    out = logistic(np.array([-10.0, 0.0, 10.0]))
    assert out.shape == (3,)
    assert out[0] < 0.001 and out[2] > 0.999


@pytest.mark.parametrize(
    "shape, layout",
    [
        ((1, 1, 32, 64), ProbMapLayout.NCHW),
        ((1, 3, 32, 64), ProbMapLayout.NCHW),
        ((1, 32, 64, 1), ProbMapLayout.NHWC),
        ((1, 32, 64), ProbMapLayout.CHW),
        ((32, 64, 2), ProbMapLayout.HWC),
        ((32, 64), ProbMapLayout.HW),
        ((64,), ProbMapLayout.UNKNOWN),
        ((1, 1, 1, 32, 64), ProbMapLayout.UNKNOWN),
        ((1, 1, 0, 64), ProbMapLayout.UNKNOWN),
    ],
)
def test_classify_prob_map(shape, layout):
    assert classify_prob_map(shape) == layout


def test_every_layout_reduces_to_same_plane():
    plane = np.random.default_rng(0).random((8, 12)).astype(np.float32)
    variants = [
        plane[np.newaxis, np.newaxis],
        plane[np.newaxis, :, :, np.newaxis],
        plane[np.newaxis],
        np.stack([plane, np.zeros_like(plane)], axis=-1),
        plane,
    ]
    for tensor in variants:
        out = to_probability_map(tensor)
        assert out.shape == (8, 12)
        np.testing.assert_allclose(out, plane, rtol=1e-6)


def test_logits_are_squashed_into_probabilities():
    logits = np.array([[-8.0, 0.0], [8.0, np.nan]], dtype=np.float32)
    out = to_probability_map(logits)
    assert out.min() >= 0.0 and out.max() <= 1.0
    assert out[0, 1] == pytest.approx(0.5)
    assert out[1, 0] > 0.99


def test_unknown_layout_returns_none():
    assert to_probability_map(np.zeros((4,), dtype=np.float32)) is None
    assert to_probability_map(np.zeros((1, 1, 1, 4, 4), dtype=np.float32)) is None


def test_recognition_views_strip_leading_axes():
    tensor = np.arange(24, dtype=np.float32).reshape(1, 4, 6)
    seq_major, class_major = recognition_views(tensor)
    assert seq_major.shape == (4, 6)
    assert class_major.shape == (6, 4)
    assert recognition_views(np.zeros((5,), dtype=np.float32)) is None
