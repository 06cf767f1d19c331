"""
Tensor layout classification.

Detection and recognition models disagree on rank and axis order. Each
output is classified into one of a small closed set of layouts and reduced
to a canonical 2D view; unknown layouts classify as ``UNKNOWN`` and the
caller degrades.
"""

from enum import Enum
from typing import Optional, Sequence

import numpy as np


class ProbMapLayout(str, Enum):
    NCHW = "nchw"          # (1, 1, H, W), or (1, C, H, W) taking channel 0
    NHWC = "nhwc"          # (1, H, W, 1)
    CHW = "chw"            # (1, H, W)
    HWC = "hwc"            # (H, W, C) taking channel 0
    HW = "hw"              # (H, W)
    UNKNOWN = "unknown"


def logistic(x):
    """Logistic function; output always lies in [0, 1] for real input."""
    arr = np.asarray(x, dtype=np.float64)
    out = 1.0 / (1.0 + np.exp(-np.clip(arr, -500.0, 500.0)))
    if np.ndim(out) == 0:
        return float(out)
    return out


def classify_prob_map(shape: Sequence[int]) -> ProbMapLayout:
    dims = tuple(int(d) for d in shape)
    if any(d <= 0 for d in dims):
        return ProbMapLayout.UNKNOWN
    if len(dims) == 4:
        if dims[1] == 1:
            return ProbMapLayout.NCHW
        if dims[3] == 1:
            return ProbMapLayout.NHWC
        return ProbMapLayout.NCHW
    if len(dims) == 3:
        if dims[0] == 1:
            return ProbMapLayout.CHW
        return ProbMapLayout.HWC
    if len(dims) == 2:
        return ProbMapLayout.HW
    return ProbMapLayout.UNKNOWN


def _plane(arr: np.ndarray, layout: ProbMapLayout) -> Optional[np.ndarray]:
    if layout == ProbMapLayout.NCHW:
        return arr[0, 0]
    if layout == ProbMapLayout.NHWC:
        return arr[0, :, :, 0]
    if layout == ProbMapLayout.CHW:
        return arr[0]
    if layout == ProbMapLayout.HWC:
        return arr[:, :, 0]
    if layout == ProbMapLayout.HW:
        return arr
    return None


def to_probability_map(tensor) -> Optional[np.ndarray]:
    """
    Reduce a detection output to a 2D probability grid.

    Values outside [0, 1] are treated as logits and passed through the
    logistic function. Returns ``None`` for unrecognised layouts.
    """
    arr = np.asarray(tensor, dtype=np.float32)
    layout = classify_prob_map(arr.shape)
    plane = _plane(arr, layout)
    if plane is None:
        return None
    plane = np.nan_to_num(plane, nan=0.0)
    if plane.size and (plane.min() < 0.0 or plane.max() > 1.0):
        plane = logistic(plane).astype(np.float32)
    return np.ascontiguousarray(plane, dtype=np.float32)


def recognition_views(tensor) -> Optional[tuple[np.ndarray, np.ndarray]]:
    """
    Both readings of a recognition output's trailing two axes.

    Returns ``(sequence_major, class_major_transposed)``, each shaped
    ``(steps, classes)``; ``None`` when the tensor has fewer than two axes.
    """
    arr = np.asarray(tensor, dtype=np.float32)
    if arr.ndim < 2 or arr.size == 0:
        return None
    while arr.ndim > 2:
        arr = arr[0]
    return arr, arr.T
