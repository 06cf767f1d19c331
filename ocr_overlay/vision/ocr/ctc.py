"""Greedy CTC decoding with (sequence, classes) / (classes, sequence) auto-detection."""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..dictionary import LabelTable
from ..tensor_layout import logistic, recognition_views

PLAUSIBLE_MIN_WINDOW = 64
PLAUSIBLE_RATIO = 0.2


@dataclass(frozen=True)
class CTCResult:
    text: str = ""
    confidence: float = 0.0
    class_count: int = 0


EMPTY_RESULT = CTCResult()


def _to_probability(value: float) -> float:
    if 0.0 <= value <= 1.0:
        return float(value)
    return float(logistic(value))


def greedy_decode(scores: np.ndarray, labels: LabelTable) -> CTCResult:
    """
    Decode a ``(steps, classes)`` score matrix.

    Blank (index 0) and repeats of the previous step's class are dropped;
    indices beyond the table are skipped. Confidence is the mean probability
    of the emitted symbols.
    """
    if scores.ndim != 2 or scores.shape[0] == 0 or scores.shape[1] == 0:
        return EMPTY_RESULT
    best = scores.argmax(axis=1)
    best_scores = scores[np.arange(scores.shape[0]), best]

    chars: list[str] = []
    total = 0.0
    emitted = 0
    prev = -1
    for idx, score in zip(best.tolist(), best_scores.tolist()):
        if idx > 0 and idx != prev and idx < len(labels):
            chars.append(labels[idx])
            total += _to_probability(score)
            emitted += 1
        prev = idx
    confidence = total / emitted if emitted else 0.0
    return CTCResult(text="".join(chars), confidence=confidence, class_count=int(scores.shape[1]))


def plausible_class_count(class_count: int, table_size: int) -> bool:
    window = max(PLAUSIBLE_MIN_WINDOW, int(table_size * PLAUSIBLE_RATIO))
    return abs(class_count - table_size) <= window


def _prefer(a: CTCResult, b: CTCResult) -> CTCResult:
    if len(a.text) != len(b.text):
        return a if len(a.text) > len(b.text) else b
    return a if a.confidence >= b.confidence else b


def decode_auto(output, labels: LabelTable) -> CTCResult:
    """
    Decode a recognition output whose trailing axes may be either way round.

    Both readings are decoded; the one whose class axis is plausible for the
    table wins. If both or neither are plausible the longer text wins, ties
    going to the higher confidence.
    """
    views: Optional[tuple[np.ndarray, np.ndarray]] = recognition_views(output)
    if views is None:
        return EMPTY_RESULT
    seq_major, class_major = views
    a = greedy_decode(seq_major, labels)
    b = greedy_decode(class_major, labels)

    a_ok = plausible_class_count(a.class_count, len(labels))
    b_ok = plausible_class_count(b.class_count, len(labels))
    if a_ok and not b_ok:
        return a
    if b_ok and not a_ok:
        return b
    return _prefer(a, b)
