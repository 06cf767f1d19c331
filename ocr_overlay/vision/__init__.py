"""Vision processing: tensor layouts, label tables, text detection and OCR."""

from .dictionary import DictionaryLoader, LabelTable, load_label_table, realign_labels
from .inference import InferenceSession, OnnxInferenceSession, onnx_session_factory
from .text_detector import TextRegionDetector, merge_regions, sort_reading_order

__all__ = [
    "DictionaryLoader",
    "LabelTable",
    "load_label_table",
    "realign_labels",
    "InferenceSession",
    "OnnxInferenceSession",
    "onnx_session_factory",
    "TextRegionDetector",
    "merge_regions",
    "sort_reading_order",
]
