"""Processing modules for the analysis pipeline."""

from .base import BaseModule
from .ocr import OCRModule
from .translator import TranslatorModule

__all__ = [
    "BaseModule",
    "OCRModule",
    "TranslatorModule",
]
