"""
Named-tensor inference seam.

The core never loads weights itself beyond handing a model path to the
session factory; everything downstream talks to ``InferenceSession``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

# Preferred execution providers, most capable first.
_PROVIDER_PREFERENCE = (
    "CUDAExecutionProvider",
    "DmlExecutionProvider",
    "CPUExecutionProvider",
)


class InferenceSession(ABC):
    """Minimal named-tensor session used by detection, recognition and seq2seq."""

    @property
    @abstractmethod
    def input_names(self) -> list[str]:
        ...

    def output_shape(self, index: int = 0) -> Sequence[Optional[int]]:
        """Declared output shape; dynamic axes are ``None``."""
        return ()

    @abstractmethod
    def run(self, feeds: Mapping[str, np.ndarray]) -> list[np.ndarray]:
        ...

    def close(self) -> None:
        pass


class OnnxInferenceSession(InferenceSession):
    """onnxruntime-backed session."""

    def __init__(self, model_path: str, providers: Optional[list[str]] = None):
        import onnxruntime as ort

        available = set(ort.get_available_providers())
        if providers is None:
            providers = [p for p in _PROVIDER_PREFERENCE if p in available] or [
                "CPUExecutionProvider"
            ]
        self.model_path = model_path
        self._session = ort.InferenceSession(model_path, providers=providers)
        logger.info(f"onnx session loaded: {model_path} providers={self._session.get_providers()}")

    @property
    def input_names(self) -> list[str]:
        return [i.name for i in self._session.get_inputs()]

    def output_shape(self, index: int = 0) -> Sequence[Optional[int]]:
        outputs = self._session.get_outputs()
        if index >= len(outputs):
            return ()
        return [d if isinstance(d, int) else None for d in outputs[index].shape]

    def run(self, feeds: Mapping[str, np.ndarray]) -> list[np.ndarray]:
        return self._session.run(None, dict(feeds))

    def close(self) -> None:
        self._session = None


def onnx_session_factory(model_path: str) -> InferenceSession:
    return OnnxInferenceSession(model_path)


def first_input_name(session: InferenceSession, default: str = "x") -> str:
    names = session.input_names
    return names[0] if names else default
