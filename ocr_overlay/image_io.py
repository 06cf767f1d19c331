from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image


PixelInput = Union[np.ndarray, Image.Image, str, Path]


def to_rgb_array(image: PixelInput) -> np.ndarray:
    """
    Normalise a capture buffer to an RGB uint8 array of shape (H, W, 3).

    Accepts a PIL image, a file path, or a numpy array that is grayscale,
    RGB or RGBA. Alpha is dropped (the capture layer composites beforehand).
    """
    if isinstance(image, (str, Path)):
        with Image.open(image) as pil:
            return np.asarray(pil.convert("RGB"), dtype=np.uint8).copy()
    if isinstance(image, Image.Image):
        return np.asarray(image.convert("RGB"), dtype=np.uint8).copy()

    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 2:
        return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGB)
    if arr.ndim == 3 and arr.shape[2] == 4:
        return cv2.cvtColor(arr, cv2.COLOR_RGBA2RGB)
    if arr.ndim == 3 and arr.shape[2] == 3:
        return arr
    raise ValueError(f"Unsupported pixel buffer shape: {arr.shape}")


def load_image(path: Union[str, Path]) -> np.ndarray:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    return to_rgb_array(path)
