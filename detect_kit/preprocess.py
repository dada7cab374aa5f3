from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass(frozen=True)
class InputTensor:
    """
    Model input: float32 (N, N, 3), R,G,B interleaved, values in [0, 1].
    """

    data: np.ndarray

    @property
    def size(self) -> int:
        return int(self.data.shape[0])

    @property
    def nbytes(self) -> int:
        return int(self.data.nbytes)

    def to_bytes(self) -> bytes:
        # Row-major: row 0 left to right, then row 1, ...; 3 floats per pixel.
        return np.ascontiguousarray(self.data, dtype=np.float32).tobytes()

    def as_batch(self, channels_first: bool = False) -> np.ndarray:
        """
        Add a batch axis: (1, N, N, 3), or (1, 3, N, N) for NCHW models.
        """

        blob = self.data
        if channels_first:
            blob = np.transpose(blob, (2, 0, 1))
        return np.ascontiguousarray(blob[None, ...], dtype=np.float32)


class TensorPreprocessor:
    """
    Stretch an RGB raster to the model's square input and normalize it.

    Resizing is nearest-neighbour with no letterboxing: the aspect ratio is not
    preserved, and decoders map normalized boxes straight back onto the source
    width and height. Thresholds are tuned against this path.
    """

    interpolation = cv2.INTER_NEAREST

    def __init__(self, input_size: int = 640):
        if input_size <= 0:
            raise ValueError(f"input_size must be > 0, got {input_size}")
        self.input_size = int(input_size)

    def __call__(self, image_rgb: np.ndarray) -> InputTensor:
        return self.process(image_rgb)

    def process(self, image_rgb: np.ndarray) -> InputTensor:
        if image_rgb is None or not hasattr(image_rgb, "shape"):
            raise TypeError("image_rgb must be a NumPy array (RGB).")
        if image_rgb.ndim != 3 or image_rgb.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_rgb, 'shape', None)}")

        n = self.input_size
        h, w = image_rgb.shape[:2]
        if (w, h) != (n, n):
            image_rgb = cv2.resize(image_rgb, (n, n), interpolation=self.interpolation)

        data = image_rgb.astype(np.float32) / 255.0
        return InputTensor(data=np.ascontiguousarray(data))
