"""
Camera frame -> RGB raster conversion.

Frames arrive as three 4:2:0 planes (Y, U, V) with their own row/pixel
strides. They are packed into a single NV21 buffer (full Y plane followed by
interleaved V/U samples) and colour-converted with OpenCV.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union

import cv2
import numpy as np

from .errors import ConversionError


BufferLike = Union[bytes, bytearray, memoryview, np.ndarray]


@dataclass(frozen=True)
class Plane:
    """
    One image plane.

    - row_stride: bytes between the starts of consecutive rows
    - pixel_stride: bytes between consecutive samples in a row (2 for
      semi-planar chroma views, 1 otherwise)
    """

    data: BufferLike
    row_stride: int
    pixel_stride: int = 1


@dataclass(eq=False)
class RawFrame:
    """
    Snapshot of a planar YUV 4:2:0 camera frame.

    `release` is called exactly once by `close()`, however often `close()`
    itself is called.
    """

    width: int
    height: int
    planes: Sequence[Plane]
    release: Optional[Callable[[], None]] = None
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.release is not None:
            self.release()

    def __enter__(self) -> "RawFrame":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _plane_samples(plane: Plane, rows: int, cols: int, name: str) -> np.ndarray:
    if plane.row_stride <= 0 or plane.pixel_stride <= 0:
        raise ConversionError(f"{name} plane has non-positive stride")
    if plane.row_stride < (cols - 1) * plane.pixel_stride + 1:
        raise ConversionError(f"{name} plane row_stride {plane.row_stride} too small for {cols} samples")

    try:
        if isinstance(plane.data, np.ndarray):
            buf = plane.data.astype(np.uint8, copy=False).reshape(-1)
        else:
            buf = np.frombuffer(plane.data, dtype=np.uint8)
    except (TypeError, ValueError) as e:
        raise ConversionError(f"{name} plane data is not a byte buffer: {e}") from e

    # The last row may stop right after its final sample instead of running to the full stride.
    needed = (rows - 1) * plane.row_stride + (cols - 1) * plane.pixel_stride + 1
    if buf.size < needed:
        raise ConversionError(f"{name} plane has {buf.size} bytes, need at least {needed}")

    padded = np.zeros(rows * plane.row_stride, dtype=np.uint8)
    take = min(buf.size, padded.size)
    padded[:take] = buf[:take]
    grid = padded.reshape(rows, plane.row_stride)
    return grid[:, 0 : cols * plane.pixel_stride : plane.pixel_stride]


def to_nv21(frame: RawFrame) -> np.ndarray:
    """
    Pack a planar frame into an NV21 array of shape (H * 3 / 2, W).

    NV21 stores chroma as V,U pairs. Writing U first would swap red and blue.
    """

    w, h = int(frame.width), int(frame.height)
    if w <= 0 or h <= 0:
        raise ConversionError(f"Invalid frame size {w}x{h}")
    if w % 2 or h % 2:
        raise ConversionError(f"4:2:0 frames need even dimensions, got {w}x{h}")
    if len(frame.planes) != 3:
        raise ConversionError(f"Expected 3 planes (Y, U, V), got {len(frame.planes)}")

    y_plane, u_plane, v_plane = frame.planes
    cw, ch = w // 2, h // 2

    y = _plane_samples(y_plane, h, w, "Y")
    u = _plane_samples(u_plane, ch, cw, "U")
    v = _plane_samples(v_plane, ch, cw, "V")

    nv21 = np.empty((h + ch, w), dtype=np.uint8)
    nv21[:h] = y
    vu = nv21[h:].reshape(ch, cw, 2)
    vu[:, :, 0] = v
    vu[:, :, 1] = u
    return nv21


@dataclass(frozen=True)
class FrameConverterConfig:
    # JPEG re-encode quality (1-100). Lossy: trades chroma/luma precision for
    # throughput parity with the camera preview path. None skips the step.
    jpeg_quality: Optional[int] = 70

    def __post_init__(self) -> None:
        if self.jpeg_quality is not None and not (1 <= self.jpeg_quality <= 100):
            raise ValueError("jpeg_quality must be in [1, 100] or None")


class FrameConverter:
    def __init__(self, cfg: FrameConverterConfig = FrameConverterConfig()):
        self.cfg = cfg

    def convert(self, frame: RawFrame) -> np.ndarray:
        """
        Return an RGB raster (H, W, 3) uint8 for `frame`, or raise ConversionError.
        """

        nv21 = to_nv21(frame)
        try:
            bgr = cv2.cvtColor(nv21, cv2.COLOR_YUV2BGR_NV21)
        except cv2.error as e:
            raise ConversionError(f"NV21 -> BGR conversion failed: {e}") from e

        if self.cfg.jpeg_quality is not None:
            bgr = self._jpeg_roundtrip(bgr, self.cfg.jpeg_quality)

        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    @staticmethod
    def _jpeg_roundtrip(bgr: np.ndarray, quality: int) -> np.ndarray:
        ok, encoded = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
        if not ok:
            raise ConversionError("JPEG encode failed")
        decoded = cv2.imdecode(encoded, cv2.IMREAD_COLOR)
        if decoded is None:
            raise ConversionError("JPEG decode failed")
        return decoded


def limit_size(raster: np.ndarray, max_side: int = 1024) -> np.ndarray:
    """
    Shrink `raster` (aspect preserved, bilinear) so its longer side is at most `max_side`.
    """

    h, w = raster.shape[:2]
    if w <= max_side and h <= max_side:
        return raster
    ratio = min(max_side / w, max_side / h)
    new_w, new_h = max(1, int(round(w * ratio))), max(1, int(round(h * ratio)))
    return cv2.resize(raster, (new_w, new_h), interpolation=cv2.INTER_LINEAR)
