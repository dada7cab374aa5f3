from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import cv2
import numpy as np

from detect_kit import Plane, RawFrame


@dataclass(frozen=True)
class CaptureInfo:
    """What the capture reports about its stream; None when the backend does not know."""

    source: str
    width: Optional[int]
    height: Optional[int]
    fps: Optional[float]
    frame_count: Optional[int]


def open_capture(*, video: Optional[str] = None, webcam: Optional[int] = None, rtsp: Optional[str] = None) -> cv2.VideoCapture:
    """Open exactly one of a video file, a webcam index or an RTSP url as the frame source."""

    chosen = [s for s in (video, rtsp, webcam) if s is not None]
    if len(chosen) != 1:
        raise ValueError("Exactly one of video/webcam/rtsp must be provided.")

    target = chosen[0] if webcam is None else int(webcam)
    cap = cv2.VideoCapture(target)
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open frame source {target!r}.")
    return cap


def _positive(value: Optional[float]) -> Optional[float]:
    return float(value) if value and value > 0 else None


def get_capture_info(cap: cv2.VideoCapture, source: str = "") -> CaptureInfo:
    w = _positive(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    h = _positive(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    n = _positive(cap.get(cv2.CAP_PROP_FRAME_COUNT))
    return CaptureInfo(
        source=source,
        width=int(w) if w else None,
        height=int(h) if h else None,
        fps=_positive(cap.get(cv2.CAP_PROP_FPS)),
        frame_count=int(n) if n else None,
    )


def frame_from_bgr(image_bgr: np.ndarray, release: Optional[Callable[[], None]] = None) -> RawFrame:
    """
    Split a BGR image into a planar I420 `RawFrame` (Y, U, V), the way a
    camera hands frames to the pipeline. Odd edges are cropped to keep 4:2:0
    dimensions even.
    """

    h, w = image_bgr.shape[:2]
    w -= w % 2
    h -= h % 2
    if w <= 0 or h <= 0:
        raise ValueError(f"Image too small for 4:2:0: {image_bgr.shape}")
    image_bgr = np.ascontiguousarray(image_bgr[:h, :w])

    i420 = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2YUV_I420).reshape(-1)
    y_size = w * h
    c_size = y_size // 4
    y = i420[:y_size]
    u = i420[y_size : y_size + c_size]
    v = i420[y_size + c_size : y_size + 2 * c_size]

    return RawFrame(
        width=w,
        height=h,
        planes=(Plane(y, row_stride=w), Plane(u, row_stride=w // 2), Plane(v, row_stride=w // 2)),
        release=release,
    )


def iter_frames(cap: cv2.VideoCapture, *, every: int = 1, max_frames: int = 0) -> Iterator[RawFrame]:
    """
    Yield every `every`-th frame of `cap` as a RawFrame; `max_frames` = 0 means no limit.
    """

    if every <= 0:
        raise ValueError("every must be > 0")

    frame_idx = 0
    yielded = 0
    while True:
        ok, frame = cap.read()
        if not ok or frame is None:
            break
        frame_idx += 1
        if (frame_idx - 1) % every != 0:
            continue
        yield frame_from_bgr(frame)
        yielded += 1
        if max_frames and yielded >= max_frames:
            break
