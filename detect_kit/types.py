from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class BoxSpace(str, Enum):
    """
    Coordinate space a box lives in.

    - NORMALIZED: [0, 1] relative to the model input (as emitted by the network)
    - INPUT_PIXELS: pixels of the resized N x N model input
    - SOURCE_PIXELS: pixels of the original frame
    """

    NORMALIZED = "normalized"
    INPUT_PIXELS = "input_pixels"
    SOURCE_PIXELS = "source_pixels"


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned box in xyxy form, tagged with its coordinate space.
    """

    left: float
    top: float
    right: float
    bottom: float
    space: BoxSpace = BoxSpace.SOURCE_PIXELS

    @classmethod
    def from_cxcywh(
        cls, cx: float, cy: float, w: float, h: float, space: BoxSpace = BoxSpace.NORMALIZED
    ) -> "Box":
        return cls(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2, space)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return box_area(self)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.left, self.top, self.right, self.bottom

    def scaled(self, sx: float, sy: float, space: BoxSpace) -> "Box":
        return Box(self.left * sx, self.top * sy, self.right * sx, self.bottom * sy, space)


def box_area(box: Box) -> float:
    w = box.right - box.left
    h = box.bottom - box.top
    if w <= 0 or h <= 0:
        return 0.0
    return float(w * h)


def _require_same_space(a: BoxSpace, b: BoxSpace) -> None:
    if a != b:
        raise ValueError(f"Cannot compare boxes in different coordinate spaces: {a.value} vs {b.value}")


def iou_one_to_many(box: Box, others: np.ndarray) -> np.ndarray:
    """
    IoU of `box` against every row of `others` (shape (M, 4), xyxy, same space as `box`).

    Boxes whose intersection has non-positive width or height score 0.
    """

    others = np.asarray(others, dtype=np.float64).reshape(-1, 4)
    if others.shape[0] == 0:
        return np.empty((0,), dtype=np.float64)

    xx1 = np.maximum(box.left, others[:, 0])
    yy1 = np.maximum(box.top, others[:, 1])
    xx2 = np.minimum(box.right, others[:, 2])
    yy2 = np.minimum(box.bottom, others[:, 3])

    iw = xx2 - xx1
    ih = yy2 - yy1
    inter = np.where((iw > 0) & (ih > 0), iw * ih, 0.0)

    ow = np.clip(others[:, 2] - others[:, 0], 0.0, None)
    oh = np.clip(others[:, 3] - others[:, 1], 0.0, None)
    union = box_area(box) + ow * oh - inter

    out = np.zeros_like(inter)
    np.divide(inter, union, out=out, where=union > 0)
    return out


def iou(a: Box, b: Box) -> float:
    """
    Intersection-over-Union of two boxes in the same coordinate space.
    """

    _require_same_space(a.space, b.space)
    return float(iou_one_to_many(a, np.array([b.as_xyxy()]))[0])


@dataclass(frozen=True)
class Candidate:
    """
    Pre-suppression detection hypothesis. Not guaranteed unique.
    """

    box: Box
    confidence: float
    class_id: Optional[int] = None
    label: str = "Unknown"


@dataclass(frozen=True)
class DetectionResult:
    """
    Final detection in source-image pixel coordinates.
    """

    box: Box
    confidence: float
    label: str
    class_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.box.space != BoxSpace.SOURCE_PIXELS:
            raise ValueError(f"DetectionResult boxes must be in source pixels, got {self.box.space.value}")
        if not all(np.isfinite(v) for v in self.box.as_xyxy()):
            raise ValueError("DetectionResult box coordinates must be finite")
        if self.box.right <= self.box.left or self.box.bottom <= self.box.top:
            raise ValueError(f"DetectionResult box must have positive extent, got {self.box.as_xyxy()}")
        if not (0.0 < self.confidence <= 1.0):
            raise ValueError(f"confidence must be in (0, 1], got {self.confidence}")

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "DetectionResult":
        return cls(
            box=candidate.box,
            confidence=float(candidate.confidence),
            label=candidate.label,
            class_id=candidate.class_id,
        )

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.box.as_xyxy()
