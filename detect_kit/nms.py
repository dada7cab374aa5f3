from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .types import Box, BoxSpace, Candidate, DetectionResult, iou_one_to_many


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.2
    # Boxes of different classes still suppress each other when True.
    class_agnostic: bool = True
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be in [0, 1]")
        if self.max_detections is not None and self.max_detections <= 0:
            raise ValueError("max_detections must be > 0 when set")


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig, class_ids: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of kept boxes in acceptance order (score descending,
    ties resolved by original index).
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int32)

    order = np.argsort(-scores, kind="stable")
    suppressed = np.zeros(order.size, dtype=bool)
    keep: List[int] = []

    for pos, i in enumerate(order):
        if suppressed[pos]:
            continue
        keep.append(int(i))
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break

        rest = order[pos + 1 :]
        if rest.size == 0:
            break
        current = Box(*(float(v) for v in boxes[i]))
        overlap = iou_one_to_many(current, boxes[rest]) > cfg.iou_threshold
        if not cfg.class_agnostic and class_ids is not None:
            overlap &= class_ids[rest] == class_ids[i]
        suppressed[pos + 1 :] |= overlap

    return np.array(keep, dtype=np.int32)


def suppress(candidates: Sequence[Candidate], cfg: NMSConfig = NMSConfig()) -> List[DetectionResult]:
    """
    Run NMS over decoded candidates and build the final result list.

    Every candidate must already be in source-pixel space.
    """

    if not candidates:
        return []

    for c in candidates:
        if c.box.space != BoxSpace.SOURCE_PIXELS:
            raise ValueError(f"Suppression expects source-pixel boxes, got {c.box.space.value}")

    boxes = np.array([c.box.as_xyxy() for c in candidates], dtype=np.float64)
    scores = np.array([c.confidence for c in candidates], dtype=np.float64)
    # -1 stands in for "no class" so class-aware mode keeps those boxes in one group.
    class_ids = np.array([-1 if c.class_id is None else c.class_id for c in candidates], dtype=np.int64)

    keep_idx = nms(boxes, scores, cfg, class_ids=class_ids)
    return [DetectionResult.from_candidate(candidates[i]) for i in keep_idx]
