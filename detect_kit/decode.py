from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import MalformedOutput
from .metadata import COCO_CLASS_NAMES, label_for
from .types import Box, BoxSpace, Candidate

logger = logging.getLogger(__name__)


class OutputLayout(str, Enum):
    """
    Raw output layouts a model can be configured with. Fixed per loaded model.

    - BOX_ONLY: (N, 4) [cx, cy, w, h], no score head
    - FUSED_GRID: (N, 5 + C) [cx, cy, w, h, obj, class_scores...]
    - SPLIT_HEADS: boxes (N, 4), scores (N,), classes (N,) as float-encoded ids
    """

    BOX_ONLY = "box_only"
    FUSED_GRID = "fused_grid"
    SPLIT_HEADS = "split_heads"


@dataclass(frozen=True)
class BoxOnlyOutput:
    boxes: np.ndarray


@dataclass(frozen=True)
class FusedGridOutput:
    rows: np.ndarray


@dataclass(frozen=True)
class SplitHeadsOutput:
    boxes: np.ndarray
    scores: np.ndarray
    classes: np.ndarray


RawOutput = Union[BoxOnlyOutput, FusedGridOutput, SplitHeadsOutput]


def raw_output_from_arrays(layout: OutputLayout, arrays: Sequence[np.ndarray]) -> RawOutput:
    """
    Tag the engine's output arrays with the configured layout.
    """

    layout = OutputLayout(layout)
    expected = 3 if layout == OutputLayout.SPLIT_HEADS else 1
    if len(arrays) < expected:
        raise MalformedOutput(f"Layout {layout.value} needs {expected} output tensor(s), got {len(arrays)}")

    if layout == OutputLayout.BOX_ONLY:
        return BoxOnlyOutput(boxes=np.asarray(arrays[0]))
    if layout == OutputLayout.FUSED_GRID:
        return FusedGridOutput(rows=np.asarray(arrays[0]))
    return SplitHeadsOutput(
        boxes=np.asarray(arrays[0]),
        scores=np.asarray(arrays[1]),
        classes=np.asarray(arrays[2]),
    )


@dataclass(frozen=True)
class DecoderConfig:
    """
    Konfigurasi untuk decoding output model
    """

    # Candidates need confidence strictly above this value.
    probability_threshold: float = 0.5
    # Boxes must be wider and taller than this many pixels; smaller ones are numerical noise.
    min_box_extent: float = 10.0
    # None accepts any class count for the fused grid layout.
    num_classes: Optional[int] = 80
    # When set, the number of box slots must match exactly.
    detection_count: Optional[int] = None
    # Used by the box-only layout, which has no score or class head.
    placeholder_confidence: float = 0.8
    placeholder_label: str = "Object"
    labels: Tuple[str, ...] = COCO_CLASS_NAMES

    def __post_init__(self) -> None:
        if not (0.0 <= self.probability_threshold < 1.0):
            raise ValueError("probability_threshold must be in [0, 1)")
        if self.min_box_extent < 0:
            raise ValueError("min_box_extent must be >= 0")
        if self.num_classes is not None and self.num_classes <= 0:
            raise ValueError("num_classes must be > 0 when set")
        if self.detection_count is not None and self.detection_count <= 0:
            raise ValueError("detection_count must be > 0 when set")
        if not (0.0 < self.placeholder_confidence <= 1.0):
            raise ValueError("placeholder_confidence must be in (0, 1]")


class DetectionDecoder:
    """
    Turn a tagged raw output into candidates in source-pixel space.

    Each layout has its own decode step producing (cxcywh, scores, class_ids)
    in normalized space; corner conversion, clamping, scaling and the drop
    rules are shared. Out-of-range values never raise, they only get dropped.
    Shape mismatches raise MalformedOutput.
    """

    def __init__(self, cfg: DecoderConfig = DecoderConfig()):
        self.cfg = cfg
        self._handlers: Dict[type, Callable[..., Tuple[np.ndarray, np.ndarray, Optional[np.ndarray]]]] = {
            BoxOnlyOutput: self._decode_box_only,
            FusedGridOutput: self._decode_fused_grid,
            SplitHeadsOutput: self._decode_split_heads,
        }

    def decode(self, output: RawOutput, source_size: Tuple[int, int]) -> List[Candidate]:
        """
        Args:
            output: one of BoxOnlyOutput / FusedGridOutput / SplitHeadsOutput
            source_size: (width, height) of the original frame
        """

        handler = self._handlers.get(type(output))
        if handler is None:
            raise MalformedOutput(f"Unsupported raw output type: {type(output).__name__}")

        src_w, src_h = source_size
        if src_w <= 0 or src_h <= 0:
            raise ValueError(f"source_size must be positive, got {source_size}")

        cxcywh, scores, class_ids = handler(output)
        candidates = self._to_candidates(cxcywh, scores, class_ids, (float(src_w), float(src_h)))
        logger.debug("Decoded %d candidate(s) from %d slot(s)", len(candidates), cxcywh.shape[0])
        return candidates

    # ------------------------------------------------------------------ #
    # Per-layout decoding
    # ------------------------------------------------------------------ #
    def _decode_box_only(self, output: BoxOnlyOutput):
        boxes = self._boxes(output.boxes, "boxes")
        scores = np.full(boxes.shape[0], self.cfg.placeholder_confidence, dtype=np.float64)
        return boxes, scores, None

    def _decode_fused_grid(self, output: FusedGridOutput):
        p = _squeeze_batch(output.rows, "rows")
        if p.ndim != 2:
            raise MalformedOutput(f"Fused grid output must be 2-D, got shape {p.shape}")

        expected_cols = None if self.cfg.num_classes is None else 5 + self.cfg.num_classes
        if expected_cols is not None:
            if p.shape[1] != expected_cols and p.shape[0] == expected_cols:
                # Channels-first export: (5 + C, N).
                p = p.T
            if p.shape[1] != expected_cols:
                raise MalformedOutput(f"Fused grid output needs {expected_cols} columns, got shape {p.shape}")
        elif p.shape[1] < 6:
            raise MalformedOutput(f"Fused grid output needs at least 6 columns, got shape {p.shape}")

        self._check_count(p.shape[0])
        p = p.astype(np.float64)

        boxes = p[:, :4]
        objectness = p[:, 4]
        class_scores = p[:, 5:]
        class_ids = np.argmax(class_scores, axis=1)
        class_conf = class_scores[np.arange(class_scores.shape[0]), class_ids]
        scores = objectness * class_conf

        keep = scores > self.cfg.probability_threshold
        return boxes[keep], scores[keep], class_ids[keep]

    def _decode_split_heads(self, output: SplitHeadsOutput):
        boxes = self._boxes(output.boxes, "boxes")
        scores = _squeeze_batch(output.scores, "scores", ndim=1).astype(np.float64)
        classes = _squeeze_batch(output.classes, "classes", ndim=1).astype(np.float64)

        if scores.ndim != 1 or classes.ndim != 1:
            raise MalformedOutput(f"scores/classes must be 1-D, got {scores.shape} and {classes.shape}")
        n = boxes.shape[0]
        if scores.shape[0] != n or classes.shape[0] != n:
            raise MalformedOutput(
                f"Split heads disagree on box count: boxes={n}, scores={scores.shape[0]}, classes={classes.shape[0]}"
            )

        class_ids = np.rint(np.where(np.isfinite(classes), classes, -1.0)).astype(np.int64)

        keep = scores > self.cfg.probability_threshold
        return boxes[keep], scores[keep], class_ids[keep]

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    def _boxes(self, arr: np.ndarray, name: str) -> np.ndarray:
        b = _squeeze_batch(arr, name)
        if b.ndim != 2 or b.shape[1] != 4:
            raise MalformedOutput(f"{name} must have shape (N, 4), got {b.shape}")
        self._check_count(b.shape[0])
        return b.astype(np.float64)

    def _check_count(self, n: int) -> None:
        if self.cfg.detection_count is not None and n != self.cfg.detection_count:
            raise MalformedOutput(f"Expected {self.cfg.detection_count} box slots, got {n}")

    def _to_candidates(
        self,
        cxcywh: np.ndarray,
        scores: np.ndarray,
        class_ids: Optional[np.ndarray],
        source_size: Tuple[float, float],
    ) -> List[Candidate]:
        if cxcywh.shape[0] == 0:
            return []

        src_w, src_h = source_size
        with np.errstate(invalid="ignore", over="ignore"):
            cx, cy, w, h = cxcywh.T
            finite = np.isfinite(cxcywh).all(axis=1) & np.isfinite(scores)
            valid = finite & (w > 0) & (h > 0)

            x1 = np.clip(cx - w / 2, 0.0, 1.0) * src_w
            y1 = np.clip(cy - h / 2, 0.0, 1.0) * src_h
            x2 = np.clip(cx + w / 2, 0.0, 1.0) * src_w
            y2 = np.clip(cy + h / 2, 0.0, 1.0) * src_h

            pw = x2 - x1
            ph = y2 - y1
            valid &= (pw > 0) & (ph > 0) & (pw > self.cfg.min_box_extent) & (ph > self.cfg.min_box_extent)

        confidences = np.clip(scores, 0.0, 1.0)
        out: List[Candidate] = []
        for i in np.flatnonzero(valid):
            if class_ids is None:
                cls_id, label = None, self.cfg.placeholder_label
            else:
                cls_id = int(class_ids[i])
                label = label_for(cls_id, self.cfg.labels)
            out.append(
                Candidate(
                    box=Box(float(x1[i]), float(y1[i]), float(x2[i]), float(y2[i]), BoxSpace.SOURCE_PIXELS),
                    confidence=float(confidences[i]),
                    class_id=cls_id,
                    label=label,
                )
            )
        return out


def _squeeze_batch(arr: np.ndarray, name: str, ndim: int = 2) -> np.ndarray:
    p = np.asarray(arr)
    if p.ndim == ndim + 1:
        if p.shape[0] != 1:
            raise MalformedOutput(f"Batch > 1 is not supported for {name} (got shape {p.shape}).")
        p = p[0]
    if ndim == 1 and p.ndim == 2 and p.shape[1] == 1:
        p = p[:, 0]
    return p
