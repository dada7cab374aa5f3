from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from detect_kit import COCO_CLASS_NAMES, DecoderConfig, FrameConverterConfig, NMSConfig, OutputLayout, load_class_names


@dataclass(frozen=True)
class DetectorProfile:
    """
    Static detector configuration, resolved once at construction.
    """

    schema_version: int = 1
    layout: OutputLayout = OutputLayout.FUSED_GRID
    input_size: int = 640
    detection_count: Optional[int] = 8400
    num_classes: int = 80
    probability_threshold: float = 0.5
    iou_threshold: float = 0.2
    detection_interval_ms: int = 1000
    class_agnostic_nms: bool = True
    min_box_extent: float = 10.0
    jpeg_quality: Optional[int] = 70
    max_preview_side: int = 1024
    labels: Tuple[str, ...] = COCO_CLASS_NAMES

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("detector profile schema_version must be 1")
        if self.input_size <= 0:
            raise ValueError("input_size must be > 0")
        if self.detection_count is not None and self.detection_count <= 0:
            raise ValueError("detection_count must be > 0")
        if self.num_classes <= 0:
            raise ValueError("num_classes must be > 0")
        if not (0.0 <= self.probability_threshold < 1.0):
            raise ValueError("probability_threshold must be in [0, 1)")
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be in [0, 1]")
        if self.detection_interval_ms < 0:
            raise ValueError("detection_interval_ms must be >= 0")
        if self.min_box_extent < 0:
            raise ValueError("min_box_extent must be >= 0")
        if self.jpeg_quality is not None and not (1 <= self.jpeg_quality <= 100):
            raise ValueError("jpeg_quality must be in [1, 100]")
        if self.max_preview_side <= 0:
            raise ValueError("max_preview_side must be > 0")
        if not self.labels:
            raise ValueError("labels must not be empty")

    def decoder_config(self) -> DecoderConfig:
        return DecoderConfig(
            probability_threshold=self.probability_threshold,
            min_box_extent=self.min_box_extent,
            num_classes=self.num_classes,
            detection_count=self.detection_count,
            labels=tuple(self.labels),
        )

    def nms_config(self) -> NMSConfig:
        return NMSConfig(iou_threshold=self.iou_threshold, class_agnostic=self.class_agnostic_nms)

    def converter_config(self) -> FrameConverterConfig:
        return FrameConverterConfig(jpeg_quality=self.jpeg_quality)


def _require_number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str, default: Optional[int], *, nullable: bool = False) -> Optional[int]:
    value = payload.get(key, default)
    if value is None and nullable:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def load_detector_profile(path: Path) -> DetectorProfile:
    """
    Load a JSON detector profile. Keys other than `schema_version` are optional
    and fall back to the reference model defaults.

    `labels_path` points at a `names:` metadata file; relative paths resolve
    against the profile's directory.
    """

    if not path.exists():
        raise FileNotFoundError(f"Detector profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector profile must be a JSON object")

    allowed = {
        "schema_version",
        "layout",
        "input_size",
        "detection_count",
        "num_classes",
        "probability_threshold",
        "iou_threshold",
        "detection_interval_ms",
        "class_agnostic_nms",
        "min_box_extent",
        "jpeg_quality",
        "max_preview_side",
        "labels_path",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector profile keys: {unknown}")

    if "schema_version" not in payload:
        raise ValueError("Missing required key: schema_version")
    defaults = DetectorProfile()

    layout_raw = payload.get("layout", defaults.layout.value)
    try:
        layout = OutputLayout(layout_raw)
    except ValueError as exc:
        raise ValueError(f"layout must be one of {[l.value for l in OutputLayout]}, got {layout_raw!r}") from exc

    class_agnostic = payload.get("class_agnostic_nms", defaults.class_agnostic_nms)
    if not isinstance(class_agnostic, bool):
        raise ValueError("class_agnostic_nms must be a boolean")

    labels = defaults.labels
    labels_path = payload.get("labels_path")
    if labels_path is not None:
        if not isinstance(labels_path, str):
            raise ValueError("labels_path must be a string if provided")
        resolved = Path(labels_path)
        if not resolved.is_absolute():
            resolved = path.parent / resolved
        labels = tuple(load_class_names(str(resolved)))

    return DetectorProfile(
        schema_version=_require_int(payload, "schema_version", None),
        layout=layout,
        input_size=_require_int(payload, "input_size", defaults.input_size),
        detection_count=_require_int(payload, "detection_count", defaults.detection_count, nullable=True),
        num_classes=_require_int(payload, "num_classes", defaults.num_classes),
        probability_threshold=_require_number(payload, "probability_threshold", defaults.probability_threshold),
        iou_threshold=_require_number(payload, "iou_threshold", defaults.iou_threshold),
        detection_interval_ms=_require_int(payload, "detection_interval_ms", defaults.detection_interval_ms),
        class_agnostic_nms=class_agnostic,
        min_box_extent=_require_number(payload, "min_box_extent", defaults.min_box_extent),
        jpeg_quality=_require_int(payload, "jpeg_quality", defaults.jpeg_quality, nullable=True),
        max_preview_side=_require_int(payload, "max_preview_side", defaults.max_preview_side),
        labels=labels,
    )
