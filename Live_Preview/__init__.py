"""
Live preview orchestration built on top of `detect_kit`.

The detection core stays stateless inside `detect_kit`; this package owns the
per-stream state around it:
- busy gate (one frame in flight, later frames dropped)
- detection interval and the detect on/off toggle
- latest preview raster and latest results
- detector profile (JSON) and camera/video ingestion
"""

from __future__ import annotations

from .config import DetectorProfile, load_detector_profile
from .gate import DetectionThrottle, FrameGate, GateState
from .ingest import CaptureInfo, frame_from_bgr, get_capture_info, iter_frames, open_capture
from .preview import FrameOutcome, LivePreviewSession

__all__ = [
    "DetectorProfile",
    "load_detector_profile",
    "DetectionThrottle",
    "FrameGate",
    "GateState",
    "CaptureInfo",
    "frame_from_bgr",
    "get_capture_info",
    "iter_frames",
    "open_capture",
    "FrameOutcome",
    "LivePreviewSession",
]
