from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np

from detect_kit import ConversionError, DetectionPipeline, DetectionResult, FrameConverter, RawFrame, limit_size

from .config import DetectorProfile
from .gate import DetectionThrottle, FrameGate

logger = logging.getLogger(__name__)


class FrameOutcome(str, Enum):
    DROPPED = "dropped"  # busy, frame released unprocessed
    FAILED = "failed"  # conversion error, frame skipped
    PREVIEW = "preview"  # raster updated, detection skipped
    DETECTED = "detected"  # raster updated, detection ran


class LivePreviewSession:
    """
    Owns the mutable state around the detection core for one preview stream:
    the busy gate, the detection interval, the detect toggle, the latest
    raster and the latest results.

    `on_frame` is meant to be called from the frame source's worker thread. It
    blocks for the whole conversion + detection and always releases the frame
    right after conversion.
    """

    def __init__(
        self,
        detector: DetectionPipeline,
        *,
        profile: DetectorProfile = DetectorProfile(),
        converter: Optional[FrameConverter] = None,
        throttle: Optional[DetectionThrottle] = None,
        on_detection: Optional[Callable[[DetectionResult], None]] = None,
    ) -> None:
        self.detector = detector
        self.profile = profile
        self.converter = converter or FrameConverter(profile.converter_config())
        self.gate = FrameGate()
        self.throttle = throttle or DetectionThrottle(profile.detection_interval_ms)
        self.on_detection = on_detection

        self._state_lock = threading.Lock()
        self._detecting = False
        self.latest_raster: Optional[np.ndarray] = None
        self.results: List[DetectionResult] = []
        # (width, height) of the raster `results` refer to.
        self.result_image_size: Optional[Tuple[int, int]] = None

    @property
    def detecting(self) -> bool:
        return self._detecting

    def set_detecting(self, enabled: bool) -> None:
        """Turn detection on/off. Either way the current results are cleared."""
        with self._state_lock:
            self._detecting = bool(enabled)
            self.results = []
            self.result_image_size = None

    def on_frame(self, frame: RawFrame) -> FrameOutcome:
        if not self.gate.try_enter():
            frame.close()
            logger.debug("Frame dropped: previous frame still processing")
            return FrameOutcome.DROPPED

        try:
            return self._process(frame)
        finally:
            self.gate.leave()

    def _process(self, frame: RawFrame) -> FrameOutcome:
        try:
            with frame:
                raster = self.converter.convert(frame)
        except ConversionError as e:
            logger.warning("Skipping frame, conversion failed: %s", e)
            return FrameOutcome.FAILED

        raster = limit_size(raster, self.profile.max_preview_side)
        self.latest_raster = raster

        if not self._detecting or not self.throttle.try_acquire():
            return FrameOutcome.PREVIEW

        results = self.detector.detect(raster)
        with self._state_lock:
            # Detection was switched off while this frame was in flight.
            if not self._detecting:
                return FrameOutcome.PREVIEW
            self.results = results
            self.result_image_size = (int(raster.shape[1]), int(raster.shape[0]))

        if results and self.on_detection is not None:
            self.on_detection(results[0])
        return FrameOutcome.DETECTED

    def close(self) -> None:
        self.detector.close()
