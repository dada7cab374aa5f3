from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Callable, Optional


class GateState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"


class FrameGate:
    """
    Single-slot busy gate: IDLE -> PROCESSING -> IDLE.

    `try_enter()` is a non-blocking check-and-set. A frame that finds the gate
    PROCESSING is rejected; nothing is ever queued, so at most one frame is in
    flight.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.dropped = 0

    @property
    def state(self) -> GateState:
        return GateState.PROCESSING if self._lock.locked() else GateState.IDLE

    def try_enter(self) -> bool:
        if self._lock.acquire(blocking=False):
            return True
        self.dropped += 1
        return False

    def leave(self) -> None:
        if not self._lock.locked():
            raise RuntimeError("FrameGate.leave() called while IDLE")
        self._lock.release()


class DetectionThrottle:
    """
    Allow at most one detection per `interval_ms`.

    Elapsed time must be strictly greater than the interval. The first call
    always passes. Check and update happen under one lock.
    """

    def __init__(self, interval_ms: int = 1000, clock: Optional[Callable[[], float]] = None) -> None:
        if interval_ms < 0:
            raise ValueError("interval_ms must be >= 0")
        self.interval_ms = interval_ms
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._last_ms: Optional[float] = None

    def try_acquire(self) -> bool:
        now_ms = self._clock() * 1000.0
        with self._lock:
            if self._last_ms is not None and now_ms - self._last_ms <= self.interval_ms:
                return False
            self._last_ms = now_ms
            return True

    def reset(self) -> None:
        with self._lock:
            self._last_ms = None
