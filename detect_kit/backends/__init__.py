"""
Inference backends for detect_kit.

Backends are kept in a separate module so core functionality (conversion,
pre/post-processing) stays lightweight and can be used without installing
inference runtimes.
"""

from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np

from ..preprocess import InputTensor


class InferenceEngine(Protocol):
    """
    Capability the pipeline needs from a model: fixed-shape tensor in,
    one or more output arrays out. `close()` must be safe to call twice.

    `run` may raise anything; the pipeline turns any failure into an empty
    detection list for that frame.
    """

    @property
    def is_loaded(self) -> bool: ...

    def run(self, tensor: InputTensor) -> Sequence[np.ndarray]: ...

    def close(self) -> None: ...


__all__ = ["InferenceEngine"]
