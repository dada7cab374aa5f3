from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import numpy as np

from ..errors import InferenceUnavailable
from ..preprocess import InputTensor

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CPUExecutionProvider"])
    - input_name: override the auto-selected input name if needed
    - output_names: outputs to fetch, in layout order (None = all, as declared by the model)
    - channels_first: feed (1, 3, N, N) instead of (1, N, N, 3)
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_names: Optional[Sequence[str]] = None
    channels_first: bool = False


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Owns an `InferenceSession`; `close()` drops it and later `run()` calls
    raise InferenceUnavailable. Also usable as a context manager.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime`."
            ) from e

        self._ort = ort
        self.cfg = cfg
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session: Any = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        if cfg.output_names is not None:
            self.output_names: List[str] = list(cfg.output_names)
        else:
            self.output_names = [o.name for o in self.session.get_outputs()]
        logger.info("Loaded ONNX model %s (outputs=%s)", self.model_path, self.output_names)

    @property
    def is_loaded(self) -> bool:
        return self.session is not None

    @property
    def providers_in_use(self) -> Sequence[str]:
        if self.session is None:
            return ()
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def run(self, tensor: InputTensor) -> List[np.ndarray]:
        if self.session is None:
            raise InferenceUnavailable(f"ONNX session for {self.model_path} is closed")
        blob = tensor.as_batch(channels_first=self.cfg.channels_first)
        try:
            outputs = self.session.run(self.output_names, {self.input_name: blob})
        except Exception as e:
            raise InferenceUnavailable(f"ONNX inference failed: {e}") from e
        return list(outputs)

    def close(self) -> None:
        self.session = None

    def __enter__(self) -> "OnnxRuntimeBackend":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
