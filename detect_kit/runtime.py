from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from .backends import InferenceEngine
from .decode import DecoderConfig, DetectionDecoder, OutputLayout, raw_output_from_arrays
from .errors import InferenceUnavailable, MalformedOutput
from .nms import NMSConfig, suppress
from .preprocess import InputTensor, TensorPreprocessor
from .types import DetectionResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_project_root(start: Optional[PathLike] = None) -> Path:
    """
    Nearest directory at or above `start` (default: cwd) holding a
    `pyproject.toml` or `.git`, so `Models/yolov11n.onnx` resolves the same
    from any working directory. Falls back to `start` itself.
    """

    here = Path(start if start is not None else Path.cwd()).resolve()
    for candidate in (here, *here.parents):
        if (candidate / "pyproject.toml").exists() or (candidate / ".git").exists():
            return candidate
    return here


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    p = Path(path)
    if p.is_absolute():
        return p
    base = find_project_root() if root in (None, "auto") else Path(root).resolve()
    return (base / p).resolve()


class DetectionPipeline:
    """
    Preprocess (stretch + normalize) -> inference -> decode -> NMS.

    Takes RGB rasters (H, W, 3) and returns `DetectionResult`s in the raster's
    pixel coordinates. Never raises for engine or output problems: a missing,
    closed or failing engine and malformed outputs all give an empty list.
    """

    def __init__(
        self,
        engine: Optional[InferenceEngine],
        *,
        layout: OutputLayout,
        input_size: int = 640,
        decoder_cfg: DecoderConfig = DecoderConfig(),
        nms_cfg: NMSConfig = NMSConfig(),
    ):
        self.engine = engine
        self.layout = OutputLayout(layout)
        self.preprocessor = TensorPreprocessor(input_size)
        self.decoder = DetectionDecoder(decoder_cfg)
        self.nms_cfg = nms_cfg

    @property
    def is_ready(self) -> bool:
        return self.engine is not None and self.engine.is_loaded

    def detect(self, image_rgb: np.ndarray) -> List[DetectionResult]:
        if not self.is_ready:
            return []

        src_h, src_w = image_rgb.shape[:2]
        tensor = self.preprocessor(image_rgb)
        logger.debug("Input raster %dx%d, resized %dx%d", src_w, src_h, tensor.size, tensor.size)

        try:
            arrays = self._run_engine(tensor)
            raw = raw_output_from_arrays(self.layout, arrays)
            candidates = self.decoder.decode(raw, (src_w, src_h))
        except InferenceUnavailable as e:
            logger.warning("Inference unavailable, no detections this frame: %s", e)
            return []
        except MalformedOutput as e:
            logger.warning("Malformed model output, no detections this frame: %s", e)
            return []

        results = suppress(candidates, self.nms_cfg)
        logger.debug("Kept %d of %d candidate(s) after NMS", len(results), len(candidates))
        return results

    __call__ = detect

    def _run_engine(self, tensor: InputTensor) -> Sequence[np.ndarray]:
        try:
            return self.engine.run(tensor)
        except InferenceUnavailable:
            raise
        except Exception as e:
            logger.error("Inference engine failed", exc_info=True)
            raise InferenceUnavailable(f"{type(e).__name__}: {e}") from e

    def close(self) -> None:
        if self.engine is not None:
            self.engine.close()

    def __enter__(self) -> "DetectionPipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def load_pipeline(
    model_path: PathLike,
    *,
    layout: OutputLayout,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    input_size: int = 640,
    decoder_cfg: DecoderConfig = DecoderConfig(),
    nms_cfg: NMSConfig = NMSConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_names: Optional[Sequence[str]] = None,
    channels_first: bool = False,
) -> DetectionPipeline:
    """
    Create a pipeline for a model on disk.

    A model that fails to load is logged and leaves the pipeline without an
    engine; `detect` then returns an empty list instead of failing.

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        layout: output layout the model was exported with
        backend: "onnxruntime" or None to infer from extension
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen != "onnxruntime":
        raise ValueError(f"Unsupported backend: {backend!r}")

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    engine: Optional[InferenceEngine]
    try:
        engine = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                input_name=onnx_input_name,
                output_names=onnx_output_names,
                channels_first=channels_first,
            ),
        )
    except ImportError:
        raise
    except Exception:
        logger.error("Error initializing inference engine for %s", resolved, exc_info=True)
        engine = None

    return DetectionPipeline(
        engine,
        layout=layout,
        input_size=input_size,
        decoder_cfg=decoder_cfg,
        nms_cfg=nms_cfg,
    )
