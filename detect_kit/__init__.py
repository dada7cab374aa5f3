"""
Camera frame -> detections core.

Planar YUV frames are converted to RGB, stretched into a fixed square float
tensor, run through an inference engine, decoded from one of three output
layouts and de-duplicated with greedy NMS. Framework-agnostic: NumPy arrays
in, NumPy arrays out of the engine. OpenCV handles colour conversion and
resizing; onnxruntime is only needed for the bundled backend.
"""

from .types import Box, BoxSpace, Candidate, DetectionResult, box_area, iou
from .errors import ConversionError, DetectKitError, InferenceUnavailable, MalformedOutput
from .frames import FrameConverter, FrameConverterConfig, Plane, RawFrame, limit_size
from .preprocess import InputTensor, TensorPreprocessor
from .decode import (
    BoxOnlyOutput,
    DecoderConfig,
    DetectionDecoder,
    FusedGridOutput,
    OutputLayout,
    SplitHeadsOutput,
    raw_output_from_arrays,
)
from .nms import NMSConfig, nms, suppress
from .runtime import DetectionPipeline, load_pipeline, find_project_root, resolve_path
from .metadata import COCO_CLASS_NAMES, UNKNOWN_LABEL, label_for, load_class_names

__all__ = [
    "Box",
    "BoxSpace",
    "Candidate",
    "DetectionResult",
    "box_area",
    "iou",
    "ConversionError",
    "DetectKitError",
    "InferenceUnavailable",
    "MalformedOutput",
    "FrameConverter",
    "FrameConverterConfig",
    "Plane",
    "RawFrame",
    "limit_size",
    "InputTensor",
    "TensorPreprocessor",
    "BoxOnlyOutput",
    "DecoderConfig",
    "DetectionDecoder",
    "FusedGridOutput",
    "OutputLayout",
    "SplitHeadsOutput",
    "raw_output_from_arrays",
    "NMSConfig",
    "nms",
    "suppress",
    "DetectionPipeline",
    "load_pipeline",
    "find_project_root",
    "resolve_path",
    "COCO_CLASS_NAMES",
    "UNKNOWN_LABEL",
    "label_for",
    "load_class_names",
]
