from __future__ import annotations


class DetectKitError(Exception):
    """Base class for failures raised inside the detection pipeline."""


class ConversionError(DetectKitError):
    """Raw camera frame could not be turned into an RGB raster."""


class InferenceUnavailable(DetectKitError):
    """The inference engine is not loaded, failed to load, or was closed."""


class MalformedOutput(DetectKitError):
    """Model output does not match the configured output layout."""
