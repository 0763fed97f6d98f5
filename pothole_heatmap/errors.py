"""
Error types raised by the heatmap core.

Both concrete errors also subclass ValueError so callers that already
guard numeric input with ``except ValueError`` keep working.
"""


class HeatmapError(Exception):
    """Base class for all errors raised by this package."""


class MalformedTensorError(HeatmapError, ValueError):
    """The raw output tensor does not have the expected rank or layout.

    Fatal to the decode call. The core never retries; the caller decides
    whether to request a fresh tensor.
    """


class InvalidGeometryError(HeatmapError, ValueError):
    """A detection was constructed with non-positive or non-finite geometry."""
