"""
Pothole Heatmap: detection post-processing and density heatmaps.

Public API:
    - HeatmapPipeline: The single entry point (decode, NMS, heatmap).
    - PipelineResult: Detections plus optional overlay from one run.
    - Detection: Data transfer object representing a detected object.
    - RawOutputTensor: Raw detector output handed to the pipeline.
    - MalformedTensorError, InvalidGeometryError: Error types.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    from pothole_heatmap import HeatmapPipeline

    pipeline = HeatmapPipeline()
    detections = pipeline.detect(output_tensor, image_width, image_height)
    overlay = pipeline.render_heatmap(detections, image_width, image_height)
"""

from pothole_heatmap.detection import Detection, RawOutputTensor
from pothole_heatmap.errors import HeatmapError, InvalidGeometryError, MalformedTensorError
from pothole_heatmap.pipeline import HeatmapPipeline, PipelineResult

__all__ = [
    "HeatmapPipeline",
    "PipelineResult",
    "Detection",
    "RawOutputTensor",
    "HeatmapError",
    "InvalidGeometryError",
    "MalformedTensorError",
]
