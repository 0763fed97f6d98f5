"""
HeatmapPipeline: the single public API for detection post-processing.

This module is the ONLY intended programmatic entry point for consumers
of the library. All other modules are internal.

Public contract:
    HeatmapPipeline.detect(tensor, image_width, image_height) -> list[Detection]
    HeatmapPipeline.render_heatmap(detections, image_width, image_height) -> RGBA array
    HeatmapPipeline.process(tensor, image_width, image_height) -> PipelineResult

Constraints:
    - The tensor is already materialized by an external inference call.
    - Every method is stateless per call and deterministic.
    - Thread-safety is not guaranteed (single-threaded design).

Non-goals:
    - No model loading, inference, or input preprocessing.
    - No file reading, camera access, or I/O of any kind.
    - No tracking or temporal state.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

from pothole_heatmap.colormap import render_overlay, transparent_overlay
from pothole_heatmap.config import AppConfig, load_config, validate_config
from pothole_heatmap.density import density_peak, synthesize_density
from pothole_heatmap.detection import Detection, RawOutputTensor
from pothole_heatmap.postprocessor import decode_output
from pothole_heatmap.suppression import non_max_suppression
from pothole_heatmap.weighting import compute_weights

logger = logging.getLogger(__name__)

TensorLike = Union[RawOutputTensor, np.ndarray]


@dataclass(frozen=True)
class PipelineResult:
    """Output of one pipeline run.

    Attributes:
        detections: Final detections in descending confidence order.
        overlay: RGBA uint8 overlay sized like the image, or None when
                 the heatmap was not requested.
    """

    detections: List[Detection]
    overlay: Optional[np.ndarray] = None


class HeatmapPipeline:
    """Decoder, suppression and density heatmap wired together.

    Usage:
        pipeline = HeatmapPipeline()                     # Uses safe defaults
        pipeline = HeatmapPipeline(config=my_config)     # Custom config
        detections = pipeline.detect(tensor, w, h)       # Decode + NMS
        overlay = pipeline.render_heatmap(detections, w, h)

    Heatmap visibility is decided per call (``show_heatmap``) and falls
    back to ``config.heatmap.enabled``; the pipeline keeps no toggle state.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize the pipeline.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).

        Raises:
            ValueError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()
        else:
            validate_config(config)

        self._config = config

        logger.info(
            "HeatmapPipeline initialized (confidence_threshold=%.2f, iou_threshold=%.2f)",
            config.detection.confidence_threshold,
            config.detection.iou_threshold,
        )

    def detect(
        self,
        tensor: TensorLike,
        image_width: int,
        image_height: int,
    ) -> List[Detection]:
        """Decode a raw output tensor into final, de-duplicated detections.

        Args:
            tensor: RawOutputTensor or numpy array of shape [1, C, N].
            image_width: Original image width in pixels.
            image_height: Original image height in pixels.

        Returns:
            Detections in descending confidence order. Empty list if
            nothing is detected.

        Raises:
            TypeError: If tensor is neither a RawOutputTensor nor an ndarray.
            MalformedTensorError: If the tensor layout is invalid.
            ValueError: If image dimensions are not positive.
        """
        self._validate_dimensions(image_width, image_height)
        raw = self._as_raw_tensor(tensor)

        model_cfg = self._config.model
        det_cfg = self._config.detection
        candidates = decode_output(
            raw,
            image_width=image_width,
            image_height=image_height,
            confidence_threshold=det_cfg.confidence_threshold,
            input_size=model_cfg.input_size,
            min_box_size=det_cfg.min_box_size,
            label=model_cfg.label,
        )
        return non_max_suppression(candidates, det_cfg.iou_threshold)

    def suppress(self, detections: Sequence[Detection]) -> List[Detection]:
        """Run non-maximum suppression on pre-decoded detections."""
        return non_max_suppression(detections, self._config.detection.iou_threshold)

    def weights(
        self,
        detections: Sequence[Detection],
        image_width: int,
        image_height: int,
    ) -> List[float]:
        """Importance weight of each detection, in input order."""
        self._validate_dimensions(image_width, image_height)
        return compute_weights(detections, image_width, image_height)

    def density(
        self,
        detections: Sequence[Detection],
        image_width: int,
        image_height: int,
    ) -> np.ndarray:
        """Normalized density grid of shape (image_height, image_width)."""
        self._validate_dimensions(image_width, image_height)
        heat_cfg = self._config.heatmap
        grid = synthesize_density(
            detections,
            compute_weights(detections, image_width, image_height),
            image_width,
            image_height,
            min_bandwidth=heat_cfg.min_bandwidth,
            blur_kernel_size=heat_cfg.blur_kernel_size,
        )
        if detections:
            logger.debug("Density hotspot at %s", density_peak(grid))
        return grid

    def render_heatmap(
        self,
        detections: Sequence[Detection],
        image_width: int,
        image_height: int,
    ) -> np.ndarray:
        """Render the density heatmap as an RGBA overlay.

        Returns:
            RGBA uint8 array of shape (image_height, image_width, 4).
            Fully transparent when there are no detections.
        """
        self._validate_dimensions(image_width, image_height)
        if not detections:
            return transparent_overlay(image_width, image_height)

        heat_cfg = self._config.heatmap
        grid = self.density(detections, image_width, image_height)
        return render_overlay(
            grid,
            background=heat_cfg.background_color,
            opacity=heat_cfg.overlay_opacity,
        )

    def process(
        self,
        tensor: TensorLike,
        image_width: int,
        image_height: int,
        show_heatmap: Optional[bool] = None,
    ) -> PipelineResult:
        """Detect and, if requested, render the heatmap in one call.

        Args:
            tensor: Raw output tensor.
            image_width: Original image width in pixels.
            image_height: Original image height in pixels.
            show_heatmap: Whether to render the overlay. None falls back
                          to ``config.heatmap.enabled``.
        """
        detections = self.detect(tensor, image_width, image_height)
        return self._finish(detections, image_width, image_height, show_heatmap)

    def process_detections(
        self,
        detections: Sequence[Detection],
        image_width: int,
        image_height: int,
        show_heatmap: Optional[bool] = None,
    ) -> PipelineResult:
        """Same as process() for detections decoded elsewhere.

        The input is still passed through non-maximum suppression.
        Detections are expected in image coordinates; boxes entirely
        outside the image contribute nothing to the heatmap.
        """
        self._validate_dimensions(image_width, image_height)
        final = self.suppress(detections)
        return self._finish(final, image_width, image_height, show_heatmap)

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    def _finish(
        self,
        detections: List[Detection],
        image_width: int,
        image_height: int,
        show_heatmap: Optional[bool],
    ) -> PipelineResult:
        if show_heatmap is None:
            show_heatmap = self._config.heatmap.enabled

        overlay = None
        if show_heatmap:
            overlay = self.render_heatmap(detections, image_width, image_height)

        logger.debug(
            "Pipeline produced %d detections (heatmap=%s)",
            len(detections), show_heatmap,
        )
        return PipelineResult(detections=detections, overlay=overlay)

    @staticmethod
    def _as_raw_tensor(tensor: TensorLike) -> RawOutputTensor:
        """Accept a RawOutputTensor or wrap a numpy array.

        Raises:
            TypeError: For any other input type.
        """
        if isinstance(tensor, RawOutputTensor):
            return tensor
        if isinstance(tensor, np.ndarray):
            return RawOutputTensor.from_array(tensor)
        raise TypeError(
            f"Expected a RawOutputTensor or numpy ndarray, "
            f"got {type(tensor).__name__}. "
            f"Pass the materialized output of the inference session."
        )

    @staticmethod
    def _validate_dimensions(image_width: int, image_height: int) -> None:
        """Validate image dimensions against the API contract.

        Raises:
            TypeError: If a dimension is not an integer.
            ValueError: If a dimension is not positive.
        """
        for name, value in (("image_width", image_width), ("image_height", image_height)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise TypeError(
                    f"{name} must be an integer pixel count, "
                    f"got {type(value).__name__}."
                )
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}.")
