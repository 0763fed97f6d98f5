"""
Visualization for the detection pipeline.

Responsibility:
    Draw bounding boxes with label/confidence tags onto a frame, and
    apply a rendered heatmap overlay. This is a pure rendering module:
    it produces annotated copies of the frame and performs no I/O
    (show_frame aside, which only opens windows).

Non-goals:
    - No file writing.
    - No detection, density, or model logic.
"""

from typing import List, Optional

import cv2
import numpy as np

from pothole_heatmap.colormap import apply_overlay
from pothole_heatmap.config import VisualizationConfig
from pothole_heatmap.detection import Detection

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_LABEL_PADDING = 5


def draw_detections(
    frame: np.ndarray,
    detections: List[Detection],
    config: VisualizationConfig,
) -> np.ndarray:
    """Draw bounding boxes and label tags onto a frame.

    Box colors cycle through ``config.palette`` by detection index.

    Args:
        frame: Input BGR image (not modified, a copy is returned).
        detections: List of Detection objects to render.
        config: Visualization parameters (palette, thickness, labels).

    Returns:
        A new BGR numpy array with detections drawn.
    """
    annotated = frame.copy()

    for index, det in enumerate(detections):
        color = config.palette[index % len(config.palette)]
        x1, y1 = int(round(det.x)), int(round(det.y))
        x2, y2 = int(round(det.x2)), int(round(det.y2))

        cv2.rectangle(
            annotated,
            (x1, y1),
            (x2, y2),
            color=color,
            thickness=config.thickness,
        )

        if config.show_confidence:
            label = f"{det.label} {det.confidence * 100:.1f}%"
            (text_w, text_h), _ = cv2.getTextSize(
                label, _FONT, _FONT_SCALE, _FONT_THICKNESS
            )

            # Tag above the box, or below if too close to the top
            label_y = y1 - _LABEL_PADDING
            if label_y - text_h - _LABEL_PADDING < 0:
                label_y = y2 + text_h + _LABEL_PADDING

            cv2.rectangle(
                annotated,
                (x1, label_y - text_h - _LABEL_PADDING),
                (x1 + text_w + _LABEL_PADDING * 2, label_y + _LABEL_PADDING),
                color=color,
                thickness=cv2.FILLED,
            )

            cv2.putText(
                annotated,
                label,
                (x1 + _LABEL_PADDING, label_y),
                _FONT,
                _FONT_SCALE,
                (0, 0, 0),  # Black text on colored background
                _FONT_THICKNESS,
                cv2.LINE_AA,
            )

    return annotated


def draw_heatmap(frame: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    """Return a copy of the BGR frame with the RGBA heatmap overlay applied."""
    return apply_overlay(frame, overlay)


def show_frame(
    frame: np.ndarray,
    detections: List[Detection],
    config: VisualizationConfig,
    overlay: Optional[np.ndarray] = None,
) -> int:
    """Show annotated frame (and heatmap, if given) and wait for a key.

    Args:
        frame: Input BGR image (not modified).
        detections: List of Detection objects to render.
        config: Visualization parameters.
        overlay: Optional RGBA heatmap overlay.

    Returns:
        The key code (int) pressed.
    """
    cv2.imshow("Detections", draw_detections(frame, detections, config))
    if overlay is not None:
        cv2.imshow("Density Heatmap", draw_heatmap(frame, overlay))
    return cv2.waitKey(0) & 0xFF
