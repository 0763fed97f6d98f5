"""
Output handling for the batch CLI.

Responsibility:
    Route pipeline results to configured output sinks: display window,
    saved annotated/heatmap images, JSON, or CSV. Supports multiple
    orthogonal outputs simultaneously.

Non-goals:
    - No detection or density logic.
    - No input acquisition.
"""

import logging
from pathlib import Path
from typing import List

import cv2

from pothole_heatmap.config import AppConfig, get_project_root, parse_modes
from pothole_heatmap.input_handler import InputItem
from pothole_heatmap.pipeline import PipelineResult
from pothole_heatmap.serializer import FrameRecord, save_csv, save_json
from pothole_heatmap.visualizer import draw_detections, draw_heatmap, show_frame

logger = logging.getLogger(__name__)

_FILE_MODES = {"save_image", "save_json", "save_csv"}


class OutputHandler:
    """Routes pipeline results to configured output sinks.

    Supports orthogonal outputs - multiple modes can be active simultaneously:
        - 'display': Show annotated image and heatmap in OpenCV windows.
        - 'save_image': Write ``<name>_detections.png`` and, when an
          overlay was rendered, ``<name>_heatmap.png``.
        - 'save_json': Accumulate detections, write JSON on finalize.
        - 'save_csv': Accumulate detections, write CSV on finalize.

    Usage:
        handler = OutputHandler(config)
        handler.process(item, result)
        ...
        handler.finalize()  # Flush any buffered output
    """

    def __init__(self, config: AppConfig) -> None:
        """Initialize the output handler.

        Args:
            config: Application configuration (output mode, paths, vis params).
        """
        self._config = config
        self._modes = parse_modes(config.output.mode)

        # Buffer for serialization modes
        self._records: List[FrameRecord] = []

        # Resolve output path
        save_path = Path(config.output.save_path)
        if not save_path.is_absolute():
            save_path = get_project_root() / save_path
        self._save_path = save_path

        if self._modes & _FILE_MODES:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info("OutputHandler initialized: modes=%s, save_path=%s",
                    self._modes, self._save_path)

    @property
    def save_path(self) -> Path:
        """Resolved directory output artifacts are written to."""
        return self._save_path

    def process(self, item: InputItem, result: PipelineResult) -> bool:
        """Process one item's results through the output pipeline.

        Args:
            item: The input image and its metadata.
            result: Detections and optional overlay for that image.

        Returns:
            True to continue processing, False to signal the caller
            should stop (e.g., user pressed 'q' in display mode).
        """
        should_continue = True

        if "display" in self._modes:
            if not self._handle_display(item, result):
                should_continue = False

        if "save_image" in self._modes:
            self._handle_save_image(item, result)

        if "save_json" in self._modes or "save_csv" in self._modes:
            self._records.append(FrameRecord(
                frame_id=item.frame_id,
                name=item.name,
                image_width=item.width,
                image_height=item.height,
                detections=list(result.detections),
            ))

        return should_continue

    def _handle_display(self, item: InputItem, result: PipelineResult) -> bool:
        """Show annotated image in a window. Returns False on quit key."""
        key = show_frame(
            item.image, result.detections, self._config.visualization, result.overlay
        )

        if key == ord("q") or key == 27:  # 'q' or ESC
            logger.info("Quit signal received (key press).")
            return False

        return True

    def _handle_save_image(self, item: InputItem, result: PipelineResult) -> None:
        """Save the annotated image and heatmap as image files."""
        annotated = draw_detections(item.image, result.detections, self._config.visualization)
        boxes_file = self._save_path / f"{item.name}_detections.png"
        cv2.imwrite(str(boxes_file), annotated)
        logger.debug("Saved %s", boxes_file)

        if result.overlay is not None:
            heatmap_file = self._save_path / f"{item.name}_heatmap.png"
            cv2.imwrite(str(heatmap_file), draw_heatmap(item.image, result.overlay))
            logger.debug("Saved %s", heatmap_file)

    def finalize(self) -> None:
        """Flush buffered output and release resources.

        Must be called after all items have been processed.
        """
        if "save_json" in self._modes and self._records:
            save_json(self._records, str(self._save_path / "detections.json"))

        if "save_csv" in self._modes and self._records:
            save_csv(self._records, str(self._save_path / "detections.csv"))

        if "display" in self._modes:
            cv2.destroyAllWindows()

        self._records.clear()
        logger.info("OutputHandler finalized.")
