"""
Input handling for the batch CLI.

Responsibility:
    Enumerate input images and pair each one with the detector output
    recorded for it. Provides a uniform iterator yielding InputItem
    records.

    For an image ``road_001.jpg`` the payload is looked up next to it:
        - ``road_001.npy``  → raw output tensor (numpy array, [1, C, N])
        - ``road_001.json`` → pre-decoded detections
    The tensor wins when both exist.

Non-goals:
    - No camera or video capture.
    - No inference: tensors are produced by an external detector.
    - No detection, drawing, or output writing.

Robustness:
    - Validates the source at initialization time.
    - Logs and skips unreadable images and missing or broken payloads
      (never crashes the batch).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import cv2
import numpy as np

from pothole_heatmap.detection import Detection, RawOutputTensor
from pothole_heatmap.serializer import load_detections

logger = logging.getLogger(__name__)

# Image extensions recognized by this handler
_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}

_TENSOR_SUFFIX = ".npy"
_DETECTIONS_SUFFIX = ".json"


@dataclass(frozen=True, eq=False)
class InputItem:
    """One image and its detector payload.

    Exactly one of ``tensor`` and ``detections`` is set.
    """

    frame_id: int
    name: str
    image: np.ndarray
    tensor: Optional[RawOutputTensor] = None
    detections: Optional[List[Detection]] = None

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


class InputHandler:
    """Iterator over (image, payload) pairs from a file or directory.

    The source type is auto-detected at initialization:
        - File with image extension → single image
        - Directory path → all images in directory (sorted by name)

    Usage:
        handler = InputHandler(source="captures/")
        for item in handler:
            # process item.image with item.tensor or item.detections

    Invalid items are logged and skipped. The iterator never raises on
    a single bad item.
    """

    def __init__(self, source: str, default_label: Optional[str] = None) -> None:
        """Initialize the input handler and validate the source.

        Args:
            source: Image file path or directory of images.
            default_label: Label for pre-decoded detections that omit one.

        Raises:
            FileNotFoundError: If the source does not exist.
            ValueError: If the source is not an image or holds no images.
        """
        self._default_label = default_label
        source_str = str(source).strip()

        if os.path.isfile(source_str):
            ext = Path(source_str).suffix.lower()
            if ext not in _IMAGE_EXTENSIONS:
                raise ValueError(
                    f"Unrecognized file extension: '{ext}' for source '{source_str}'. "
                    f"Supported images: {_IMAGE_EXTENSIONS}."
                )
            self._image_paths = [Path(source_str)]
        elif os.path.isdir(source_str):
            self._image_paths = sorted(
                p for p in Path(source_str).iterdir()
                if p.suffix.lower() in _IMAGE_EXTENSIONS
            )
            if not self._image_paths:
                raise ValueError(
                    f"No image files found in directory: '{source_str}'. "
                    f"Supported extensions: {_IMAGE_EXTENSIONS}."
                )
            logger.info("Found %d images in directory: %s", len(self._image_paths), source_str)
        else:
            raise FileNotFoundError(
                f"Input source not found: '{source_str}'. "
                f"Provide a valid image file or directory."
            )

        logger.info("InputHandler initialized: %d image(s) from %s",
                    len(self._image_paths), source_str)

    def __len__(self) -> int:
        return len(self._image_paths)

    def __iter__(self) -> Iterator[InputItem]:
        """Iterate over input items in sorted path order.

        Yields:
            InputItem records; frame_id is the 0-based index of the
            image in the sorted listing (skipped images leave gaps).
        """
        for idx, path in enumerate(self._image_paths):
            image = cv2.imread(str(path))
            if image is None:
                logger.warning("Skipping unreadable image (frame_id=%d): %s", idx, path)
                continue

            item = self._load_payload(idx, path, image)
            if item is not None:
                yield item

    def _load_payload(self, idx: int, path: Path, image: np.ndarray) -> Optional[InputItem]:
        """Pair an image with its tensor or detections file, or None."""
        tensor_path = path.with_suffix(_TENSOR_SUFFIX)
        detections_path = path.with_suffix(_DETECTIONS_SUFFIX)

        if tensor_path.is_file():
            try:
                array = np.load(tensor_path, allow_pickle=False)
            except (OSError, ValueError) as e:
                logger.warning("Skipping %s: cannot read tensor %s (%s)", path.name, tensor_path, e)
                return None
            return InputItem(
                frame_id=idx,
                name=path.stem,
                image=image,
                tensor=RawOutputTensor.from_array(array),
            )

        if detections_path.is_file():
            try:
                detections = load_detections(str(detections_path), self._default_label)
            except (OSError, ValueError) as e:
                # json.JSONDecodeError is a ValueError
                logger.warning(
                    "Skipping %s: cannot read detections %s (%s)", path.name, detections_path, e
                )
                return None
            return InputItem(
                frame_id=idx,
                name=path.stem,
                image=image,
                detections=detections,
            )

        logger.warning(
            "Skipping %s: no %s tensor or %s detections next to it",
            path.name, _TENSOR_SUFFIX, _DETECTIONS_SUFFIX,
        )
        return None
