"""
Configuration management for the pothole heatmap system.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No decoding, density, or I/O logic belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: pothole_heatmap/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Properties of the external detector's output.

    Attributes:
        input_size: Side length of the square model input space the raw
                    tensor coordinates are expressed in.
        label: Label attached to every decoded detection.
    """

    input_size: int = 640
    label: str = "pothole"


@dataclass(frozen=True)
class DetectionConfig:
    """Decoding and suppression thresholds.

    Attributes:
        confidence_threshold: Minimum confidence to accept a candidate.
        iou_threshold: IoU above which non-maximum suppression drops a box.
        min_box_size: Minimum clamped box width/height in pixels.
    """

    confidence_threshold: float = 0.5
    iou_threshold: float = 0.4
    min_box_size: float = 5.0


@dataclass(frozen=True)
class HeatmapConfig:
    """Density heatmap parameters.

    Attributes:
        enabled: Default visibility of the heatmap overlay.
        min_bandwidth: Minimum KDE kernel bandwidth in pixels.
        blur_kernel_size: Size of the separable smoothing kernel.
        overlay_opacity: Global opacity used when blending the overlay.
        background_color: RGB color the heatmap layer is flattened onto.
    """

    enabled: bool = True
    min_bandwidth: float = 30.0
    blur_kernel_size: int = 9
    overlay_opacity: float = 0.8
    background_color: Tuple[int, int, int] = (15, 25, 55)


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Image file or directory of images. Each image is paired
                with a sibling ``<stem>.npy`` raw tensor or a
                ``<stem>.json`` list of pre-decoded detections.
    """

    source: str = "input/"


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'display', 'save_image', 'save_json', 'save_csv'.
              Example: "save_image,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "save_image,save_json"
    save_path: str = "output/"


@dataclass(frozen=True)
class VisualizationConfig:
    """Bounding box rendering parameters.

    Attributes:
        palette: BGR colors cycled through per detection index.
        thickness: Line thickness in pixels.
        show_confidence: Whether to render the label and confidence tag.
    """

    palette: Tuple[Tuple[int, int, int], ...] = (
        (0, 255, 0),
        (107, 107, 255),
        (196, 205, 78),
        (61, 217, 255),
        (127, 207, 107),
    )
    thickness: int = 3
    show_confidence: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

VALID_OUTPUT_MODES = {"display", "save_image", "save_json", "save_csv"}


def parse_modes(mode: str) -> set:
    """Split a comma-separated output mode string into a set of modes."""
    return {m.strip() for m in mode.split(",") if m.strip()}


def _check_unit_interval(name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ValueError(f"{name} must be in [0.0, 1.0], got {value}.")


def _check_color(name: str, color) -> None:
    if len(color) != 3 or any(not (0 <= c <= 255) for c in color):
        raise ValueError(
            f"{name} must be three channel values in [0, 255], got {color}."
        )


def validate_config(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    invalid_modes = parse_modes(config.output.mode) - VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    _check_unit_interval(
        "detection.confidence_threshold", config.detection.confidence_threshold
    )
    _check_unit_interval("detection.iou_threshold", config.detection.iou_threshold)
    _check_unit_interval("heatmap.overlay_opacity", config.heatmap.overlay_opacity)

    if config.detection.min_box_size < 0:
        raise ValueError(
            f"detection.min_box_size must be non-negative, "
            f"got {config.detection.min_box_size}."
        )

    if config.model.input_size <= 0:
        raise ValueError(
            f"model.input_size must be positive, got {config.model.input_size}."
        )

    if not config.model.label:
        raise ValueError("model.label must be a non-empty string.")

    if config.heatmap.min_bandwidth <= 0:
        raise ValueError(
            f"heatmap.min_bandwidth must be positive, "
            f"got {config.heatmap.min_bandwidth}."
        )

    if config.heatmap.blur_kernel_size < 1:
        raise ValueError(
            f"heatmap.blur_kernel_size must be a positive integer, "
            f"got {config.heatmap.blur_kernel_size}."
        )

    _check_color("heatmap.background_color", config.heatmap.background_color)

    if not config.visualization.palette:
        raise ValueError("visualization.palette must contain at least one color.")
    for color in config.visualization.palette:
        _check_color("visualization.palette entry", color)

    if config.visualization.thickness <= 0:
        raise ValueError(
            f"visualization.thickness must be positive, "
            f"got {config.visualization.thickness}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length.

    Raises:
        ValueError: If the value is not a list of ``expected_len`` items.
    """
    if not isinstance(value, (list, tuple)):
        raise ValueError(
            f"Expected a list of {expected_len} values, got {value!r}"
        )
    if len(value) != expected_len:
        raise ValueError(
            f"Expected {expected_len} values, got {len(value)}: {value}"
        )
    return tuple(cast_type(v) for v in value)


def _parse_bool(value) -> bool:
    """Accept YAML booleans as well as env-style strings."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"Expected a boolean value, got {value!r}.")


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "input_size" in raw:
        kwargs["input_size"] = int(raw["input_size"])
    if "label" in raw:
        kwargs["label"] = str(raw["label"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    if "iou_threshold" in raw:
        kwargs["iou_threshold"] = float(raw["iou_threshold"])
    if "min_box_size" in raw:
        kwargs["min_box_size"] = float(raw["min_box_size"])
    return DetectionConfig(**kwargs)


def _build_heatmap_config(raw: dict) -> HeatmapConfig:
    """Build HeatmapConfig from a raw YAML dict."""
    kwargs = {}
    if "enabled" in raw:
        kwargs["enabled"] = _parse_bool(raw["enabled"])
    if "min_bandwidth" in raw:
        kwargs["min_bandwidth"] = float(raw["min_bandwidth"])
    if "blur_kernel_size" in raw:
        kwargs["blur_kernel_size"] = int(raw["blur_kernel_size"])
    if "overlay_opacity" in raw:
        kwargs["overlay_opacity"] = float(raw["overlay_opacity"])
    if "background_color" in raw:
        kwargs["background_color"] = _parse_tuple(raw["background_color"], 3, int)
    return HeatmapConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "palette" in raw:
        kwargs["palette"] = tuple(_parse_tuple(c, 3, int) for c in raw["palette"])
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "show_confidence" in raw:
        kwargs["show_confidence"] = _parse_bool(raw["show_confidence"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "POTHOLE_HEATMAP_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        POTHOLE_HEATMAP_DETECTION_IOU_THRESHOLD=0.5
        POTHOLE_HEATMAP_HEATMAP_ENABLED=false

    Each supported variable maps to one (section, key) pair.
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_INPUT_SIZE": ("model", "input_size"),
        f"{_ENV_PREFIX}MODEL_LABEL": ("model", "label"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}DETECTION_IOU_THRESHOLD": ("detection", "iou_threshold"),
        f"{_ENV_PREFIX}DETECTION_MIN_BOX_SIZE": ("detection", "min_box_size"),
        f"{_ENV_PREFIX}HEATMAP_ENABLED": ("heatmap", "enabled"),
        f"{_ENV_PREFIX}HEATMAP_MIN_BANDWIDTH": ("heatmap", "min_bandwidth"),
        f"{_ENV_PREFIX}HEATMAP_BLUR_KERNEL_SIZE": ("heatmap", "blur_kernel_size"),
        f"{_ENV_PREFIX}HEATMAP_OVERLAY_OPACITY": ("heatmap", "overlay_opacity"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        heatmap=_build_heatmap_config(raw.get("heatmap", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    validate_config(config)

    logger.debug("Configuration loaded: %s", config)
    return config
