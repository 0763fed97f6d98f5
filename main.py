"""
Pothole Heatmap CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire together
    the pipeline and I/O handlers, and run the batch loop.

Usage:
    python main.py --source captures/                     # Directory of images
    python main.py --source road.jpg --output-mode display
    python main.py --source captures/ --no-heatmap --output-mode save_json,save_csv
    python main.py --config my_config.yaml

Every image needs a sibling ``<stem>.npy`` raw detector tensor or
``<stem>.json`` list of detections.

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from pothole_heatmap.config import AppConfig, load_config, validate_config
from pothole_heatmap.errors import HeatmapError
from pothole_heatmap.input_handler import InputHandler
from pothole_heatmap.output_handler import OutputHandler
from pothole_heatmap.pipeline import HeatmapPipeline


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Pothole Heatmap: detection post-processing and density heatmaps",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: image file or directory of images with .npy/.json payloads.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        help="Detection confidence threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--iou",
        type=float,
        help="NMS IoU threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--no-heatmap",
        action="store_true",
        help="Skip rendering the density heatmap.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s). Use comma-separated values for multiple outputs: "
             "display, save_image, save_json, save_csv. "
             "Example: 'save_image,save_json'. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )

    return parser.parse_args()


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a copy of ``config`` with command-line overrides applied."""
    if args.source is not None:
        config = replace(config, input=replace(config.input, source=args.source))

    if args.confidence is not None:
        config = replace(config, detection=replace(
            config.detection, confidence_threshold=args.confidence))

    if args.iou is not None:
        config = replace(config, detection=replace(
            config.detection, iou_threshold=args.iou))

    if args.no_heatmap:
        config = replace(config, heatmap=replace(config.heatmap, enabled=False))

    if args.output_mode is not None:
        config = replace(config, output=replace(config.output, mode=args.output_mode))

    if args.output_path is not None:
        config = replace(config, output=replace(config.output, save_path=args.output_path))

    validate_config(config)
    return config


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        pipeline = HeatmapPipeline(config)
        input_handler = InputHandler(
            source=config.input.source,
            default_label=config.model.label,
        )
        output_handler = OutputHandler(config)

    except (FileNotFoundError, ValueError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Processing Loop
    logger.info("Processing %d image(s). Press 'q' or ESC to quit in display mode.",
                len(input_handler))

    item_count = 0
    detection_count = 0
    start_time = time.perf_counter()

    try:
        for item in input_handler:
            try:
                if item.tensor is not None:
                    result = pipeline.process(item.tensor, item.width, item.height)
                else:
                    result = pipeline.process_detections(
                        item.detections, item.width, item.height)
            except HeatmapError as e:
                logger.warning("Skipping %s: %s", item.name, e)
                continue

            item_count += 1
            detection_count += len(result.detections)
            logger.info("%s: %d detection(s)", item.name, len(result.detections))

            # process returns False on exit request (e.g. 'q' key)
            if not output_handler.process(item, result):
                logger.info("Stopping loop per user request.")
                break

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        elapsed = time.perf_counter() - start_time
        output_handler.finalize()

        logger.info(
            "Processing finished. Images: %d. Detections: %d. Elapsed: %.2fs.",
            item_count, detection_count, elapsed,
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
