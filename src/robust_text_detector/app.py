"""Command-line entry point: detect the text region of one image."""

from __future__ import annotations

import argparse
import logging
import sys

import cv2

from robust_text_detector.debug_service import DebugService, is_debug_enabled
from robust_text_detector.detector import DetectorConfig, RobustTextDetector
from robust_text_detector.errors import CapacityExceededError, PreconditionError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_TEXT = 1
EXIT_BAD_INPUT = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="robust-text-detector",
        description="Find the text region of an image with edge-enhanced MSER.",
    )
    parser.add_argument("image", help="Input image (any format OpenCV reads).")
    parser.add_argument(
        "-o", "--output",
        help="Write the stroke mask cropped to the text region here.",
    )
    parser.add_argument(
        "--debug-dir",
        help="Dump every pipeline stage into a session folder under this directory.",
    )
    parser.add_argument(
        "--max-components", type=int, default=DetectorConfig.max_conn_comp_count,
        help="Provisional label capacity per labeling pass (default: %(default)s).",
    )
    parser.add_argument(
        "--single-hop", action="store_true",
        help="Use single-hop stroke width propagation.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def run(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    image = cv2.imread(args.image, cv2.IMREAD_COLOR)
    if image is None:
        logger.error("Cannot read image: %s", args.image)
        return EXIT_BAD_INPUT

    debug: DebugService | None = None
    if args.debug_dir:
        debug = DebugService(args.debug_dir)
    elif is_debug_enabled():
        debug = DebugService()

    config = DetectorConfig(
        max_conn_comp_count=args.max_components,
        transitive_stroke_flood=not args.single_hop,
    )

    try:
        mask, rect = RobustTextDetector(config, debug).apply(image)
    except (PreconditionError, CapacityExceededError) as e:
        logger.error("Detection failed: %s", e, exc_info=True)
        return EXIT_BAD_INPUT
    finally:
        if debug:
            debug.shutdown()

    if rect is None:
        print("no text region found")
        return EXIT_NO_TEXT

    x, y, w, h = rect
    print(f"{x} {y} {w} {h}")

    if args.output:
        cropped = mask[y : y + h, x : x + w]
        if not cv2.imwrite(args.output, cropped):
            logger.error("Cannot write output: %s", args.output)
            return EXIT_BAD_INPUT

    return EXIT_OK


def main() -> None:
    sys.exit(run())
