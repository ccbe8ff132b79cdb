#!/usr/bin/env python3
"""
Entry point: extract nutrition facts from a label photo.

Usage:
    # Photo through Google Vision
    python scripts/extract_label.py path/to/label.jpg

    # Preset and output file
    python scripts/extract_label.py label.jpg --preset high_quality --output result.json

    # Re-run parsing on already recognized text (one line per row, no OCR call)
    python scripts/extract_label.py --text label.txt

Exit codes: 0 success, 2 quality rejection or OCR failure, 1 any other error.
Prints NutritionExtractionResult (contracts/extraction_result_dto.py) as JSON.
"""

import sys
import argparse
import asyncio
from pathlib import Path

# Add the project root to the path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
from loguru import logger

from config.settings import LOG_LEVEL, validate_config
from nutrilabel.application import ExtractionComponentFactory, ExtractionProgress
from nutrilabel.domain import (
    ExtractionCancelledError,
    ExtractionConfig,
    ImageQualityTooLowError,
    NoTextFoundError,
    NutritionExtractionError,
    OCRProcessingFailedError,
    ExtractionTimeoutError,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REJECTED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Nutrition label extraction")
    parser.add_argument("image", nargs="?", help="Path to the label photo")
    parser.add_argument("--text", help="Text file with already recognized lines (skips OCR)")
    parser.add_argument(
        "--preset",
        choices=ExtractionConfig.PRESETS,
        default="default",
        help="Extraction config preset",
    )
    parser.add_argument("--output", help="Write the JSON result to this file instead of stdout")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def print_progress(snapshot: ExtractionProgress) -> None:
    logger.debug(f"[CLI] {snapshot.stage.value} {snapshot.progress:.0%}")


async def run(args: argparse.Namespace) -> int:
    config = ExtractionConfig.preset(args.preset)

    if args.text:
        text_path = Path(args.text)
        if not text_path.exists():
            print(f"[ERROR] File not found: {text_path}")
            return EXIT_ERROR
        orchestrator = ExtractionComponentFactory.create_text_orchestrator(
            text_path.read_text(encoding="utf-8"),
            # Saved text has no real image: the quality gate is skipped
            config=config.with_overrides(
                enable_quality_analysis=False, minimum_quality_score=0.0, enable_preprocessing=False
            ),
        )
        # Any image will do, the recognizer ignores it
        image = np.zeros((8, 8), dtype=np.uint8)
    else:
        image_path = Path(args.image)
        if not image_path.exists():
            print(f"[ERROR] File not found: {image_path}")
            return EXIT_ERROR
        try:
            validate_config()
        except ValueError as e:
            print(f"[ERROR] {e}")
            return EXIT_ERROR
        orchestrator = ExtractionComponentFactory.create_orchestrator(config=config)
        image = image_path

    orchestrator.on_progress = print_progress

    try:
        result = await orchestrator.extract(image)
    except (ImageQualityTooLowError, OCRProcessingFailedError, NoTextFoundError) as e:
        print(f"[REJECTED] {e}")
        return EXIT_REJECTED
    except ExtractionTimeoutError as e:
        print(f"[ERROR] {e}")
        # Recognition timeouts count as OCR failures
        return EXIT_REJECTED if e.component == "TextRecognition" else EXIT_ERROR
    except (NutritionExtractionError, ExtractionCancelledError) as e:
        print(f"[ERROR] {e}")
        return EXIT_ERROR

    payload = result.to_json(indent=2)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"[SAVED] {args.output}")
    else:
        print(payload)

    print(result.extraction_metrics.summary, file=sys.stderr)
    for recommendation in result.recommendations:
        print(f"  [{recommendation.priority.value.upper()}] {recommendation.message}", file=sys.stderr)
    return EXIT_OK


def main() -> int:
    args = build_parser().parse_args()
    if not args.image and not args.text:
        build_parser().error("either IMAGE or --text is required")

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else LOG_LEVEL)

    try:
        return asyncio.run(run(args))
    except NutritionExtractionError as e:
        print(f"[ERROR] {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
