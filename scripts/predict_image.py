#!/usr/bin/env python3
"""Classify images with a saved classifier head.

Loads the backbone and the head once, then runs each image through the same
request handler a server would use, printing a per-image result table.

Usage::

    python scripts/predict_image.py \\
        --model-dir models/classifier-head \\
        path/to/dog.jpg path/to/other.png

    # Machine-readable output
    python scripts/predict_image.py --model-dir models/classifier-head \\
        --json path/to/dog.jpg
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.table import Table

from transfer_classifier.config import BackboneConfig
from transfer_classifier.inference.service import PredictionService
from transfer_classifier.schemas.prediction import PredictionResponse


def print_response(console: Console, image: Path, response: PredictionResponse) -> None:
    """Print one response as a Rich table."""
    if response.result is None:
        console.print(f"[red]{image}: HTTP {response.status_code} {response.error}[/red]")
        return

    result = response.result
    table = Table(title=f"{image.name}: {result.label} ({result.confidence_percent})")
    table.add_column("Class", style="cyan")
    table.add_column("Score", justify="right", style="green")
    for entry in sorted(result.scores, key=lambda s: s.score, reverse=True):
        table.add_row(entry.label, f"{entry.score:.4f}")
    console.print(table)


def main() -> None:
    parser = argparse.ArgumentParser(description="Classify images with a saved head")
    parser.add_argument("images", type=Path, nargs="+", help="Image file(s)")
    parser.add_argument(
        "--model-dir",
        type=Path,
        required=True,
        help="Directory containing model.json, weights.bin and labels.json",
    )
    parser.add_argument(
        "--backbone",
        choices=["mobilenet_v3_small", "mobilenet_v2", "resnet18"],
        default="mobilenet_v3_small",
        help="Backbone used at training time",
    )
    parser.add_argument(
        "--pooling",
        action="store_true",
        help="Backbone features were globally average-pooled at training time",
    )
    parser.add_argument(
        "--image-size", type=int, default=224, help="Input size used at training time"
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of tables")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=args.log_level)

    service = PredictionService(
        model_dir=args.model_dir,
        backbone=BackboneConfig(name=args.backbone, pooling=args.pooling),
        image_size=args.image_size,
    )
    service.load()

    console = Console()
    responses = []
    for image in args.images:
        response = service.handle(image)
        responses.append({"image": str(image), **response.model_dump()})
        if not args.json:
            print_response(console, image, response)

    if args.json:
        print(json.dumps(responses, indent=2))

    if any(r["status_code"] != 200 for r in responses):
        sys.exit(1)


if __name__ == "__main__":
    main()
