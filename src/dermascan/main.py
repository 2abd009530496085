"""Command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

import onnx
from google.protobuf.message import DecodeError

from dermascan.config import get_settings
from dermascan.errors import AcquisitionError, DermascanError
from dermascan.labels import LABELS, describe
from dermascan.ml.bundle import write_bundle
from dermascan.pipeline import ClassificationPipeline
from dermascan.schemas import ErrorResponse, LabelInfo, LabelsResponse, PredictionResponse

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dermascan.config import Settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NO_IMAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dermascan",
        description="On-device skin lesion classification",
    )
    parser.add_argument("--model-dir", help="Directory holding the bundled model (overrides DERMASCAN_MODEL_DIR)")
    sub = parser.add_subparsers(dest="command", required=True)

    classify = sub.add_parser("classify", help="Classify a captured image")
    classify.add_argument("image", nargs="?", help="Image path or file:// URI")
    classify.add_argument("--json", action="store_true", help="Print the result as JSON")
    classify.add_argument("--async", dest="use_async", action="store_true", help="Run stages on the inference pool")

    labels = sub.add_parser("labels", help="List the label set")
    labels.add_argument("--json", action="store_true", help="Print the labels as JSON")

    bundle = sub.add_parser("bundle", help="Package an ONNX classifier as topology + weight shards")
    bundle.add_argument("source", help="Source .onnx model")
    bundle.add_argument("--out", required=True, help="Output directory")

    return parser


def _render(response: PredictionResponse) -> str:
    lines = [
        "Prediction Result",
        f"Detected Condition: {response.label}",
        f"Confidence: {response.confidence:.2f}%",
    ]
    if response.degraded:
        lines.append("Warning: the bundled model was unavailable; this result is not meaningful.")
    lines += ["", f"About {response.label}", response.description, "", response.disclaimer]
    return "\n".join(lines)


def _classify(settings: Settings, args: argparse.Namespace) -> int:
    pipeline = ClassificationPipeline(settings)
    try:
        if args.use_async:
            result = asyncio.run(pipeline.aclassify(args.image))
        else:
            result = pipeline.classify(args.image)
    except DermascanError as exc:
        code = EXIT_NO_IMAGE if isinstance(exc, AcquisitionError) else EXIT_FAILURE
        logger.error("%s: %s", type(exc).__name__, exc)
        if args.json:
            print(ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump_json(indent=2))
        else:
            print(str(exc), file=sys.stderr)
        return code
    finally:
        pipeline.close()

    response = PredictionResponse.from_result(result)
    print(response.model_dump_json(indent=2) if args.json else _render(response))
    return EXIT_OK


def _labels(args: argparse.Namespace) -> int:
    response = LabelsResponse(
        labels=[LabelInfo(index=i, name=name, description=describe(name)) for i, name in enumerate(LABELS)]
    )
    if args.json:
        print(response.model_dump_json(indent=2))
    else:
        for info in response.labels:
            print(f"{info.index}: {info.name}")
    return EXIT_OK


def _bundle(settings: Settings, args: argparse.Namespace) -> int:
    try:
        model = onnx.load(args.source)
        path = write_bundle(model, args.out, settings.topology_file, settings.weight_shards)
    except (OSError, ValueError, DecodeError) as exc:
        logger.error("Bundling %s failed: %s", args.source, exc)
        print(str(exc), file=sys.stderr)
        return EXIT_FAILURE
    print(f"Wrote {path}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Run the dermascan command line and return its exit code."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    if args.model_dir:
        settings = settings.model_copy(update={"model_dir": args.model_dir})

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.command == "classify":
        return _classify(settings, args)
    if args.command == "labels":
        return _labels(args)
    return _bundle(settings, args)


if __name__ == "__main__":
    sys.exit(main())
