"""Command-line entry point for GIF region editing."""

import argparse
import logging
import sys
from pathlib import Path

from mediasifter.core import ColorMetric, ColorSubstitutionRule, PipelineSettings
from mediasifter.core import data_uri, frame_extractor
from mediasifter.core.errors import GifEditError, ValidationError
from mediasifter.core.pipeline import GifEditPipeline
from mediasifter.main import configure_logging
from mediasifter.utils import validators

logger = logging.getLogger(__name__)

REGION_COMMANDS = {
    "replace": "Paint a rectangle with an opaque fill color (white by default)",
    "cutout": "Make a rectangle fully transparent, keeping its color channels",
    "punch": "Punch a transparent hole through a rectangle",
    "crop": "Crop every frame to a rectangle",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediasift",
        description="Edit regions and colors of animated GIFs while keeping their timing.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: MEDIASIFTER_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("info", help="Show dimensions, frame count, loop and delays")
    info.add_argument("input", type=Path, help="Path to source GIF")

    for name, help_text in REGION_COMMANDS.items():
        sub = subparsers.add_parser(name, help=help_text)
        _add_io_arguments(sub)
        sub.add_argument("--region", required=True, help="Rectangle as X,Y,W,H; zero width or height copies the input")
        if name == "replace":
            sub.add_argument("--fill", default="255,255,255", help="Fill color as R,G,B or #rrggbb (default: white)")

    recolor = subparsers.add_parser("recolor", help="Replace every pixel close to one color with another")
    _add_io_arguments(recolor)
    recolor.add_argument("--source", required=True, help="Color to replace (R,G,B or #rrggbb)")
    recolor.add_argument("--target", required=True, help="Replacement color (R,G,B or #rrggbb)")
    recolor.add_argument(
        "--fuzz",
        type=float,
        default=20.0,
        help="Maximum color distance to match, 0-100 (default: 20)",
    )
    recolor.add_argument(
        "--metric",
        choices=[metric.value for metric in ColorMetric],
        default=None,
        help="Color distance metric (default: MEDIASIFTER_COLOR_METRIC or ciede2000)",
    )
    return parser


def _add_io_arguments(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("input", type=Path, help="Path to source GIF")
    sub.add_argument("output", type=Path, help="Destination GIF path")
    sub.add_argument("--workers", default=None, help="Worker threads for per-frame transforms")
    sub.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate arguments and show the plan without writing output",
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "info":
            return _show_info(args.input)
        return _run_edit(args)
    except (GifEditError, ValidationError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


def _show_info(path: Path) -> int:
    info = frame_extractor.probe(path.read_bytes())
    loop = "none" if info.loop is None else ("forever" if info.loop == 0 else str(info.loop))
    print(f"{path}: {info.width}x{info.height}, {info.frame_count} frame(s), loop={loop}")
    print("delays (cs): " + ",".join(str(delay) for delay in info.delays_cs))
    return 0


def _run_edit(args: argparse.Namespace) -> int:
    settings = PipelineSettings.from_env()
    workers = validators.parse_optional_int(args.workers, "Workers")
    if workers is not None:
        settings.max_workers = workers
    if getattr(args, "metric", None):
        settings.color_metric = ColorMetric(args.metric)

    if args.command == "recolor":
        rule = ColorSubstitutionRule(
            source=validators.parse_color(args.source, "Source color"),
            target=validators.parse_color(args.target, "Target color"),
            tolerance=validators.validate_tolerance(args.fuzz, "Fuzz"),
        )
        plan = f"recolor {rule.source.as_tuple()} -> {rule.target.as_tuple()} (fuzz={rule.tolerance:g})"
    else:
        region = validators.parse_region(args.region)
        fill = validators.parse_color(args.fill, "Fill color") if args.command == "replace" else None
        plan = f"{args.command} region x={region[0]} y={region[1]} w={region[2]} h={region[3]}"
        if fill is not None:
            plan += f" fill={fill.as_tuple()}"

    if args.dry_run:
        print(f"Would {plan}: {args.input} -> {args.output} (workers={settings.max_workers})")
        return 0

    pipeline = GifEditPipeline(settings)
    uri = data_uri.encode(args.input.read_bytes(), "image/gif")
    if args.command == "recolor":
        result = pipeline.replace_color(uri, rule)
    elif args.command == "replace":
        result = pipeline.replace_section(uri, *region, fill=fill)
    elif args.command == "cutout":
        result = pipeline.cutout_section(uri, *region)
    elif args.command == "punch":
        result = pipeline.punch_section(uri, *region)
    else:
        result = pipeline.crop(uri, *region)

    args.output.write_bytes(data_uri.decode(result.data_uri).data)
    status = "written" if result.changed else "copied unchanged"
    print(f"{args.output} {status} ({plan})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
