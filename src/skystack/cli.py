"""
Command-line interface for skystack.

Usage:
    python -m skystack demo [options]
    skystack stack <frames or folder...> [options]
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .buffer import PixelBuffer
from .cli_output import (
    Symbols,
    create_progress_bar,
    print_banner,
    print_error,
    print_field,
    print_header,
    print_histogram,
    print_info,
    print_offsets,
    print_stage,
    print_success,
    print_summary_box,
    setup_terminal,
)
from .config import AlignmentMode, EngineConfig, SigmaClipOptions, StackMode, StackOptions, StackResponse
from .errors import StackingError
from .io import list_frames, read_frame, write_png
from .report import write_all_reports
from .service import StackingService
from .synthetic import generate_synthetic_frames
from .utils import format_milliseconds, get_version, get_version_banner

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%H:%M:%S",
    )


def _add_stack_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by the demo and stack commands."""
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in StackMode],
        default=StackMode.AVERAGE.value,
        help="Combination statistic (default: average)",
    )
    parser.add_argument(
        "--alignment",
        type=str,
        choices=[m.value for m in AlignmentMode],
        default=AlignmentMode.CENTROID.value,
        help="Frame alignment method (default: centroid)",
    )
    parser.add_argument(
        "--kappa",
        type=float,
        default=2.2,
        help="Sigma clipping threshold in standard deviations (default: 2.2)",
    )
    parser.add_argument(
        "--maxiters",
        type=int,
        default=1,
        help="Sigma clipping passes (default: 1)",
    )
    parser.add_argument(
        "--no-clip",
        action="store_true",
        help="Disable sigma clipping",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used for combination (default: 1)",
    )
    parser.add_argument(
        "--chunk-rows",
        type=int,
        default=64,
        help="Rows processed per block (default: 64)",
    )
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Output directory for stacked.png and reports (default: none written)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress bars and the histogram",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="skystack",
        description="Align and combine astrophotography frames",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"skystack {get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    demo_parser = subparsers.add_parser(
        "demo",
        help="Stack a generated synthetic star field",
    )
    demo_parser.add_argument(
        "--frames",
        type=int,
        default=8,
        help="Number of synthetic frames (default: 8)",
    )
    demo_parser.add_argument(
        "--width",
        type=int,
        default=320,
        help="Frame width in pixels (default: 320)",
    )
    demo_parser.add_argument(
        "--height",
        type=int,
        default=200,
        help="Frame height in pixels (default: 200)",
    )
    demo_parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible frames",
    )
    demo_parser.add_argument(
        "--exposure",
        type=float,
        default=180.0,
        help="Nominal exposure per synthetic frame in seconds (default: 180)",
    )
    _add_stack_arguments(demo_parser)

    stack_parser = subparsers.add_parser(
        "stack",
        help="Stack image files",
    )
    stack_parser.add_argument(
        "inputs",
        nargs="+",
        type=str,
        help="Image files, or folders containing them",
    )
    stack_parser.add_argument(
        "--exposure",
        type=float,
        default=None,
        help="Exposure per frame in seconds, for the integration summary",
    )
    _add_stack_arguments(stack_parser)

    return parser


def options_from_args(args: argparse.Namespace) -> tuple[StackOptions, EngineConfig]:
    """Build stack options and engine config from parsed arguments."""
    options = StackOptions(
        mode=args.mode,
        alignment=args.alignment,
        sigma_clip=SigmaClipOptions(
            enabled=not args.no_clip,
            kappa=args.kappa,
            maxiters=args.maxiters,
        ),
    )
    options.validate()

    config = EngineConfig(
        chunk_rows=args.chunk_rows,
        workers=args.workers,
        show_progress=not args.quiet,
    )
    config.validate()
    return options, config


def _collect_paths(inputs: list[str]) -> list[Path]:
    paths: list[Path] = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            paths.extend(list_frames(path))
        elif path.is_file():
            paths.append(path)
        else:
            raise FileNotFoundError(f"Input not found: {path}")
    return paths


def load_frames(paths: list[Path], quiet: bool = False) -> list[PixelBuffer]:
    """Read frames with a progress bar."""
    frames = []
    pbar = create_progress_bar(total=len(paths), desc="Loading", disable=quiet)
    with pbar:
        for path in paths:
            frames.append(read_frame(path))
            pbar.update(1)
    return frames


def report_response(response: StackResponse, out_dir: str | None, quiet: bool = False) -> None:
    """Print the result summary and write outputs."""
    quality = response.quality
    metadata = response.result.metadata

    print_header(f"{Symbols.CHART} Result")
    print_field("Frames", metadata.frame_count)
    print_field("Size", f"{response.image.width}x{response.image.height}")
    print_field("Combination time", format_milliseconds(metadata.elapsed_ms))
    print_field("Clipped samples", f"{100 * metadata.clipped_fraction:.2f}", "%")
    print_field("SNR", f"{quality.snr:.2f}", "dB")
    print_field("Sharpness index", f"{quality.sharpness:.2f}")
    if response.integration_minutes is not None:
        print_field("Integration", f"{response.integration_minutes:.1f}", "min")

    if not quiet:
        print_info("Frame offsets")
        print_offsets(response.offsets)
        print_info("Luminance histogram")
        print_histogram(quality.histogram)

    lines = [
        f"Stacked {metadata.frame_count} frames in {metadata.elapsed_ms:.1f}ms",
        f"SNR {quality.snr:.2f} dB, sharpness {quality.sharpness:.2f}",
    ]

    if out_dir is not None:
        out = Path(out_dir)
        png_path = write_png(response.image, out / "stacked.png")
        reports = write_all_reports(response, out)
        print_field("Image", png_path)
        for name, path in reports.items():
            print_field(f"Report ({name})", path)
        lines.append(f"Outputs: {out}")

    print_summary_box(lines, title="Stack complete")


def run_demo(args: argparse.Namespace) -> int:
    options, config = options_from_args(args)

    print_stage(1, "Generating synthetic frames")
    frames = generate_synthetic_frames(
        count=args.frames,
        width=args.width,
        height=args.height,
        seed=args.seed,
    )
    print_success(f"{len(frames)} frames ({args.width}x{args.height})")

    print_stage(2, "Aligning and stacking")
    service = StackingService(config)
    response = service.stack(frames, options, exposures=[args.exposure] * len(frames))

    report_response(response, args.out, quiet=args.quiet)
    return 0


def run_stack(args: argparse.Namespace) -> int:
    options, config = options_from_args(args)

    print_stage(1, "Loading frames")
    paths = _collect_paths(args.inputs)
    if not paths:
        print_error("No frames found")
        return 1
    frames = load_frames(paths, quiet=args.quiet)
    print_success(f"Loaded {len(frames)} frames")

    print_stage(2, "Aligning and stacking")
    exposures = None if args.exposure is None else [args.exposure] * len(frames)
    service = StackingService(config)
    response = service.stack(frames, options, exposures=exposures)

    report_response(response, args.out, quiet=args.quiet)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    setup_terminal()
    if not args.quiet:
        print_banner(get_version())
    logger.debug(get_version_banner())

    commands = {"demo": run_demo, "stack": run_stack}
    try:
        return commands[args.command](args)
    except (StackingError, ValueError, OSError) as e:
        print_error(f"Stacking failed: {e}")
        logger.debug("Stacking failed", exc_info=True)
        return 1
