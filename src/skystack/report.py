"""
Report generation for skystack runs.

Produces:
- report.json: Machine-readable summary of one stacking invocation
- report.md: Human-readable Markdown report
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np

from .config import StackResponse
from .utils import get_platform_info, get_timestamp_iso, get_version

logger = logging.getLogger(__name__)


def _to_native(obj: Any) -> Any:
    """Convert numpy types to native Python types for JSON serialization."""
    if isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {k: _to_native(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_to_native(v) for v in obj]
    return obj


def response_to_dict(response: StackResponse) -> dict[str, Any]:
    """
    Summarize a stacking response as a JSON-compatible dict.

    Pixel data is not included; only the image dimensions are.
    """
    metadata = response.result.metadata
    coverage = response.result.coverage

    summary = {
        "skystack_version": get_version(),
        "timestamp": get_timestamp_iso(),
        "platform": get_platform_info(),
        "options": response.options.to_dict(),
        "image": {
            "width": response.image.width,
            "height": response.image.height,
        },
        "metadata": {
            "frameCount": metadata.frame_count,
            "elapsedMs": round(metadata.elapsed_ms, 3),
            "clippedFraction": round(metadata.clipped_fraction, 6),
        },
        "offsets": [{"dx": dx, "dy": dy} for dx, dy in response.offsets],
        "quality": {
            "snr": response.quality.snr,
            "sharpness": response.quality.sharpness,
            "histogram": list(response.quality.histogram),
        },
        "integrationMinutes": response.integration_minutes,
    }

    if coverage is not None:
        summary["coverage"] = {
            "min": int(coverage.min()),
            "max": int(coverage.max()),
            "mean": float(coverage.mean()),
        }

    return _to_native(summary)


def write_report_json(response: StackResponse, output_dir: Path) -> Path:
    """
    Write summary report as JSON.

    Parameters
    ----------
    response : StackResponse
        Stacking response.
    output_dir : Path
        Output directory.

    Returns
    -------
    Path
        Path to written report file.
    """
    report_path = Path(output_dir) / "report.json"
    with open(report_path, "w") as f:
        json.dump(response_to_dict(response), f, indent=2)

    logger.info("Wrote report: %s", report_path)
    return report_path


def _histogram_bar(fraction: float, width: int = 30) -> str:
    n = min(width, int(round(fraction * width * 3.2)))
    return "#" * n


def write_report_markdown(response: StackResponse, output_dir: Path) -> Path:
    """
    Write human-readable Markdown report.

    Parameters
    ----------
    response : StackResponse
        Stacking response.
    output_dir : Path
        Output directory.

    Returns
    -------
    Path
        Path to written report file.
    """
    metadata = response.result.metadata
    options = response.options
    clip = options.sigma_clip

    lines = [
        "# Stacking Report",
        "",
        f"**Generated:** {get_timestamp_iso()}",
        f"**skystack version:** {get_version()}",
        f"**Platform:** {get_platform_info()}",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Frames stacked | {metadata.frame_count} |",
        f"| Image size | {response.image.width} x {response.image.height} |",
        f"| Combination time | {metadata.elapsed_ms:.1f} ms |",
        f"| Clipped samples | {100 * metadata.clipped_fraction:.2f}% |",
    ]
    if response.integration_minutes is not None:
        lines.append(f"| Integration | {response.integration_minutes:.1f} min |")
    lines.append("")

    lines.extend([
        "## Options",
        "",
        "| Parameter | Value |",
        "|-----------|-------|",
        f"| mode | {options.mode.value} |",
        f"| alignment | {options.alignment.value} |",
        f"| sigma clip | {'on' if options.clipping_enabled else 'off'} |",
    ])
    if options.clipping_enabled:
        lines.append(f"| kappa | {clip.kappa} |")
        lines.append(f"| maxiters | {clip.maxiters} |")
    lines.append("")

    lines.extend([
        "## Quality",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| SNR | {response.quality.snr:.2f} dB |",
        f"| Sharpness index | {response.quality.sharpness:.2f} |",
        "",
        "### Luminance histogram",
        "",
        "```",
    ])
    n_bins = len(response.quality.histogram)
    for i, fraction in enumerate(response.quality.histogram):
        low = 255 * i / n_bins
        lines.append(f"{low:6.1f} | {fraction:5.3f} {_histogram_bar(fraction)}")
    lines.extend(["```", ""])

    moved = [(i, dx, dy) for i, (dx, dy) in enumerate(response.offsets) if dx or dy]
    if moved:
        lines.extend([
            "## Frame Offsets",
            "",
            "| Frame | dx | dy |",
            "|-------|----|----|",
        ])
        for i, dx, dy in moved:
            lines.append(f"| {i} | {dx} | {dy} |")
        lines.append("")

    report_path = Path(output_dir) / "report.md"
    with open(report_path, "w") as f:
        f.write("\n".join(lines))

    logger.info("Wrote Markdown report: %s", report_path)
    return report_path


def write_all_reports(response: StackResponse, output_dir: Path) -> dict[str, Path]:
    """
    Write all report files.

    Returns
    -------
    dict[str, Path]
        Map of report type to path.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    return {
        "json": write_report_json(response, output_dir),
        "markdown": write_report_markdown(response, output_dir),
    }
