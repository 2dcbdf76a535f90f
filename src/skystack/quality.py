"""
Quality metrics for a combined image.

Fast, explainable, deterministic figures computed on a single buffer:
- luminance SNR in decibels
- an edge-energy sharpness index
- a bucketed luminance histogram

Degenerate inputs (uniform or black images) return 0 rather than NaN or
infinity so the figures can be displayed and serialized as-is.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from .buffer import PixelBuffer
from .config import QualityReport
from .utils import round_decimals

logger = logging.getLogger(__name__)

HISTOGRAM_BINS = 20

# Scale factor applied to the raw edges/total ratio
SHARPNESS_SCALE = 12.0


def compute_snr(buffer: PixelBuffer) -> float:
    """
    Luminance signal-to-noise ratio in dB.

    Parameters
    ----------
    buffer : PixelBuffer
        Image to evaluate.

    Returns
    -------
    float
        ``20 * log10(mean / noise)`` rounded to 2 decimals, where ``mean`` and
        ``noise`` are the mean and standard deviation of the per-pixel
        luminance. 0 when the noise is zero or the ratio is zero.

    Notes
    -----
    Variance is computed as ``mean(lum**2) - mean**2`` floored at 0. A buffer
    whose luminance is constant is treated as zero-noise directly, since the
    subtraction can leave a rounding residue of order 1e-12 instead of 0.
    """
    lum = buffer.luminance()

    if lum.max() == lum.min():
        return 0.0

    mean = float(np.mean(lum))
    variance = max(0.0, float(np.mean(lum * lum)) - mean * mean)
    noise = math.sqrt(variance)
    if noise == 0:
        return 0.0

    ratio = mean / noise
    if ratio <= 0 or not math.isfinite(ratio):
        return 0.0

    return round_decimals(20.0 * math.log10(ratio), 2)


def estimate_sharpness(buffer: PixelBuffer) -> float:
    """
    Edge-energy sharpness index.

    For every interior pixel (the 1-pixel border is skipped) the absolute
    differences between the red sample and its right and lower neighbours are
    summed into ``edges``, and the red sample itself into ``total``.

    Returns
    -------
    float
        ``edges / total * 12`` rounded to 2 decimals, 0 when ``total`` is 0.

    Notes
    -----
    This is a relative heuristic for comparing stacks of the same target, not
    a calibrated MTF measurement. Only the red channel and the two direct
    neighbours are sampled; green, blue and diagonal neighbours are ignored.
    """
    if buffer.height < 3 or buffer.width < 3:
        return 0.0

    red = buffer.samples[:, :, 0].astype(np.int64)
    center = red[1:-1, 1:-1]
    right = red[1:-1, 2:]
    down = red[2:, 1:-1]

    total = int(center.sum())
    if total == 0:
        return 0.0

    edges = int(np.abs(center - right).sum() + np.abs(center - down).sum())
    return round_decimals(edges / total * SHARPNESS_SCALE, 2)


def compute_histogram(buffer: PixelBuffer, bins: int = HISTOGRAM_BINS) -> list[float]:
    """
    Luminance histogram with equal-width buckets over [0, 255].

    Parameters
    ----------
    buffer : PixelBuffer
        Image to evaluate.
    bins : int, default 20
        Number of buckets.

    Returns
    -------
    list[float]
        Fraction of pixels per bucket, rounded to 3 decimals. Sums to 1.0
        within rounding.
    """
    if bins < 1:
        raise ValueError(f"bins must be >= 1, got {bins}")

    lum = buffer.luminance().ravel()
    index = np.floor(lum / 255.0 * bins).astype(np.int64)
    index = np.clip(index, 0, bins - 1)

    counts = np.bincount(index, minlength=bins)
    total = buffer.pixel_count
    return [round_decimals(float(c) / total, 3) for c in counts]


def assess_quality(buffer: PixelBuffer) -> QualityReport:
    """Compute SNR, sharpness and histogram of one buffer."""
    report = QualityReport(
        snr=compute_snr(buffer),
        sharpness=estimate_sharpness(buffer),
        histogram=tuple(compute_histogram(buffer)),
    )
    logger.debug(
        "Quality %dx%d: snr=%.2f dB, sharpness=%.2f",
        buffer.width, buffer.height, report.snr, report.sharpness,
    )
    return report
