"""
Synthetic star-field frames.

Generates a reproducible dataset for demos and tests: a dark sky with
Gaussian stars, a faint nebula band and per-pixel noise, each frame
displaced by a small deterministic jitter to exercise alignment.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import ndimage

from .align import apply_integer_shift
from .buffer import PixelBuffer

logger = logging.getLogger(__name__)

# Sky background colour (#020617)
SKY_RGB = (2, 6, 23)

NOISE_AMPLITUDE = 18.0


def frame_jitter(index: int, amplitude: int = 3) -> tuple[int, int]:
    """
    Deterministic (dx, dy) jitter of frame ``index``.

    dx = round(sin(i) * amplitude), dy = round(cos(0.8 i) * amplitude)
    """
    dx = int(math.floor(math.sin(index) * amplitude + 0.5))
    dy = int(math.floor(math.cos(index * 0.8) * amplitude + 0.5))
    return dx, dy


def render_star_field(
    width: int,
    height: int,
    n_stars: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Render a noiseless RGB star field.

    Parameters
    ----------
    width, height : int
        Image size.
    n_stars : int
        Number of stars.
    rng : np.random.Generator
        Random source.

    Returns
    -------
    np.ndarray
        float64 (height, width, 3) image in [0, 255].
    """
    image = np.empty((height, width, 3), dtype=np.float64)
    image[:, :] = SKY_RGB

    # Point sources blurred into Gaussian profiles
    points = np.zeros((height, width), dtype=np.float64)
    ys = rng.uniform(0.1 * height, 0.9 * height, n_stars).astype(int)
    xs = rng.uniform(0, width, n_stars).astype(int)
    amplitudes = rng.uniform(0.8, 1.0, n_stars) * 255.0
    np.add.at(points, (np.clip(ys, 0, height - 1), np.clip(xs, 0, width - 1)), amplitudes)

    sigma = max(0.8, min(width, height) / 250.0)
    stars = ndimage.gaussian_filter(points, sigma=sigma) * (2 * math.pi * sigma**2)
    stars = np.clip(stars, 0, 255)

    star_tint = np.array([1.0, 0.9, 1.0])
    image += stars[:, :, None] * star_tint

    # Faint diagonal nebula band over the lower part of the field
    yy, xx = np.mgrid[0:height, 0:width]
    t = (xx / max(width - 1, 1) + (height - 1 - yy) / max(height - 1, 1)) / 2.0
    band = np.exp(-((t - 0.5) ** 2) / 0.02) * (yy >= 0.4 * height)
    nebula_rgb = np.array([40.0, 60.0, 110.0])
    image += band[:, :, None] * nebula_rgb * 0.17

    return np.clip(image, 0, 255)


def generate_synthetic_frames(
    count: int = 8,
    width: int = 320,
    height: int = 200,
    seed: int | None = None,
    jitter: int = 3,
    n_stars: int | None = None,
) -> list[PixelBuffer]:
    """
    Generate a jittered, noisy set of frames of the same star field.

    Parameters
    ----------
    count : int, default 8
        Number of frames.
    width, height : int, default 320x200
        Frame size.
    seed : int, optional
        Seed for reproducible output.
    jitter : int, default 3
        Jitter amplitude in pixels (see :func:`frame_jitter`).
    n_stars : int, optional
        Number of stars; 120-160 when omitted.

    Returns
    -------
    list[PixelBuffer]
        RGBA frames, opaque except for the edges exposed by the jitter.
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")

    rng = np.random.default_rng(seed)
    if n_stars is None:
        n_stars = 120 + int(rng.integers(0, 41))

    field = render_star_field(width, height, n_stars, rng)

    opaque = np.full((height, width), 255, dtype=np.uint8)

    frames = []
    for i in range(count):
        noise = (rng.random((height, width, 1)) - 0.5) * NOISE_AMPLITUDE
        noisy = np.clip(field + noise, 0, 255)

        dx, dy = frame_jitter(i, jitter)
        shifted = apply_integer_shift(noisy, dy=dy, dx=dx, fill_value=0.0)

        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[:, :, :3] = np.floor(shifted + 0.5).astype(np.uint8)
        # Edges exposed by the jitter are transparent
        rgba[:, :, 3] = apply_integer_shift(opaque, dy=dy, dx=dx, fill_value=0)
        frames.append(PixelBuffer(width=width, height=height, samples=rgba))

    logger.info("Generated %d synthetic frames (%dx%d, %d stars)", count, width, height, n_stars)
    return frames
