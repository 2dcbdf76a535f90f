"""
Pytest configuration and fixtures.
"""

import numpy as np
import pytest

from skystack.buffer import PixelBuffer


@pytest.fixture
def uniform_frame():
    """Create a uniform RGBA frame."""
    def _create(width=4, height=4, rgba=(128, 128, 128, 255)):
        return PixelBuffer.filled(width, height, rgba)

    return _create


@pytest.fixture
def random_frame():
    """Create an opaque frame with random colour samples."""
    def _create(width=16, height=12, seed=0):
        rng = np.random.default_rng(seed)
        rgb = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
        return PixelBuffer.from_array(rgb)

    return _create


@pytest.fixture
def blob_frame():
    """Create a black frame with a single bright square blob."""
    def _create(cx, cy, width=32, height=32, radius=1, value=255):
        rgb = np.zeros((height, width, 3), dtype=np.uint8)
        rgb[cy - radius:cy + radius + 1, cx - radius:cx + radius + 1] = value
        return PixelBuffer.from_array(rgb)

    return _create


@pytest.fixture
def gaussian_star_frame():
    """Create a frame with a smooth Gaussian star on a faint background."""
    def _create(cx, cy, width=48, height=48, sigma=2.5, amplitude=220.0, background=5.0):
        yy, xx = np.mgrid[0:height, 0:width]
        star = amplitude * np.exp(-((xx - cx) ** 2 + (yy - cy) ** 2) / (2 * sigma**2))
        grey = np.clip(np.floor(background + star + 0.5), 0, 255).astype(np.uint8)
        return PixelBuffer.from_array(grey)

    return _create
