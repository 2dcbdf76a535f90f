"""
Pixel buffer data model.

A PixelBuffer is a fixed-size grid of 8-bit RGBA samples, the unit of input
and output of the stacking engine. Buffers are immutable: the sample array is
copied on construction and flagged read-only.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .errors import InputError

# Rec. 709 luma weights
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722

OPAQUE = 255


def luminance_from_rgb(rgb: np.ndarray) -> np.ndarray:
    """
    Compute luminance from an RGB (or RGBA) array.

    Parameters
    ----------
    rgb : np.ndarray
        Array with shape (..., 3) or (..., 4). Alpha is ignored.

    Returns
    -------
    np.ndarray
        float64 luminance with the channel axis removed.
    """
    data = np.asarray(rgb, dtype=np.float64)
    return LUMA_R * data[..., 0] + LUMA_G * data[..., 1] + LUMA_B * data[..., 2]


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    Immutable RGBA image.

    Attributes
    ----------
    width : int
        Width in pixels (> 0).
    height : int
        Height in pixels (> 0).
    samples : np.ndarray
        Read-only uint8 array with shape (height, width, 4), channels R,G,B,A.
    """

    width: int
    height: int
    samples: np.ndarray

    def __post_init__(self):
        if not isinstance(self.width, (int, np.integer)) or self.width <= 0:
            raise InputError(f"width must be a positive integer, got {self.width!r}")
        if not isinstance(self.height, (int, np.integer)) or self.height <= 0:
            raise InputError(f"height must be a positive integer, got {self.height!r}")

        data = np.asarray(self.samples)
        expected = self.height * self.width * 4
        if data.size != expected:
            raise InputError(
                f"Expected {expected} samples for {self.width}x{self.height} RGBA, got {data.size}"
            )
        if data.dtype != np.uint8:
            if np.issubdtype(data.dtype, np.floating):
                if not np.all(np.isfinite(data)):
                    raise InputError("Sample values must be finite")
                if np.any(data != np.floor(data)):
                    raise InputError("Sample values must be whole numbers")
            if np.any(data < 0) or np.any(data > 255):
                raise InputError("Sample values must be in [0, 255]")
            data = data.astype(np.uint8)

        data = np.array(data, dtype=np.uint8, copy=True).reshape(self.height, self.width, 4)
        data.setflags(write=False)

        object.__setattr__(self, "width", int(self.width))
        object.__setattr__(self, "height", int(self.height))
        object.__setattr__(self, "samples", data)

    # --- Constructors ---

    @classmethod
    def from_samples(cls, width: int, height: int, samples: Sequence[int] | np.ndarray) -> PixelBuffer:
        """Build a buffer from a flat R,G,B,A sample sequence."""
        return cls(width=width, height=height, samples=np.asarray(samples))

    @classmethod
    def from_array(cls, array: np.ndarray) -> PixelBuffer:
        """
        Build a buffer from an image array.

        Parameters
        ----------
        array : np.ndarray
            (H, W) grey, (H, W, 3) RGB or (H, W, 4) RGBA with values in
            [0, 255]. Missing alpha is set to fully opaque.

        Returns
        -------
        PixelBuffer
        """
        data = np.asarray(array)
        if data.ndim == 2:
            data = np.repeat(data[:, :, None], 3, axis=2)
        if data.ndim != 3 or data.shape[2] not in (3, 4):
            raise InputError(f"Expected (H, W), (H, W, 3) or (H, W, 4) array, got shape {data.shape}")

        height, width = data.shape[:2]
        if data.shape[2] == 3:
            rgba = np.empty((height, width, 4), dtype=data.dtype)
            rgba[:, :, :3] = data
            rgba[:, :, 3] = OPAQUE
            data = rgba

        return cls(width=width, height=height, samples=data)

    @classmethod
    def filled(cls, width: int, height: int, rgba: tuple[int, int, int, int]) -> PixelBuffer:
        """Build a uniform buffer where every pixel has the given RGBA value."""
        if width <= 0 or height <= 0:
            raise InputError(f"Invalid dimensions {width}x{height}")
        data = np.empty((height, width, 4), dtype=np.uint8)
        data[:, :] = np.asarray(rgba, dtype=np.uint8)
        return cls(width=width, height=height, samples=data)

    # --- Views ---

    @property
    def shape(self) -> tuple[int, int]:
        """(height, width) of the buffer."""
        return self.height, self.width

    @property
    def rgb(self) -> np.ndarray:
        """Read-only (H, W, 3) view of the colour channels."""
        return self.samples[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        """Read-only (H, W) view of the alpha channel."""
        return self.samples[:, :, 3]

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def luminance(self) -> np.ndarray:
        """Per-pixel luminance, float64 array of shape (H, W)."""
        return luminance_from_rgb(self.samples)

    def to_flat(self) -> np.ndarray:
        """Flat copy of the samples in R,G,B,A order."""
        return self.samples.reshape(-1).copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self.samples, other.samples)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"PixelBuffer(width={self.width}, height={self.height})"


def validate_frames(frames: Sequence[PixelBuffer]) -> tuple[int, int]:
    """
    Check that a frame set is non-empty and uniformly sized.

    Parameters
    ----------
    frames : sequence of PixelBuffer
        Frames to combine.

    Returns
    -------
    tuple[int, int]
        (height, width) shared by all frames.

    Raises
    ------
    InputError
        If no frames are given, an item is not a PixelBuffer, or dimensions
        differ between frames.
    """
    if len(frames) == 0:
        raise InputError("Empty frame list")

    for i, frame in enumerate(frames):
        if not isinstance(frame, PixelBuffer):
            raise InputError(f"Frame {i} is not a PixelBuffer (got {type(frame).__name__})")

    height, width = frames[0].shape
    for i, frame in enumerate(frames[1:], start=1):
        if frame.shape != (height, width):
            raise InputError(
                f"Frame {i} is {frame.width}x{frame.height}, expected {width}x{height}"
            )

    return height, width
