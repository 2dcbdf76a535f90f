"""
Image file I/O for skystack front-ends.

The stacking core works on PixelBuffers only. This module converts between
files and buffers for the command line tools:
- frame discovery in a directory
- reading PNG/JPEG/TIFF (imageio) and FITS (astropy) into 8-bit RGBA
- writing PNG quicklooks of a result
"""

from __future__ import annotations

import logging
from pathlib import Path

import imageio.v3 as iio
import numpy as np
from astropy.io import fits

from .buffer import PixelBuffer
from .errors import InputError
from .utils import linear_stretch

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp")
FITS_SUFFIXES = (".fits", ".fit", ".fts")


def list_frames(
    directory: str | Path,
    suffixes: tuple[str, ...] = IMAGE_SUFFIXES + FITS_SUFFIXES,
) -> list[Path]:
    """
    Discover image frames in a folder.

    Parameters
    ----------
    directory : str or Path
        Folder to scan (not recursive).
    suffixes : tuple[str, ...]
        Accepted file extensions (case-insensitive).

    Returns
    -------
    list[Path]
        Sorted list of frame paths.
    """
    folder = Path(directory)
    if not folder.is_dir():
        raise ValueError(f"Frame path is not a directory: {folder}")

    frames = sorted(
        p for p in folder.iterdir()
        if p.is_file() and p.suffix.lower() in suffixes
    )
    logger.info("Discovered %d frames in %s", len(frames), folder)
    return frames


def _to_uint8(data: np.ndarray) -> np.ndarray:
    """Scale an integer or float image to 8 bits."""
    if data.dtype == np.uint8:
        return data
    if np.issubdtype(data.dtype, np.integer):
        max_value = np.iinfo(data.dtype).max
        return np.floor(data.astype(np.float64) / max_value * 255 + 0.5).astype(np.uint8)
    if data.dtype == np.bool_:
        return data.astype(np.uint8) * 255
    # Float data: stretch each image to its own range
    return np.floor(linear_stretch(data) * 255.0 + 0.5).astype(np.uint8)


def read_fits_frame(path: str | Path) -> np.ndarray:
    """
    Read the primary HDU of a FITS file as (H, W) or (H, W, 3).

    Colour cubes stored channel-first (3, H, W) are moved to channel-last.
    """
    with fits.open(path) as hdul:
        data = hdul[0].data
        if data is None:
            raise InputError(f"No image data in primary HDU: {path}")
        data = np.asarray(data, dtype=np.float32)

    if data.ndim == 3 and data.shape[0] in (3, 4) and data.shape[-1] not in (3, 4):
        data = np.moveaxis(data, 0, -1)
    return data


def read_frame(path: str | Path) -> PixelBuffer:
    """
    Read an image file into a PixelBuffer.

    Parameters
    ----------
    path : str or Path
        PNG/JPEG/TIFF/BMP (via imageio) or FITS (via astropy) file.

    Returns
    -------
    PixelBuffer
        8-bit RGBA buffer. Grey images are replicated to R, G and B; missing
        alpha is opaque. Deeper integer data is rescaled by its dtype range,
        float data (FITS) by its min/max.
    """
    path = Path(path)
    if path.suffix.lower() in FITS_SUFFIXES:
        data = read_fits_frame(path)
    else:
        data = iio.imread(path)

    data = np.asarray(data)
    if data.ndim == 3 and data.shape[2] == 2:
        # Grey + alpha
        data = np.concatenate([np.repeat(data[:, :, :1], 3, axis=2), data[:, :, 1:]], axis=2)

    buffer = PixelBuffer.from_array(_to_uint8(data))
    logger.debug("Read %s (%dx%d)", path.name, buffer.width, buffer.height)
    return buffer


def write_png(buffer: PixelBuffer, path: str | Path) -> Path:
    """
    Write a buffer as an RGBA PNG.

    Parameters
    ----------
    buffer : PixelBuffer
        Image to write.
    path : str or Path
        Destination file.

    Returns
    -------
    Path
        Path to the written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    iio.imwrite(path, np.ascontiguousarray(buffer.samples))
    logger.info("Wrote PNG: %s", path)
    return path
