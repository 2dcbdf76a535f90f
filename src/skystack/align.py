"""
Frame alignment for skystack.

Estimates a per-frame integer translation (dx, dy) relative to the first
frame. The combiner reads output pixel (x, y) from frame pixel
(x - dx, y - dy), so a positive dx moves the frame content to the right.

Available estimators:
- identity: no alignment, all offsets zero
- centroid: luminance-weighted centre of mass of the whole field
- phase: phase cross-correlation of the luminance planes

The centroid estimator is a coarse whole-field approximation suited to drift
and jitter of a few pixels. It does not handle rotation or scale changes.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from scipy import ndimage

from .buffer import PixelBuffer
from .config import AlignmentMode
from .utils import round_half_up

logger = logging.getLogger(__name__)

# Total luminance below which a frame is treated as black
MIN_TOTAL_LUMINANCE = 1e-9

Offset = tuple[int, int]


def luminance_centroid(buffer: PixelBuffer) -> tuple[float, float] | None:
    """
    Luminance-weighted centroid of a frame.

    Parameters
    ----------
    buffer : PixelBuffer
        Frame to measure.

    Returns
    -------
    tuple[float, float] or None
        (cx, cy) in pixel coordinates, or None when the frame's total
        luminance is (near) zero and the centroid is undefined.
    """
    lum = buffer.luminance()
    if float(lum.sum()) < MIN_TOTAL_LUMINANCE:
        return None

    cy, cx = ndimage.center_of_mass(lum)
    if not (np.isfinite(cx) and np.isfinite(cy)):
        return None
    return float(cx), float(cy)


def apply_integer_shift(
    image: np.ndarray,
    dy: int,
    dx: int,
    fill_value: float = 0.0,
) -> np.ndarray:
    """
    Apply integer pixel shift without interpolation or wrap-around.

    Parameters
    ----------
    image : np.ndarray
        Image to shift (2D or 3D, rows first).
    dy : int
        Vertical shift (positive = shift down in output).
    dx : int
        Horizontal shift (positive = shift right in output).
    fill_value : float, default 0.0
        Value for exposed edges.

    Returns
    -------
    np.ndarray
        Shifted image with same shape and dtype as input.
    """
    result = np.full_like(image, fill_value)
    height, width = image.shape[:2]

    if abs(dy) >= height or abs(dx) >= width:
        return result

    if dy >= 0:
        src_y = slice(0, height - dy)
        dst_y = slice(dy, height)
    else:
        src_y = slice(-dy, height)
        dst_y = slice(0, height + dy)

    if dx >= 0:
        src_x = slice(0, width - dx)
        dst_x = slice(dx, width)
    else:
        src_x = slice(-dx, width)
        dst_x = slice(0, width + dx)

    result[dst_y, dst_x] = image[src_y, src_x]
    return result


def shift_buffer(buffer: PixelBuffer, dx: int, dy: int) -> PixelBuffer:
    """Shift a buffer by (dx, dy); exposed pixels are transparent black."""
    shifted = apply_integer_shift(buffer.samples, dy=dy, dx=dx, fill_value=0)
    return PixelBuffer.from_array(shifted)


class Aligner:
    """
    Base class for offset estimators.

    Subclasses implement :meth:`estimate`, returning the offset that moves
    ``frame`` onto ``reference``. The first frame of a sequence is always the
    reference and always receives (0, 0).
    """

    name = "base"

    def prepare(self, reference: PixelBuffer) -> None:
        """Hook called once with the reference frame before estimation."""

    def estimate(self, reference: PixelBuffer, frame: PixelBuffer) -> Offset:
        raise NotImplementedError

    def offsets(self, frames: Sequence[PixelBuffer]) -> list[Offset]:
        """
        Compute one (dx, dy) per frame, in input order.

        Parameters
        ----------
        frames : sequence of PixelBuffer
            Frames to align. The first one is the reference.

        Returns
        -------
        list[tuple[int, int]]
            Integer offsets; ``offsets[0] == (0, 0)``.
        """
        if len(frames) == 0:
            return []

        reference = frames[0]
        self.prepare(reference)

        result: list[Offset] = [(0, 0)]
        for i, frame in enumerate(frames[1:], start=1):
            dx, dy = self.estimate(reference, frame)
            logger.debug("%s offset frame %d: dx=%d dy=%d", self.name, i, dx, dy)
            result.append((dx, dy))
        return result


class IdentityAligner(Aligner):
    """No alignment: every offset is (0, 0)."""

    name = "none"

    def estimate(self, reference: PixelBuffer, frame: PixelBuffer) -> Offset:
        return 0, 0


class CentroidAligner(Aligner):
    """
    Align by luminance-weighted centroid.

    The offset is the reference centroid minus the frame centroid, rounded
    half-up. A black frame (or black reference) yields (0, 0).
    """

    name = "centroid"

    def __init__(self):
        self._reference_centroid: tuple[float, float] | None = None

    def prepare(self, reference: PixelBuffer) -> None:
        self._reference_centroid = luminance_centroid(reference)
        if self._reference_centroid is None:
            logger.warning("Reference frame is black; centroid alignment disabled for this stack")

    def estimate(self, reference: PixelBuffer, frame: PixelBuffer) -> Offset:
        if self._reference_centroid is None:
            return 0, 0

        centroid = luminance_centroid(frame)
        if centroid is None:
            logger.debug("Black frame, falling back to zero offset")
            return 0, 0

        ref_cx, ref_cy = self._reference_centroid
        cx, cy = centroid
        dx = int(round_half_up(ref_cx - cx))
        dy = int(round_half_up(ref_cy - cy))
        return dx, dy


class PhaseCorrelationAligner(Aligner):
    """
    Align by phase cross-correlation of the luminance planes.

    More robust than the centroid for star fields with a bright gradient, at
    the cost of two FFTs per frame. Constant frames yield (0, 0).
    """

    name = "phase"

    def __init__(self, upsample_factor: int = 1):
        self.upsample_factor = upsample_factor
        self._reference_lum: np.ndarray | None = None

    def prepare(self, reference: PixelBuffer) -> None:
        lum = reference.luminance()
        self._reference_lum = None if np.ptp(lum) == 0 else lum
        if self._reference_lum is None:
            logger.warning("Reference frame is flat; phase alignment disabled for this stack")

    def estimate(self, reference: PixelBuffer, frame: PixelBuffer) -> Offset:
        from skimage.registration import phase_cross_correlation

        if self._reference_lum is None:
            return 0, 0

        lum = frame.luminance()
        if np.ptp(lum) == 0:
            return 0, 0

        shift, _error, _phasediff = phase_cross_correlation(
            self._reference_lum, lum, upsample_factor=self.upsample_factor
        )
        if not np.all(np.isfinite(shift)):
            return 0, 0

        dy = int(round_half_up(shift[0]))
        dx = int(round_half_up(shift[1]))
        return dx, dy


_ALIGNERS: dict[AlignmentMode, type[Aligner]] = {
    AlignmentMode.NONE: IdentityAligner,
    AlignmentMode.CENTROID: CentroidAligner,
    AlignmentMode.PHASE: PhaseCorrelationAligner,
}


def get_aligner(mode: AlignmentMode | str) -> Aligner:
    """Return a fresh aligner instance for the given mode."""
    if not isinstance(mode, AlignmentMode):
        mode = AlignmentMode(str(mode).lower())
    return _ALIGNERS[mode]()


def align_frames(
    frames: Sequence[PixelBuffer],
    mode: AlignmentMode | str = AlignmentMode.CENTROID,
) -> list[Offset]:
    """
    Estimate per-frame offsets relative to the first frame.

    Parameters
    ----------
    frames : sequence of PixelBuffer
        Frames to align.
    mode : AlignmentMode or str, default CENTROID
        Estimator to use.

    Returns
    -------
    list[tuple[int, int]]
        One (dx, dy) per frame, same order as ``frames``.
    """
    aligner = get_aligner(mode)
    offsets = aligner.offsets(frames)

    if offsets:
        max_shift = max(max(abs(dx), abs(dy)) for dx, dy in offsets)
        logger.info(
            "Aligned %d frames (%s), max shift %d px",
            len(offsets), aligner.name, max_shift,
        )
    return offsets
