"""
Frame combination for skystack.

Combines N same-sized RGBA frames into one image. Per output pixel and per
colour channel the in-bounds samples of all frames are gathered (after the
per-frame integer offset), optionally sigma-clipped, then reduced with the
mean or the median. The output alpha channel is always opaque.

The image is processed in blocks of rows. Each block builds a float64 sample
cube of shape (n_frames, rows, width, 3) in a scratch buffer that is reused
from one block to the next; out-of-bounds samples are NaN. Blocks are
independent, so they may run on several threads with identical results.
"""

from __future__ import annotations

import logging
import threading
import time
import warnings
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from astropy.stats import sigma_clip
from astropy.utils.exceptions import AstropyUserWarning

from .buffer import OPAQUE, PixelBuffer, validate_frames
from .config import EngineConfig, StackMetadata, StackMode, StackOptions, StackResult
from .errors import CapacityError, InputError
from .utils import round_half_up, to_uint8

logger = logging.getLogger(__name__)

N_COLOR = 3
_SAMPLE_BYTES = np.dtype(np.float64).itemsize


# =============================================================================
# FILTER: SIGMA CLIPPING
# =============================================================================


def sigma_clip_mask(
    cube: np.ndarray,
    kappa: float,
    maxiters: int = 1,
    valid: np.ndarray | None = None,
) -> np.ndarray:
    """
    Flag the samples that survive sigma clipping along the frame axis.

    Parameters
    ----------
    cube : np.ndarray
        Sample cube with frames on axis 0. NaN marks a missing sample.
    kappa : float
        Rejection threshold: samples with ``|x - mean| > kappa * std`` are
        rejected (population standard deviation).
    maxiters : int, default 1
        Number of clipping passes.
    valid : np.ndarray, optional
        Precomputed ``~np.isnan(cube)``.

    Returns
    -------
    np.ndarray
        Boolean array, same shape as ``cube``, True for kept samples.

    Notes
    -----
    A pixel for which clipping would reject every sample keeps its whole
    unclipped sample set; the kept set is never empty where input exists.
    """
    if valid is None:
        valid = ~np.isnan(cube)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", AstropyUserWarning)
        warnings.simplefilter("ignore", RuntimeWarning)
        clipped = sigma_clip(
            cube,
            sigma=kappa,
            maxiters=maxiters,
            cenfunc="mean",
            stdfunc="std",
            axis=0,
            masked=True,
            copy=True,
        )

    keep = ~np.ma.getmaskarray(clipped)
    keep &= valid

    emptied = valid.any(axis=0) & ~keep.any(axis=0)
    if np.any(emptied):
        keep = np.where(emptied[np.newaxis, ...], valid, keep)

    return keep


# =============================================================================
# REDUCE: MEAN / MEDIAN
# =============================================================================


def reduce_mean(cube: np.ndarray, keep: np.ndarray) -> np.ndarray:
    """
    Arithmetic mean of the kept samples along axis 0.

    Pixels without any kept sample are NaN.
    """
    count = keep.sum(axis=0)
    total = np.where(keep, cube, 0.0).sum(axis=0)
    with np.errstate(invalid="ignore", divide="ignore"):
        return np.where(count > 0, total / np.maximum(count, 1), np.nan)


def reduce_median(cube: np.ndarray, keep: np.ndarray) -> np.ndarray:
    """
    Median of the kept samples along axis 0.

    For an even count the two middle values are averaged. Pixels without any
    kept sample are NaN.
    """
    values = np.where(keep, cube, np.nan)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        return np.nanmedian(values, axis=0)


Reducer = Callable[[np.ndarray, np.ndarray], np.ndarray]

_REDUCERS: dict[StackMode, Reducer] = {
    StackMode.AVERAGE: reduce_mean,
    StackMode.MEDIAN: reduce_median,
}


# =============================================================================
# COMBINER
# =============================================================================


def _normalize_offsets(offsets: Sequence[Sequence[float]], n_frames: int) -> list[tuple[int, int]]:
    if len(offsets) != n_frames:
        raise InputError(f"Got {len(offsets)} offsets for {n_frames} frames")

    result = []
    for i, offset in enumerate(offsets):
        if len(offset) != 2:
            raise InputError(f"Offset {i} must be a (dx, dy) pair, got {offset!r}")
        dx, dy = offset
        if not (np.isfinite(dx) and np.isfinite(dy)):
            raise InputError(f"Offset {i} is not finite: {offset!r}")
        result.append((int(round_half_up(dx)), int(round_half_up(dy))))
    return result


def _plan_chunk_rows(n_frames: int, height: int, width: int, config: EngineConfig) -> int:
    """Rows per block, bounded by the configured memory budget."""
    if config.max_frames is not None and n_frames > config.max_frames:
        raise CapacityError(
            f"{n_frames} frames exceeds the configured limit of {config.max_frames}"
        )

    row_bytes = n_frames * width * N_COLOR * _SAMPLE_BYTES
    if row_bytes > config.max_chunk_bytes:
        raise CapacityError(
            f"One row of {n_frames} frames x {width} px needs {row_bytes} bytes, "
            f"above the {config.max_chunk_bytes} byte budget"
        )

    budget_rows = config.max_chunk_bytes // row_bytes
    return int(max(1, min(config.chunk_rows, budget_rows, height)))


def _fill_cube(
    scratch: np.ndarray,
    frames: Sequence[PixelBuffer],
    offsets: Sequence[tuple[int, int]],
    row_start: int,
    row_end: int,
) -> np.ndarray:
    """
    Gather offset-adjusted samples for output rows [row_start, row_end).

    Output pixel (x, y) of frame i reads source pixel (x - dx, y - dy).
    Samples outside the source frame stay NaN.
    """
    n_rows = row_end - row_start
    cube = scratch[:, :n_rows]
    cube.fill(np.nan)

    for i, (frame, (dx, dy)) in enumerate(zip(frames, offsets)):
        height, width = frame.shape

        y0 = max(row_start, dy)
        y1 = min(row_end, height + dy)
        x0 = max(0, dx)
        x1 = min(width, width + dx)
        if y0 >= y1 or x0 >= x1:
            continue

        cube[i, y0 - row_start:y1 - row_start, x0:x1] = frame.rgb[y0 - dy:y1 - dy, x0 - dx:x1 - dx]

    return cube


def _combine_block(
    scratch: np.ndarray,
    frames: Sequence[PixelBuffer],
    offsets: Sequence[tuple[int, int]],
    row_start: int,
    row_end: int,
    reducer: Reducer,
    options: StackOptions,
    out_rgb: np.ndarray,
    coverage: np.ndarray,
) -> tuple[int, int]:
    """
    Combine one block of rows into ``out_rgb`` and ``coverage``.

    Returns
    -------
    tuple[int, int]
        (valid samples, rejected samples) in the block.
    """
    cube = _fill_cube(scratch, frames, offsets, row_start, row_end)
    valid = ~np.isnan(cube)

    if options.clipping_enabled:
        clip = options.sigma_clip
        keep = sigma_clip_mask(cube, clip.kappa, maxiters=clip.maxiters, valid=valid)
    else:
        keep = valid

    combined = reducer(cube, keep)

    out_rgb[row_start:row_end] = to_uint8(combined)
    coverage[row_start:row_end] = valid[..., 0].sum(axis=0)

    n_valid = int(valid.sum())
    return n_valid, n_valid - int(keep.sum())


def combine(
    frames: Sequence[PixelBuffer],
    offsets: Sequence[Sequence[float]],
    options: StackOptions | None = None,
    config: EngineConfig | None = None,
) -> StackResult:
    """
    Combine aligned frames into one image.

    Parameters
    ----------
    frames : sequence of PixelBuffer
        Input frames, all of the same size. Not modified.
    offsets : sequence of (dx, dy)
        One offset per frame, typically from :func:`skystack.align.align_frames`.
        Non-integer offsets are rounded half-up.
    options : StackOptions, optional
        Combination statistic and sigma clipping settings. The alignment
        field is ignored here.
    config : EngineConfig, optional
        Block size, thread count and memory limits.

    Returns
    -------
    StackResult
        Fresh output buffer, metadata (frame count, elapsed time of the
        combination loop, clipped fraction) and per-pixel coverage.

    Raises
    ------
    InputError
        No frames, mismatched dimensions, or an offsets length mismatch.
    CapacityError
        Too many frames, or a single row of samples exceeds the memory budget.

    Notes
    -----
    Output values are rounded half-up and clamped to [0, 255]; a pixel with
    no in-bounds sample in any frame is black. With one frame, zero offset
    and clipping disabled the output equals the input colour channels.
    """
    if options is None:
        options = StackOptions()
    if config is None:
        config = EngineConfig()
    options.validate()
    config.validate()

    height, width = validate_frames(frames)
    n_frames = len(frames)
    shifts = _normalize_offsets(offsets, n_frames)
    chunk_rows = _plan_chunk_rows(n_frames, height, width, config)
    reducer = _REDUCERS[options.mode]

    logger.info(
        "Combining %d frames (%dx%d) mode=%s, clip=%s, chunk_rows=%d, workers=%d",
        n_frames, width, height, options.mode.value,
        f"kappa={options.sigma_clip.kappa}" if options.clipping_enabled else "off",
        chunk_rows, config.workers,
    )

    out = np.empty((height, width, 4), dtype=np.uint8)
    out[:, :, 3] = OPAQUE
    out_rgb = out[:, :, :N_COLOR]
    coverage = np.zeros((height, width), dtype=np.int32)

    blocks = [(start, min(start + chunk_rows, height)) for start in range(0, height, chunk_rows)]

    from .cli_output import create_progress_bar

    pbar = create_progress_bar(
        total=len(blocks),
        desc="Combining",
        unit="block",
        disable=not config.show_progress,
    )

    n_valid = 0
    n_rejected = 0
    start_time = time.perf_counter()

    with pbar:
        if config.workers <= 1 or len(blocks) == 1:
            scratch = np.empty((n_frames, chunk_rows, width, N_COLOR), dtype=np.float64)
            for block_idx, (row_start, row_end) in enumerate(blocks):
                if block_idx % 10 == 0:
                    logger.debug(
                        "Processing block %d/%d (rows %d-%d)",
                        block_idx + 1, len(blocks), row_start, row_end - 1,
                    )
                valid, rejected = _combine_block(
                    scratch, frames, shifts, row_start, row_end,
                    reducer, options, out_rgb, coverage,
                )
                n_valid += valid
                n_rejected += rejected
                pbar.update(1)
        else:
            local = threading.local()

            def _task(bounds: tuple[int, int]) -> tuple[int, int]:
                row_start, row_end = bounds
                scratch = getattr(local, "scratch", None)
                if scratch is None:
                    scratch = np.empty((n_frames, chunk_rows, width, N_COLOR), dtype=np.float64)
                    local.scratch = scratch
                return _combine_block(
                    scratch, frames, shifts, row_start, row_end,
                    reducer, options, out_rgb, coverage,
                )

            with ThreadPoolExecutor(max_workers=config.workers) as executor:
                for valid, rejected in executor.map(_task, blocks):
                    n_valid += valid
                    n_rejected += rejected
                    pbar.update(1)

    elapsed_ms = (time.perf_counter() - start_time) * 1000.0

    clipped_fraction = n_rejected / n_valid if n_valid > 0 else 0.0
    metadata = StackMetadata(
        frame_count=n_frames,
        elapsed_ms=elapsed_ms,
        clipped_fraction=clipped_fraction,
    )

    logger.info(
        "Stack complete in %.1f ms. Coverage min %d / max %d, clipped %.2f%% of samples",
        elapsed_ms, int(coverage.min()), int(coverage.max()), 100.0 * clipped_fraction,
    )

    return StackResult(
        image=PixelBuffer(width=width, height=height, samples=out),
        metadata=metadata,
        coverage=coverage,
    )
