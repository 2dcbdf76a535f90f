"""
Stacking service: the single entry point used by front-ends.

Wires alignment, combination and quality assessment for one invocation:

    frames + options -> align_frames -> combine -> assess_quality -> StackResponse

The service holds no state between calls. Input shape errors are raised
before any processing starts.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .align import align_frames
from .buffer import PixelBuffer, validate_frames
from .config import EngineConfig, StackOptions, StackResponse
from .errors import InputError
from .quality import assess_quality
from .stack import combine

logger = logging.getLogger(__name__)


class StackingService:
    """
    Align, combine and assess a set of frames.

    Parameters
    ----------
    config : EngineConfig, optional
        Resource settings passed to the combiner.

    Example
    -------
    >>> service = StackingService()
    >>> response = service.stack(frames, StackOptions(mode="median"))
    >>> response.frame_count, response.quality.snr
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config if config is not None else EngineConfig()

    def stack(
        self,
        frames: Sequence[PixelBuffer],
        options: StackOptions | None = None,
        exposures: Sequence[float] | None = None,
    ) -> StackResponse:
        """
        Run one stacking invocation.

        Parameters
        ----------
        frames : sequence of PixelBuffer
            Input frames, same width and height, at least one.
        options : StackOptions, optional
            Combination settings (defaults: average, centroid, kappa 2.2).
        exposures : sequence of float, optional
            Exposure time per frame in seconds, used for the integration
            time summary.

        Returns
        -------
        StackResponse
            Combined image, metadata, offsets and quality figures.

        Raises
        ------
        InputError
            No frames, mismatched dimensions, or exposures of the wrong length.
        CapacityError
            The stack exceeds the engine limits.
        ValueError
            Invalid option values.
        """
        if options is None:
            options = StackOptions()
        options.validate()
        self.config.validate()

        height, width = validate_frames(frames)

        integration_minutes = None
        if exposures is not None:
            if len(exposures) != len(frames):
                raise InputError(f"Got {len(exposures)} exposures for {len(frames)} frames")
            integration_minutes = float(sum(exposures)) / 60.0

        logger.info(
            "Stacking %d frames (%dx%d): mode=%s alignment=%s",
            len(frames), width, height, options.mode.value, options.alignment.value,
        )

        offsets = align_frames(frames, options.alignment)
        result = combine(frames, offsets, options, self.config)
        quality = assess_quality(result.image)

        logger.info(
            "Stacked %d frames in %.1f ms: SNR %.2f dB, sharpness %.2f",
            result.metadata.frame_count, result.metadata.elapsed_ms,
            quality.snr, quality.sharpness,
        )

        return StackResponse(
            result=result,
            quality=quality,
            offsets=offsets,
            options=options,
            integration_minutes=integration_minutes,
        )


def stack_frames(
    frames: Sequence[PixelBuffer],
    options: StackOptions | None = None,
    config: EngineConfig | None = None,
    exposures: Sequence[float] | None = None,
) -> StackResponse:
    """Convenience wrapper around :meth:`StackingService.stack`."""
    return StackingService(config).stack(frames, options, exposures=exposures)
