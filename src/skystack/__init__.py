"""
skystack - Frame stacking engine for astrophotography sessions.

Aligns a set of exposures, combines them with a robust per-pixel statistic
(mean or median, with optional sigma clipping) and reports quality metrics
(SNR, sharpness, luminance histogram) of the result.

Example
-------
>>> from skystack import StackOptions, generate_synthetic_frames, stack_frames
>>> frames = generate_synthetic_frames(count=8, seed=1)
>>> response = stack_frames(frames, StackOptions(mode="median", alignment="centroid"))
>>> response.frame_count, response.quality.snr
"""

from .buffer import PixelBuffer, luminance_from_rgb, validate_frames
from .config import (
    AlignmentMode,
    EngineConfig,
    QualityReport,
    SigmaClipOptions,
    StackMetadata,
    StackMode,
    StackOptions,
    StackResponse,
    StackResult,
)
from .errors import CapacityError, InputError, StackingError
from .utils import __version__, __version_info__, get_version_banner

# Primary entry point
from .service import StackingService, stack_frames

# Alignment
from .align import (
    Aligner,
    CentroidAligner,
    IdentityAligner,
    PhaseCorrelationAligner,
    align_frames,
    apply_integer_shift,
    get_aligner,
    luminance_centroid,
)

# Combination
from .stack import combine, reduce_mean, reduce_median, sigma_clip_mask

# Quality assessment
from .quality import assess_quality, compute_histogram, compute_snr, estimate_sharpness

# Synthetic data
from .synthetic import generate_synthetic_frames

__all__ = [
    # Version
    "__version__",
    "__version_info__",
    "get_version_banner",
    # Data model
    "PixelBuffer",
    "luminance_from_rgb",
    "validate_frames",
    # Config
    "AlignmentMode",
    "EngineConfig",
    "SigmaClipOptions",
    "StackMode",
    "StackOptions",
    # Results
    "QualityReport",
    "StackMetadata",
    "StackResponse",
    "StackResult",
    # Errors
    "StackingError",
    "InputError",
    "CapacityError",
    # Main entry point
    "StackingService",
    "stack_frames",
    # Alignment
    "Aligner",
    "IdentityAligner",
    "CentroidAligner",
    "PhaseCorrelationAligner",
    "align_frames",
    "apply_integer_shift",
    "get_aligner",
    "luminance_centroid",
    # Combination
    "combine",
    "sigma_clip_mask",
    "reduce_mean",
    "reduce_median",
    # Quality
    "assess_quality",
    "compute_snr",
    "estimate_sharpness",
    "compute_histogram",
    # Synthetic
    "generate_synthetic_frames",
]
