"""
Configuration and result dataclasses for the skystack engine.

StackOptions carries the numerical choices of one stacking call (statistic,
alignment, outlier rejection). EngineConfig carries resource knobs that never
change the numbers produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from .buffer import PixelBuffer


class StackMode(Enum):
    """Pixel-wise combination statistic."""

    AVERAGE = "average"
    MEDIAN = "median"


class AlignmentMode(Enum):
    """How per-frame offsets are estimated before combination."""

    CENTROID = "centroid"  # Luminance-weighted centre of mass
    NONE = "none"  # Pass-through, all offsets zero
    PHASE = "phase"  # Phase cross-correlation on luminance


DEFAULT_KAPPA = 2.2


@dataclass
class SigmaClipOptions:
    """Per-pixel outlier rejection settings."""

    enabled: bool = True
    """Reject outlying samples before combining."""

    kappa: float = DEFAULT_KAPPA
    """Rejection threshold in standard deviations from the per-pixel mean."""

    maxiters: int = 1
    """Number of clipping passes (1 = single pass)."""

    def validate(self) -> None:
        """Validate clipping parameters."""
        if self.enabled and not self.kappa > 0:
            raise ValueError(f"kappa must be positive when sigma clipping is enabled, got {self.kappa}")
        if self.maxiters < 1:
            raise ValueError(f"maxiters must be >= 1, got {self.maxiters}")


def _parse_enum(enum_cls: type[Enum], value: Any, name: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"Unknown {name} {value!r} (expected one of: {choices})") from None


@dataclass
class StackOptions:
    """
    Options for one stacking call.

    Defaults mirror the dashboard: average combine, centroid alignment,
    sigma clipping enabled with kappa = 2.2.
    """

    mode: StackMode = StackMode.AVERAGE
    """Combination statistic: AVERAGE or MEDIAN."""

    alignment: AlignmentMode = AlignmentMode.CENTROID
    """Offset estimation: CENTROID, NONE or PHASE."""

    sigma_clip: SigmaClipOptions | None = field(default_factory=SigmaClipOptions)
    """Outlier rejection settings; None disables clipping."""

    def __post_init__(self):
        self.mode = _parse_enum(StackMode, self.mode, "mode")
        self.alignment = _parse_enum(AlignmentMode, self.alignment, "alignment")

    @property
    def clipping_enabled(self) -> bool:
        return self.sigma_clip is not None and self.sigma_clip.enabled

    def validate(self) -> None:
        """Validate option values."""
        if self.sigma_clip is not None:
            self.sigma_clip.validate()

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> StackOptions:
        """
        Build options from a plain record.

        Accepts the dashboard layout
        ``{"mode": "median", "alignment": "none", "sigmaClip": {"enabled": True, "kappa": 2.5}}``
        as well as snake_case ``sigma_clip``.
        """
        clip_record = record.get("sigmaClip", record.get("sigma_clip"))
        sigma_clip = None
        if clip_record is not None:
            sigma_clip = SigmaClipOptions(
                enabled=bool(clip_record.get("enabled", True)),
                kappa=float(clip_record.get("kappa", DEFAULT_KAPPA)),
                maxiters=int(clip_record.get("maxiters", 1)),
            )

        options = cls(
            mode=record.get("mode", StackMode.AVERAGE),
            alignment=record.get("alignment", AlignmentMode.CENTROID),
            sigma_clip=sigma_clip,
        )
        options.validate()
        return options

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the dashboard record layout."""
        record: dict[str, Any] = {
            "mode": self.mode.value,
            "alignment": self.alignment.value,
        }
        if self.sigma_clip is not None:
            record["sigmaClip"] = {
                "enabled": self.sigma_clip.enabled,
                "kappa": self.sigma_clip.kappa,
                "maxiters": self.sigma_clip.maxiters,
            }
        return record


@dataclass
class EngineConfig:
    """
    Resource settings for the combiner.

    None of these change the output pixels, only memory use and speed.
    """

    chunk_rows: int = 64
    """Output rows processed per block."""

    workers: int = 1
    """Threads used to process row blocks in parallel."""

    max_chunk_bytes: int = 256 * 1024**2
    """Memory budget for one block's sample cube (float64)."""

    max_frames: int | None = None
    """Maximum number of frames per call (None = unlimited)."""

    show_progress: bool = False
    """Display a progress bar over row blocks."""

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.chunk_rows < 1:
            raise ValueError(f"chunk_rows must be >= 1, got {self.chunk_rows}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.max_chunk_bytes < 1:
            raise ValueError(f"max_chunk_bytes must be positive, got {self.max_chunk_bytes}")
        if self.max_frames is not None and self.max_frames < 1:
            raise ValueError(f"max_frames must be >= 1 or None, got {self.max_frames}")


@dataclass(frozen=True)
class StackMetadata:
    """Run metadata of one combination."""

    frame_count: int
    """Number of input frames used."""

    elapsed_ms: float
    """Wall-clock duration of the combination loop only."""

    clipped_fraction: float = 0.0
    """Fraction of in-bounds samples rejected by sigma clipping."""


@dataclass(frozen=True, eq=False)
class StackResult:
    """Output of the combiner."""

    image: PixelBuffer
    metadata: StackMetadata
    coverage: np.ndarray | None = None
    """Frames with an in-bounds sample per output pixel, int32 (H, W)."""


@dataclass(frozen=True)
class QualityReport:
    """Quality figures of a single buffer."""

    snr: float
    """Luminance signal-to-noise ratio in dB."""

    sharpness: float
    """Edge-energy ratio (heuristic, not a calibrated MTF)."""

    histogram: tuple[float, ...]
    """Fraction of pixels per luminance bucket."""


@dataclass(frozen=True, eq=False)
class StackResponse:
    """Everything returned to the caller for one stacking invocation."""

    result: StackResult
    quality: QualityReport
    offsets: list[tuple[int, int]]
    options: StackOptions
    integration_minutes: float | None = None

    @property
    def image(self) -> PixelBuffer:
        return self.result.image

    @property
    def frame_count(self) -> int:
        return self.result.metadata.frame_count

    @property
    def elapsed_ms(self) -> float:
        return self.result.metadata.elapsed_ms
