"""
Utility functions for skystack.

Includes:
- Version info
- Timestamps and platform strings for reports
- Rounding and duration helpers
"""

from __future__ import annotations

import platform
import sys
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import numpy as np

__version__ = "0.4.0"
__version_info__ = {
    "major": 0,
    "minor": 4,
    "patch": 0,
    "status": "beta",
    "date": "2026-10-19",
}


def get_version_banner() -> str:
    """Return a formatted version banner for logging."""
    return f"skystack v{__version__} | Astrophotography frame stacking engine"


def get_version() -> str:
    """Return the library version string."""
    return __version__


def get_platform_info() -> str:
    """Return platform information string."""
    return f"{platform.system()} {platform.release()} / Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"


def get_timestamp_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def round_half_up(values: np.ndarray | float) -> np.ndarray | float:
    """
    Round to the nearest integer with ties going up (127.5 -> 128).

    Unlike ``np.round``, 126.5 goes to 127.
    """
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def round_decimals(value: float, decimals: int) -> float:
    """
    Round a float to ``decimals`` places with ties going away from zero.

    The tie is judged on the exact binary value of ``value``, so
    ``round_decimals(0.0625, 3) == 0.063`` and ``round_decimals(0.125, 2) == 0.13``
    where the built-in ``round`` gives 0.062 and 0.12.
    """
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def to_uint8(data: np.ndarray) -> np.ndarray:
    """
    Convert a float array in [0, 255] to uint8 with half-up rounding.

    NaN entries (no contributing sample) become 0.
    """
    rounded = round_half_up(data)
    rounded = np.nan_to_num(rounded, nan=0.0)
    return np.clip(rounded, 0, 255).astype(np.uint8)


def format_milliseconds(ms: float) -> str:
    """
    Format a duration given in milliseconds.

    Parameters
    ----------
    ms : float
        Duration in milliseconds.

    Returns
    -------
    str
        Formatted string like "842.3ms", "12.4s" or "2m 5s".
    """
    if ms < 1000:
        return f"{ms:.1f}ms"
    seconds = ms / 1000.0
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.0f}s"


def linear_stretch(
    data: np.ndarray,
    percentiles: tuple[float, float] = (0.0, 100.0),
) -> np.ndarray:
    """
    Apply simple linear percentile stretch.

    Parameters
    ----------
    data : np.ndarray
        Input image.
    percentiles : tuple[float, float], default (0.0, 100.0)
        Percentiles for black and white points.

    Returns
    -------
    np.ndarray
        Stretched image normalized to [0, 1] range (float32).
    """
    vmin = np.percentile(data, percentiles[0])
    vmax = np.percentile(data, percentiles[1])

    if vmax - vmin < 1e-10:
        return np.zeros_like(data, dtype=np.float32)

    stretched = (data - vmin) / (vmax - vmin)
    stretched = np.clip(stretched, 0, 1)

    return stretched.astype(np.float32)
