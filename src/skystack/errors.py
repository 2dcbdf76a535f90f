"""
Exception types raised by the skystack engine.

Numerical degenerate cases (black frames, zero variance) are not errors:
they have documented fallback values and never raise.
"""

from __future__ import annotations


class StackingError(Exception):
    """Base class for all skystack errors."""


class InputError(StackingError, ValueError):
    """Invalid input shape: no frames, mismatched dimensions, bad sample data."""


class CapacityError(StackingError):
    """Requested stack exceeds the configured memory or frame limits."""
