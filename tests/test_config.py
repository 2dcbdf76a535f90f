"""
Tests for the config module.

Tests cover:
- StackOptions defaults, parsing and validation
- EngineConfig validation
"""

import pytest

from skystack.config import (
    AlignmentMode,
    EngineConfig,
    SigmaClipOptions,
    StackMode,
    StackOptions,
)


class TestStackOptions:
    """Tests for StackOptions."""

    def test_defaults(self):
        options = StackOptions()

        assert options.mode is StackMode.AVERAGE
        assert options.alignment is AlignmentMode.CENTROID
        assert options.clipping_enabled
        assert options.sigma_clip.kappa == 2.2
        assert options.sigma_clip.maxiters == 1

    def test_string_values_parsed(self):
        options = StackOptions(mode="Median", alignment="NONE")
        assert options.mode is StackMode.MEDIAN
        assert options.alignment is AlignmentMode.NONE

    def test_unknown_mode_raises(self):
        with pytest.raises(ValueError, match="Unknown mode"):
            StackOptions(mode="sum")

    def test_unknown_alignment_raises(self):
        with pytest.raises(ValueError, match="Unknown alignment"):
            StackOptions(alignment="stars")

    def test_no_sigma_clip(self):
        options = StackOptions(sigma_clip=None)
        options.validate()
        assert not options.clipping_enabled

    @pytest.mark.parametrize("kappa", [0.0, -1.0, float("nan")])
    def test_non_positive_kappa_rejected(self, kappa):
        options = StackOptions(sigma_clip=SigmaClipOptions(enabled=True, kappa=kappa))
        with pytest.raises(ValueError, match="kappa"):
            options.validate()

    def test_kappa_ignored_when_disabled(self):
        StackOptions(sigma_clip=SigmaClipOptions(enabled=False, kappa=0.0)).validate()

    def test_large_kappa_not_clamped(self):
        options = StackOptions(sigma_clip=SigmaClipOptions(kappa=50.0))
        options.validate()
        assert options.sigma_clip.kappa == 50.0

    def test_maxiters_validated(self):
        with pytest.raises(ValueError, match="maxiters"):
            SigmaClipOptions(maxiters=0).validate()

    def test_from_dashboard_record(self):
        options = StackOptions.from_dict({
            "mode": "median",
            "alignment": "none",
            "sigmaClip": {"enabled": True, "kappa": 3.1},
        })

        assert options.mode is StackMode.MEDIAN
        assert options.alignment is AlignmentMode.NONE
        assert options.sigma_clip.enabled
        assert options.sigma_clip.kappa == 3.1

    def test_from_dict_snake_case_and_missing_clip(self):
        options = StackOptions.from_dict({"sigma_clip": {"enabled": False}})
        assert not options.clipping_enabled

        options = StackOptions.from_dict({"mode": "average"})
        assert options.sigma_clip is None

    def test_from_dict_validates(self):
        with pytest.raises(ValueError, match="kappa"):
            StackOptions.from_dict({"sigmaClip": {"enabled": True, "kappa": -2}})

    def test_to_dict_layout(self):
        record = StackOptions(mode="median").to_dict()
        assert record == {
            "mode": "median",
            "alignment": "centroid",
            "sigmaClip": {"enabled": True, "kappa": 2.2, "maxiters": 1},
        }


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_defaults_valid(self):
        EngineConfig().validate()

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"chunk_rows": 0}, "chunk_rows"),
            ({"workers": 0}, "workers"),
            ({"max_chunk_bytes": 0}, "max_chunk_bytes"),
            ({"max_frames": 0}, "max_frames"),
        ],
    )
    def test_invalid_values(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            EngineConfig(**kwargs).validate()
