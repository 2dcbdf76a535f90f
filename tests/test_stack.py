"""
Tests for the stack module.

Tests cover:
- Mean and median combination
- Sigma clipping (filter) and reducers as separate steps
- Offset handling and out-of-bounds exclusion
- Input and capacity errors
- Identical results across block sizes and thread counts
"""

import numpy as np
import pytest

from skystack.buffer import PixelBuffer
from skystack.config import EngineConfig, SigmaClipOptions, StackMode, StackOptions
from skystack.errors import CapacityError, InputError
from skystack.stack import combine, reduce_mean, reduce_median, sigma_clip_mask


def _options(mode="average", clip=False, kappa=2.2, maxiters=1):
    return StackOptions(
        mode=mode,
        alignment="none",
        sigma_clip=SigmaClipOptions(enabled=clip, kappa=kappa, maxiters=maxiters),
    )


def _grey(value, width=4, height=4):
    return PixelBuffer.filled(width, height, (value, value, value, 255))


class TestCombineBasics:
    """Basic combination properties."""

    def test_output_dimensions(self, random_frame):
        frames = [random_frame(17, 9, seed=s) for s in range(3)]
        result = combine(frames, [(0, 0)] * 3, _options())

        assert (result.image.width, result.image.height) == (17, 9)
        assert result.coverage.shape == (9, 17)

    @pytest.mark.parametrize("mode", ["average", "median"])
    def test_single_frame_identity(self, random_frame, mode):
        """A single opaque frame comes back unchanged."""
        frame = random_frame(seed=3)
        result = combine([frame], [(0, 0)], _options(mode=mode))

        assert result.image == frame
        assert result.metadata.frame_count == 1

    def test_single_frame_with_clipping(self, random_frame):
        """Clipping one sample never rejects it."""
        frame = random_frame(seed=4)
        result = combine([frame], [(0, 0)], _options(clip=True))

        assert result.image == frame
        assert result.metadata.clipped_fraction == 0.0

    def test_identical_grey_frames(self):
        """Three identical grey frames average to the same frame."""
        frames = [_grey(128)] * 3
        result = combine(frames, [(0, 0)] * 3, _options())

        assert result.image == _grey(128)
        assert result.metadata.frame_count == 3

    def test_average_rounds_half_up(self):
        """Mean of 0 and 255 is 127.5, rounded to 128."""
        result = combine([_grey(0), _grey(255)], [(0, 0), (0, 0)], _options())
        assert np.all(result.image.rgb == 128)

    def test_median_even_count(self):
        """Even count median averages the two middle values."""
        frames = [_grey(v) for v in (40, 10, 30, 20)]
        result = combine(frames, [(0, 0)] * 4, _options(mode="median"))
        assert np.all(result.image.rgb == 25)

    def test_median_even_count_rounds_half_up(self):
        result = combine([_grey(10), _grey(11)], [(0, 0)] * 2, _options(mode="median"))
        assert np.all(result.image.rgb == 11)

    def test_channels_independent(self):
        a = PixelBuffer.filled(3, 3, (10, 100, 200, 255))
        b = PixelBuffer.filled(3, 3, (20, 120, 250, 255))
        result = combine([a, b], [(0, 0)] * 2, _options())
        assert result.image.samples[1, 1].tolist() == [15, 110, 225, 255]

    def test_output_alpha_opaque(self):
        """Output alpha is 255 whatever the input alpha."""
        frames = [PixelBuffer.filled(3, 3, (50, 50, 50, 0))] * 2
        result = combine(frames, [(0, 0)] * 2, _options())
        assert np.all(result.image.alpha == 255)

    def test_inputs_not_modified(self, random_frame):
        frames = [random_frame(seed=s) for s in range(3)]
        before = [f.to_flat() for f in frames]

        combine(frames, [(0, 0), (1, 0), (0, -1)], _options(mode="median", clip=True))

        for frame, flat in zip(frames, before):
            assert np.array_equal(frame.to_flat(), flat)

    def test_elapsed_time_reported(self):
        result = combine([_grey(1)] * 2, [(0, 0)] * 2, _options())
        assert result.metadata.elapsed_ms >= 0.0


class TestOutlierRejection:
    """Sigma clipping and robust statistics."""

    def _outlier_stack(self, n_frames, outlier_index, value=200, outlier=0):
        frames = [_grey(value, 6, 6) for _ in range(n_frames)]
        frames[outlier_index] = _grey(outlier, 6, 6)
        return frames

    def test_median_with_clip_ignores_outlier(self):
        """Median of five frames with one 0 among 200s stays at 200."""
        frames = self._outlier_stack(5, outlier_index=2)
        result = combine(frames, [(0, 0)] * 5, _options(mode="median", clip=True))
        assert np.all(result.image.rgb == 200)

    def test_unclipped_average_pulled_down(self):
        """Without clipping the outlier drags the mean to 160."""
        frames = self._outlier_stack(5, outlier_index=2)
        result = combine(frames, [(0, 0)] * 5, _options(mode="average", clip=False))
        assert np.all(result.image.rgb == 160)

    def test_clipping_rejects_outlier_in_average(self):
        """With ten frames the single outlier exceeds 2.2 sigma and is rejected."""
        frames = self._outlier_stack(10, outlier_index=7)
        clipped = combine(frames, [(0, 0)] * 10, _options(mode="average", clip=True))
        unclipped = combine(frames, [(0, 0)] * 10, _options(mode="average", clip=False))

        assert np.all(clipped.image.rgb == 200)
        assert np.all(unclipped.image.rgb == 180)
        assert clipped.metadata.clipped_fraction == pytest.approx(0.1)
        assert unclipped.metadata.clipped_fraction == 0.0

    def test_high_kappa_keeps_everything(self):
        frames = self._outlier_stack(10, outlier_index=0)
        result = combine(frames, [(0, 0)] * 10, _options(clip=True, kappa=6.0))
        assert np.all(result.image.rgb == 180)

    def test_invalid_kappa_raises(self):
        with pytest.raises(ValueError, match="kappa"):
            combine([_grey(1)], [(0, 0)], _options(clip=True, kappa=0.0))


class TestClipAndReduceSteps:
    """Filter and reduce functions in isolation."""

    def test_sigma_clip_mask_flags_outlier(self):
        values = np.array([200.0] * 9 + [0.0]).reshape(10, 1, 1, 1)
        keep = sigma_clip_mask(values, kappa=2.2)

        assert keep.shape == values.shape
        assert keep[:9].all()
        assert not keep[9].any()

    def test_sigma_clip_never_empties_a_pixel(self):
        """When every sample would be rejected the unclipped set is kept."""
        values = np.array([0.0, 10.0]).reshape(2, 1)
        keep = sigma_clip_mask(values, kappa=0.5)
        assert keep.all()

    def test_sigma_clip_ignores_missing_samples(self):
        values = np.array([np.nan, 50.0, 50.0]).reshape(3, 1)
        keep = sigma_clip_mask(values, kappa=2.0)
        assert keep[:, 0].tolist() == [False, True, True]

    def test_reduce_mean(self):
        cube = np.array([1.0, 2.0, 100.0]).reshape(3, 1)
        keep = np.array([True, True, False]).reshape(3, 1)
        assert reduce_mean(cube, keep)[0] == pytest.approx(1.5)

    def test_reduce_median(self):
        cube = np.array([1.0, 7.0, 3.0, 100.0]).reshape(4, 1)
        keep = np.array([True, True, True, False]).reshape(4, 1)
        assert reduce_median(cube, keep)[0] == pytest.approx(3.0)

    def test_reducers_nan_without_samples(self):
        cube = np.array([5.0, 6.0]).reshape(2, 1)
        keep = np.zeros((2, 1), dtype=bool)
        assert np.isnan(reduce_mean(cube, keep)[0])
        assert np.isnan(reduce_median(cube, keep)[0])


class TestOffsets:
    """Offset application in the combiner."""

    def test_out_of_bounds_samples_excluded(self):
        """Missing samples are excluded, not counted as zero."""
        frames = [_grey(100), _grey(200)]
        result = combine(frames, [(0, 0), (1, 0)], _options())

        rgb = result.image.rgb
        assert np.all(rgb[:, 0] == 100)
        assert np.all(rgb[:, 1:] == 150)
        assert np.all(result.coverage[:, 0] == 1)
        assert np.all(result.coverage[:, 1:] == 2)

    def test_shift_direction(self):
        """Output (x, y) reads frame (x - dx, y - dy)."""
        rgb = np.zeros((5, 5, 3), dtype=np.uint8)
        rgb[1, 1] = 255
        frame = PixelBuffer.from_array(rgb)

        result = combine([frame], [(2, 3)], _options())

        assert result.image.samples[4, 3, :3].tolist() == [255, 255, 255]
        assert result.image.samples[1, 1, :3].tolist() == [0, 0, 0]

    def test_pixel_without_samples_is_black(self):
        result = combine([_grey(90, 3, 3)], [(3, 0)], _options())

        assert np.all(result.image.rgb == 0)
        assert np.all(result.image.alpha == 255)
        assert np.all(result.coverage == 0)

    def test_float_offsets_rounded_half_up(self):
        frames = [_grey(100), _grey(200)]
        result = combine(frames, [(0.0, 0.0), (0.5, -0.4)], _options())
        assert np.all(result.image.rgb[:, 0] == 100)


class TestCombineErrors:
    """Input validation and capacity limits."""

    def test_empty_frames_raise(self):
        with pytest.raises(InputError, match="Empty frame list"):
            combine([], [], _options())

    def test_mismatched_dimensions_raise(self):
        with pytest.raises(InputError):
            combine([_grey(1, 4, 4), _grey(1, 5, 4)], [(0, 0)] * 2, _options())

    def test_offsets_length_mismatch_raises(self):
        with pytest.raises(InputError, match="offsets"):
            combine([_grey(1)] * 2, [(0, 0)], _options())

    def test_non_finite_offset_raises(self):
        with pytest.raises(InputError, match="finite"):
            combine([_grey(1)], [(float("nan"), 0)], _options())

    def test_frame_limit(self):
        config = EngineConfig(max_frames=2)
        with pytest.raises(CapacityError, match="limit"):
            combine([_grey(1)] * 3, [(0, 0)] * 3, _options(), config)

    def test_row_budget(self):
        config = EngineConfig(max_chunk_bytes=64)
        with pytest.raises(CapacityError, match="budget"):
            combine([_grey(1, 16, 2)] * 4, [(0, 0)] * 4, _options(), config)


class TestDeterminism:
    """Block size and thread count do not change the output."""

    def test_block_size_and_workers(self, random_frame):
        frames = [random_frame(23, 37, seed=s) for s in range(7)]
        offsets = [(0, 0), (1, 0), (-2, 1), (0, 3), (2, -2), (-1, -1), (3, 0)]
        options = _options(mode="median", clip=True, kappa=1.5)

        reference = combine(frames, offsets, options, EngineConfig(chunk_rows=64, workers=1))
        small_blocks = combine(frames, offsets, options, EngineConfig(chunk_rows=3, workers=1))
        threaded = combine(frames, offsets, options, EngineConfig(chunk_rows=5, workers=4))

        assert small_blocks.image == reference.image
        assert threaded.image == reference.image
        assert np.array_equal(threaded.coverage, reference.coverage)
        assert threaded.metadata.clipped_fraction == pytest.approx(reference.metadata.clipped_fraction)

    def test_budget_limits_block_rows(self, random_frame):
        """A small memory budget shrinks blocks without changing results."""
        frames = [random_frame(8, 20, seed=s) for s in range(3)]
        row_bytes = 3 * 8 * 3 * 8
        tight = EngineConfig(max_chunk_bytes=2 * row_bytes)

        a = combine(frames, [(0, 0)] * 3, _options(mode=StackMode.AVERAGE), tight)
        b = combine(frames, [(0, 0)] * 3, _options(mode=StackMode.AVERAGE))
        assert a.image == b.image
