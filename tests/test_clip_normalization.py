"""
Tests for absolute and percentile clip normalization.
"""
import pytest
import numpy as np

from models.attribute_config import AbsoluteClipConfig, PercentileClipConfig
from models.lazy_seismic_volume import create_zarr_volume
from models.seismic_volume import SeismicVolume
from models.sub_cube import SubCube, BorderPolicy
from processors.base_attribute import AttributeContext
from processors.clip_normalization import (
    AbsoluteClipNormalization,
    PercentileClipNormalization,
    clip_normalize,
)
from processors.histogram_percentile import ClipBounds, HistogramStatus, NUM_HISTOGRAM_BINS
from tests.fixtures.synthetic_volumes import full_cube, run_on_cubes


class UnreadableVolume:
    """Volume-shaped object whose trace reads always fail."""

    shape = (4, 4, 8)
    spacing = (25.0, 25.0, 4.0)

    def iter_traces(self):
        raise OSError("storage unavailable")


def column(values):
    """SubCube holding values along I."""
    return SubCube(np.asarray(values, dtype=np.float32).reshape(-1, 1, 1))


class TestClipNormalize:
    """The shared pointwise mapping."""

    def test_reference_values(self):
        result = clip_normalize(np.array([5.0, 10.0, 15.0, 20.0, 25.0]), ClipBounds(10.0, 20.0))
        np.testing.assert_allclose(result, [0.0, 0.0, 0.5, 1.0, 1.0])
        assert result.dtype == np.float32

    def test_nan_passes_through(self):
        result = clip_normalize(np.array([np.nan, 15.0]), ClipBounds(10.0, 20.0))
        assert np.isnan(result[0])
        assert result[1] == pytest.approx(0.5)

    def test_degenerate_range_gives_zero(self):
        result = clip_normalize(np.array([3.0, 7.0, 9.0]), ClipBounds(7.0, 7.0))
        np.testing.assert_array_equal(result, [0.0, 0.0, 0.0])


class TestAbsoluteClipNormalization:
    """|amplitude| band clip."""

    def test_reference_values(self):
        kernel = AbsoluteClipNormalization(AbsoluteClipConfig(10.0, 20.0))
        (result,) = run_on_cubes(kernel, [column([5.0, 15.0, 25.0, np.nan, -15.0, -30.0])])

        np.testing.assert_allclose(result[:3, 0, 0], [0.0, 0.5, 1.0])
        assert np.isnan(result[3, 0, 0])
        np.testing.assert_allclose(result[4:, 0, 0], [0.5, 1.0])

    def test_monotone_in_unit_range(self):
        rng = np.random.default_rng(3)
        values = rng.uniform(-50.0, 50.0, size=200)
        kernel = AbsoluteClipNormalization(AbsoluteClipConfig(5.0, 40.0))
        (result,) = run_on_cubes(kernel, [column(values)])
        result = result.ravel()

        assert np.all((result >= 0.0) & (result <= 1.0))
        order = np.argsort(np.abs(values.astype(np.float32)))
        assert np.all(np.diff(result[order]) >= 0.0)

    def test_compute_before_initialize_raises(self):
        kernel = AbsoluteClipNormalization()
        cube = column([1.0])
        with pytest.raises(RuntimeError):
            kernel.compute([cube], [SubCube.empty(cube.min_ijk, cube.max_ijk)])

    def test_wrong_input_count(self):
        kernel = AbsoluteClipNormalization()
        kernel.initialize()
        cube = column([1.0])
        with pytest.raises(ValueError):
            kernel.compute([cube, cube], [SubCube.empty(cube.min_ijk, cube.max_ijk)])

    def test_input_must_cover_output(self):
        kernel = AbsoluteClipNormalization()
        kernel.initialize()
        with pytest.raises(ValueError):
            kernel.compute([column([1.0])], [SubCube.empty((0, 0, 0), (1, 0, 0))])

    def test_output_only_covers_requested_range(self):
        kernel = AbsoluteClipNormalization(AbsoluteClipConfig(0.0, 10.0))
        kernel.initialize()
        out = SubCube.empty((1, 0, 0), (2, 0, 0))
        kernel.compute([column([2.0, 4.0, 6.0, 8.0])], [out])
        np.testing.assert_allclose(out.data.ravel(), [0.4, 0.6])

    def test_attribute_info(self):
        info = AbsoluteClipNormalization().get_attribute_info()
        assert info.window_size == (1, 1, 1)
        assert info.border == BorderPolicy.REPLICATE
        assert info.value_ranges == ((0.0, 1.0),)
        assert info.output_labels == ('Output',)


class TestPercentileClipNormalization:
    """Global-percentile clip."""

    def test_uniform_volume(self, uniform_volume):
        kernel = PercentileClipNormalization(
            PercentileClipConfig(1.0, 99.0), AttributeContext([uniform_volume])
        )
        bounds = kernel.initialize()
        bin_width = 99.0 / (NUM_HISTOGRAM_BINS - 1)
        assert bounds.lower == pytest.approx(1.0, abs=bin_width)
        assert bounds.upper == pytest.approx(99.0, abs=bin_width)

        (result,) = run_on_cubes(kernel, [column([1.0, 50.0, 100.0])])
        np.testing.assert_allclose(result.ravel(), [0.0, 0.5, 1.0], atol=1e-3)

    def test_output_in_unit_range(self, random_volume):
        kernel = PercentileClipNormalization(
            PercentileClipConfig(5.0, 95.0), AttributeContext([random_volume])
        )
        (result,) = run_on_cubes(kernel, [full_cube(random_volume)])
        assert np.all((result >= 0.0) & (result <= 1.0))
        # 5% of samples sit at or below the lower bound
        assert np.mean(result == 0.0) == pytest.approx(0.05, abs=0.01)

    def test_initialize_is_idempotent(self, random_volume):
        kernel = PercentileClipNormalization(context=AttributeContext([random_volume]))
        first = kernel.initialize()
        assert kernel.initialize() is first
        assert kernel.is_initialized

    def test_constant_volume_outputs_zero(self):
        volume = SeismicVolume(data=np.full((4, 4, 4), 7.0, dtype=np.float32))
        kernel = PercentileClipNormalization(context=AttributeContext([volume]))
        (result,) = run_on_cubes(kernel, [full_cube(volume)])

        assert kernel.prepared_state.status == HistogramStatus.CONSTANT_VOLUME
        np.testing.assert_array_equal(result, np.zeros((4, 4, 4), dtype=np.float32))

    def test_all_nan_volume_falls_back_to_unit_bounds(self):
        volume = SeismicVolume(data=np.full((2, 2, 2), np.nan, dtype=np.float32))
        kernel = PercentileClipNormalization(context=AttributeContext([volume]))
        state = kernel.initialize()
        assert (state.lower, state.upper) == (0.0, 1.0)
        assert state.status == HistogramStatus.NO_VALID_DATA

        (result,) = run_on_cubes(kernel, [full_cube(volume)])
        assert np.all(np.isnan(result))

    def test_missing_input_falls_back_to_unit_bounds(self):
        kernel = PercentileClipNormalization(context=AttributeContext([]))
        state = kernel.initialize()
        assert state == ClipBounds(0.0, 1.0, HistogramStatus.MISSING_INPUT)

        (result,) = run_on_cubes(kernel, [column([0.25, 2.0, -1.0])])
        np.testing.assert_allclose(result.ravel(), [0.25, 1.0, 0.0])

    def test_non_volume_input_falls_back(self):
        kernel = PercentileClipNormalization(context=AttributeContext([np.zeros((3, 3, 3))]))
        assert kernel.initialize().status == HistogramStatus.MISSING_INPUT

    def test_progress_callback(self, random_volume):
        calls = []
        kernel = PercentileClipNormalization(context=AttributeContext([random_volume]))
        kernel.set_progress_callback(lambda current, total, message: calls.append(message))
        kernel.initialize()
        assert calls

    def test_read_error_falls_back_to_unit_bounds(self):
        kernel = PercentileClipNormalization(context=AttributeContext([UnreadableVolume()]))
        state = kernel.initialize()
        assert state == ClipBounds(0.0, 1.0, HistogramStatus.READ_ERROR)

        (result,) = run_on_cubes(kernel, [column([0.5, 3.0])])
        np.testing.assert_allclose(result.ravel(), [0.5, 1.0])

    def test_corrupt_zarr_chunks_fall_back(self, random_volume, temp_dir):
        lazy = create_zarr_volume(str(temp_dir / 'corrupt'), volume=random_volume)
        metadata_names = {'.zarray', '.zattrs', '.zgroup', '.zmetadata', 'zarr.json'}
        chunk_files = [p for p in (temp_dir / 'corrupt' / 'volume.zarr').rglob('*')
                       if p.is_file() and p.name not in metadata_names]
        assert chunk_files
        for path in chunk_files:
            path.write_bytes(b'\x02\x01not a compressed chunk' * 4)

        kernel = PercentileClipNormalization(context=AttributeContext([lazy]))
        state = kernel.initialize()
        assert (state.lower, state.upper) == (0.0, 1.0)
        assert state.status == HistogramStatus.READ_ERROR
