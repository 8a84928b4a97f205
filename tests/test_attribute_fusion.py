"""
Tests for multi-attribute fusion.
"""
import pytest
import numpy as np

from models.attribute_config import FusionInputConfig, MultiAttributeFusionConfig
from models.sub_cube import SubCube
from processors.attribute_fusion import MultiAttributeFusion
from tests.fixtures.synthetic_volumes import run_on_cubes


def filled(value, shape=(2, 2, 3)):
    return SubCube(np.full(shape, value, dtype=np.float32))


def fusion(*slots):
    return MultiAttributeFusion(MultiAttributeFusionConfig(inputs=slots))


class TestMultiAttributeFusion:
    """Weighted, gated sums."""

    def test_gate_excludes_out_of_range_input(self):
        kernel = fusion(FusionInputConfig(1.0, 0.0, 1.0), FusionInputConfig(1.0, 0.0, 1.0))
        (result,) = run_on_cubes(kernel, [filled(0.5), filled(2.0)])
        np.testing.assert_allclose(result, 0.5)

    def test_weighted_sum(self):
        kernel = fusion(FusionInputConfig(2.0, -10.0, 10.0), FusionInputConfig(-0.5, -10.0, 10.0))
        (result,) = run_on_cubes(kernel, [filled(3.0), filled(4.0)])
        np.testing.assert_allclose(result, 2.0 * 3.0 - 0.5 * 4.0)

    def test_gate_is_inclusive(self):
        kernel = fusion(FusionInputConfig(1.0, 0.2, 0.8), FusionInputConfig(1.0, 0.2, 0.8))
        (result,) = run_on_cubes(kernel, [filled(0.2), filled(0.8)])
        np.testing.assert_allclose(result, 1.0)

    def test_nan_contributes_nothing(self):
        kernel = fusion(FusionInputConfig(1.0, 0.0, 1.0), FusionInputConfig(1.0, 0.0, 1.0))
        first = filled(0.25)
        first.data[0, 0, 0] = np.nan
        (result,) = run_on_cubes(kernel, [first, filled(0.5)])

        assert result[0, 0, 0] == pytest.approx(0.5)
        assert result[1, 1, 2] == pytest.approx(0.75)

    def test_absent_slots_skipped(self):
        kernel = MultiAttributeFusion()
        inputs = [filled(0.4)] + [None] * 5
        (result,) = run_on_cubes(kernel, inputs)
        np.testing.assert_allclose(result, 0.4)

    def test_all_absent_gives_zero(self):
        kernel = fusion(FusionInputConfig(1.0), FusionInputConfig(1.0))
        kernel.initialize()
        out = SubCube.empty((0, 0, 0), (1, 1, 1))
        kernel.compute([None, None], [out])
        np.testing.assert_array_equal(out.data, 0.0)

    def test_default_config_passes_first_input_only(self):
        kernel = MultiAttributeFusion()
        inputs = [filled(0.3)] + [filled(0.9) for _ in range(5)]
        (result,) = run_on_cubes(kernel, inputs)
        np.testing.assert_allclose(result, 0.3)

    def test_input_labels_follow_config(self):
        kernel = fusion(FusionInputConfig(1.0), FusionInputConfig(1.0), FusionInputConfig(1.0))
        assert kernel.input_labels == ('Input 1', 'Input 2', 'Input 3')
        assert kernel.input_count == 3
        assert MultiAttributeFusion().input_count == 6

    def test_output_is_float32(self):
        kernel = fusion(FusionInputConfig(1.0))
        (result,) = run_on_cubes(kernel, [filled(0.5)])
        assert result.dtype == np.float32
