"""
Tests for structure tensor eigenvalues.
"""
import pytest
import numpy as np

from models.attribute_config import StructureTensorConfig
from models.seismic_volume import SeismicVolume
from models.sub_cube import SubCube
from processors.structure_tensor import (
    StructureTensorEigenvalues,
    structure_tensor_components,
    symmetric_eigenvalues_3x3,
)
from tests.fixtures.synthetic_volumes import full_cube, run_on_cubes


class TestSymmetricEigenvalues:
    """Closed-form 3x3 solver."""

    def test_matches_eigvalsh(self):
        rng = np.random.default_rng(5)
        a = rng.normal(size=(200, 3, 3))
        matrices = a + np.transpose(a, (0, 2, 1))

        l1, l2, l3 = symmetric_eigenvalues_3x3(
            matrices[:, 0, 0], matrices[:, 0, 1], matrices[:, 0, 2],
            matrices[:, 1, 1], matrices[:, 1, 2], matrices[:, 2, 2]
        )
        expected = np.linalg.eigvalsh(matrices)[:, ::-1]
        np.testing.assert_allclose(np.stack([l1, l2, l3], axis=1), expected, atol=1e-8)

    def test_sorted_descending(self):
        l1, l2, l3 = symmetric_eigenvalues_3x3(1.0, 0.0, 0.0, 3.0, 0.0, 2.0)
        assert (float(l1), float(l2), float(l3)) == pytest.approx((3.0, 2.0, 1.0))

    def test_isotropic(self):
        l1, l2, l3 = symmetric_eigenvalues_3x3(4.0, 0.0, 0.0, 4.0, 0.0, 4.0)
        assert float(l1) == float(l2) == float(l3) == 4.0

    def test_zero_matrix(self):
        eigenvalues = symmetric_eigenvalues_3x3(*np.zeros((6, 10)))
        for values in eigenvalues:
            np.testing.assert_array_equal(values, 0.0)

    def test_trace_preserved(self):
        rng = np.random.default_rng(9)
        a00, a11, a22 = rng.uniform(0, 10, size=(3, 50))
        a01, a02, a12 = rng.uniform(-3, 3, size=(3, 50))
        l1, l2, l3 = symmetric_eigenvalues_3x3(a00, a01, a02, a11, a12, a22)
        np.testing.assert_allclose(l1 + l2 + l3, a00 + a11 + a22, rtol=1e-12)


class TestStructureTensorEigenvalues:
    """Kernel outputs."""

    def test_halo_covers_gradient_stencil(self):
        kernel = StructureTensorEigenvalues(StructureTensorConfig(3, 5, 7))
        assert kernel.window_size() == (3, 5, 7)
        assert kernel.halo_size() == (2, 3, 4)
        assert kernel.output_labels == ('Lambda1', 'Lambda2', 'Lambda3')

    def test_linear_ramp(self):
        i = np.arange(13, dtype=np.float32)[:, None, None]
        volume = SeismicVolume(data=np.broadcast_to(2.0 * i, (13, 13, 13)).copy())
        l1, l2, l3 = run_on_cubes(StructureTensorEigenvalues(), [full_cube(volume)])

        # gx == 2 over the whole 5x5x5 window at the centre
        assert l1[6, 6, 6] == pytest.approx(4.0 * 125)
        assert l2[6, 6, 6] == pytest.approx(0.0, abs=1e-3)
        assert l3[6, 6, 6] == pytest.approx(0.0, abs=1e-3)

    def test_isotropic_gradient_field(self):
        # f = r^2 about the centre: gradients 2(i-6), 2(j-6), 2(k-6) are
        # uncorrelated with equal energy over a centred cubic window
        i, j, k = np.meshgrid(np.arange(13), np.arange(13), np.arange(13), indexing='ij')
        data = (i - 6) ** 2 + (j - 6) ** 2 + (k - 6) ** 2
        volume = SeismicVolume(data=data.astype(np.float32))
        l1, l2, l3 = run_on_cubes(StructureTensorEigenvalues(), [full_cube(volume)])

        expected = 4.0 * 25 * (4 + 1 + 0 + 1 + 4)
        assert l1[6, 6, 6] == pytest.approx(expected)
        assert l2[6, 6, 6] == pytest.approx(expected)
        assert l3[6, 6, 6] == pytest.approx(expected)

    def test_constant_volume(self):
        volume = SeismicVolume(data=np.full((6, 6, 6), 3.0, dtype=np.float32))
        for values in run_on_cubes(StructureTensorEigenvalues(), [full_cube(volume)]):
            np.testing.assert_array_equal(values, 0.0)

    def test_order_and_eigvalsh(self, random_volume):
        config = StructureTensorConfig(3, 3, 3)
        cube = full_cube(random_volume)
        l1, l2, l3 = run_on_cubes(StructureTensorEigenvalues(config), [cube])

        assert np.all(l1 >= l2)
        assert np.all(l2 >= l3)

        lo, hi = cube.min_ijk, cube.max_ijk
        block = cube.window([v - 2 for v in lo], [v + 2 for v in hi])
        txx, txy, txz, tyy, tyz, tzz = structure_tensor_components(block, (1, 1, 1))
        tensor = np.stack([
            np.stack([txx, txy, txz], axis=-1),
            np.stack([txy, tyy, tyz], axis=-1),
            np.stack([txz, tyz, tzz], axis=-1),
        ], axis=-2)
        expected = np.linalg.eigvalsh(tensor)[..., ::-1]
        result = np.stack([l1, l2, l3], axis=-1)
        np.testing.assert_allclose(result, expected, rtol=1e-4, atol=1e-3)

    def test_tile_matches_full_volume(self, random_volume):
        kernel = StructureTensorEigenvalues()
        full = run_on_cubes(kernel, [full_cube(random_volume)])

        lo, hi = (3, 2, 4), (7, 6, 10)
        halo = kernel.halo_size()
        tile_input = random_volume.get_subcube(
            [l - h for l, h in zip(lo, halo)], [u + h for u, h in zip(hi, halo)]
        )
        outputs = [SubCube.empty(lo, hi) for _ in range(3)]
        kernel.compute([tile_input], outputs)

        for whole, tile in zip(full, outputs):
            np.testing.assert_allclose(tile.data, whole[3:8, 2:7, 4:11], rtol=1e-5, atol=1e-5)

    def test_nan_sample_excluded(self, random_volume):
        data = random_volume.data.copy()
        data[5, 5, 8] = np.nan
        volume = SeismicVolume(data=data)
        for values in run_on_cubes(StructureTensorEigenvalues(), [full_cube(volume)]):
            assert np.all(np.isfinite(values))
