"""
Structure tensor eigenvalues.

For every voxel the gradient outer products are summed over a window to form
the symmetric structure tensor

    T = sum_window [ gx*gx  gx*gy  gx*gz ]
                   [        gy*gy  gy*gz ]
                   [               gz*gz ]

with central-difference gradients, and its three eigenvalues are obtained in
closed form (trigonometric solution of the characteristic cubic), sorted so
that lambda1 >= lambda2 >= lambda3.
"""
from typing import List, Tuple

import numpy as np
from scipy.ndimage import uniform_filter

from models.attribute_config import StructureTensorConfig
from models.sub_cube import Index3
from processors.base_attribute import AttributeCategory, BaseAttribute, UNKNOWN_RANGE


def symmetric_eigenvalues_3x3(a00, a01, a02, a11, a12, a22) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Eigenvalues of symmetric 3x3 matrices, sorted descending.

    Arguments are the six unique components, scalars or broadcastable arrays.

    Returns:
        (lambda1, lambda2, lambda3) as float64 arrays, lambda1 >= lambda2 >= lambda3
    """
    a00, a01, a02, a11, a12, a22 = (np.asarray(a, dtype=np.float64)
                                    for a in (a00, a01, a02, a11, a12, a22))

    # Shift to zero trace
    m = (a00 + a11 + a22) / 3.0
    b00 = a00 - m
    b11 = a11 - m
    b22 = a22 - m

    p = (b00 * b00 + b11 * b11 + b22 * b22
         + 2.0 * (a01 * a01 + a02 * a02 + a12 * a12)) / 6.0
    det_b = (b00 * (b11 * b22 - a12 * a12)
             - a01 * (a01 * b22 - a12 * a02)
             + a02 * (a01 * a12 - b11 * a02))
    q = det_b / 2.0

    # p == 0 means B == 0: all eigenvalues equal m
    with np.errstate(invalid='ignore', divide='ignore'):
        ratio = np.where(p > 0.0, q / np.sqrt(p * p * p), 0.0)
    phi = np.arccos(np.clip(ratio, -1.0, 1.0)) / 3.0

    sqrt_p = np.sqrt(p)
    w0 = m + 2.0 * sqrt_p * np.cos(phi)
    w1 = m + 2.0 * sqrt_p * np.cos(phi + 2.0 * np.pi / 3.0)
    w2 = 3.0 * m - w0 - w1

    # Descending order
    w0, w1 = np.maximum(w0, w1), np.minimum(w0, w1)
    w1, w2 = np.maximum(w1, w2), np.minimum(w1, w2)
    w0, w1 = np.maximum(w0, w1), np.minimum(w0, w1)
    return w0, w1, w2


def structure_tensor_components(block: np.ndarray, half: Tuple[int, int, int]) -> List[np.ndarray]:
    """
    Windowed structure tensor of a replicate-extended block.

    Args:
        block: Samples covering the target range plus half + 1 on every side
        half: Window half-widths (wi, wj, wk)

    Returns:
        [Txx, Txy, Txz, Tyy, Tyz, Tzz] over the target range (block minus
        half + 1 per side), float64
    """
    f = block.astype(np.float64)
    # Central differences, valid on block[1:-1, 1:-1, 1:-1]
    gx = (f[2:, 1:-1, 1:-1] - f[:-2, 1:-1, 1:-1]) * 0.5
    gy = (f[1:-1, 2:, 1:-1] - f[1:-1, :-2, 1:-1]) * 0.5
    gz = (f[1:-1, 1:-1, 2:] - f[1:-1, 1:-1, :-2]) * 0.5

    size = tuple(2 * h + 1 for h in half)
    n_window = float(np.prod(size))
    crop = tuple(slice(h, n - h) for h, n in zip(half, gx.shape))

    components = []
    for a, b in ((gx, gx), (gx, gy), (gx, gz), (gy, gy), (gy, gz), (gz, gz)):
        product = a * b
        product[np.isnan(product)] = 0.0
        # Interior of the block only, so the filter mode never matters
        summed = uniform_filter(product, size=size, mode='nearest') * n_window
        components.append(summed[crop])
    return components


class StructureTensorEigenvalues(BaseAttribute):
    """Outputs the three eigenvalues of the local structure tensor."""

    config_class = StructureTensorConfig
    name = 'Structure Tensor Eigenvalues'
    description = ('Computes the local gradient structure tensor over a window and '
                   'outputs its eigenvalues in descending order.')
    short_description = 'Structure tensor eigenvalues.'
    category = AttributeCategory.STRUCTURAL
    output_labels = ('Lambda1', 'Lambda2', 'Lambda3')

    def window_size(self) -> Index3:
        return Index3(self.config.window_inline, self.config.window_xline, self.config.window_z)

    def halo_size(self) -> Index3:
        # Window half-width plus one sample for the gradient stencil
        size = self.window_size()
        return Index3(size.i // 2 + 1, size.j // 2 + 1, size.k // 2 + 1)

    def value_ranges(self) -> List[Tuple[float, float]]:
        return [UNKNOWN_RANGE] * 3

    def _prepare(self):
        return self.window_size()

    def _compute(self, inputs, outputs, state: Index3):
        cube = inputs[0]
        lo, hi = outputs[0].min_ijk, outputs[0].max_ijk
        half = (state.i // 2, state.j // 2, state.k // 2)

        block = cube.window(
            [l - h - 1 for l, h in zip(lo, half)],
            [u + h + 1 for u, h in zip(hi, half)],
        )
        eigenvalues = symmetric_eigenvalues_3x3(*structure_tensor_components(block, half))
        for out, values in zip(outputs, eigenvalues):
            out.assign(values.astype(np.float32))
