"""
Windowed variance with vertical smoothing.

Two stages, evaluated per inline chunk so the intermediate buffer is bounded
to chunk_inline × size_j × size_k samples:

1. Horizontal variance over a window_inline × window_xline window at fixed K.
   Neighbours outside the input SubCube, and NaN samples, are left out of
   the count.
2. Mean of stage-1 variance over window_z samples along K, restricted to the
   output tile's K range.

Every window is addressed by global index, so the result does not depend on
chunk_inline.
"""
from typing import List, Tuple

import numpy as np
from scipy.ndimage import uniform_filter1d

from models.attribute_config import VarianceConfig
from models.sub_cube import Index3, SubCube
from processors.base_attribute import AttributeCategory, BaseAttribute


def window_sum(values: np.ndarray, half: int, axis: int) -> np.ndarray:
    """Sum over [x - half, x + half] along axis; samples beyond either end count as 0."""
    if half == 0:
        return values
    size = 2 * half + 1
    return uniform_filter1d(values, size=size, axis=axis, mode='constant', cval=0.0) * size


def horizontal_variance(cube: SubCube, lo: Index3, hi: Index3,
                        half_i: int, half_j: int, unbiased: bool) -> np.ndarray:
    """
    Stage 1 over the global range [lo, hi].

    Crossline sums come from a running box filter over each input row; inline
    sums then add the filtered rows in a fixed offset order, so every output
    row sees the same arithmetic whichever chunk it falls in.

    Args:
        cube: Input samples; must contain [lo, hi]
        lo, hi: Inclusive global range to evaluate
        half_i, half_j: Window half-widths
        unbiased: Apply count / (count - 1) when count > 1

    Returns:
        float32 array of shape hi - lo + 1
    """
    in_lo, in_hi = cube.min_ijk, cube.max_ijk
    row_lo = max(lo.i - half_i, in_lo.i)
    row_hi = min(hi.i + half_i, in_hi.i)
    block = cube.data[row_lo - in_lo.i:row_hi - in_lo.i + 1, :,
                      lo.k - in_lo.k:hi.k - in_lo.k + 1].astype(np.float64)

    valid = ~np.isnan(block)
    values = np.where(valid, block, 0.0)
    j_local = slice(lo.j - in_lo.j, hi.j - in_lo.j + 1)
    row_sum = window_sum(values, half_j, axis=1)[:, j_local]
    row_sum2 = window_sum(values * values, half_j, axis=1)[:, j_local]
    row_count = np.rint(window_sum(valid.astype(np.float64), half_j, axis=1)[:, j_local])

    n_i = hi.i - lo.i + 1
    shape = (n_i,) + row_sum.shape[1:]
    total = np.zeros(shape, dtype=np.float64)
    total2 = np.zeros(shape, dtype=np.float64)
    count = np.zeros(shape, dtype=np.float64)

    for wi in range(-half_i, half_i + 1):
        # Output row o reads input row lo.i + o + wi when it lies in [row_lo, row_hi]
        first = max(0, row_lo - lo.i - wi)
        last = min(n_i, row_hi - lo.i - wi + 1)
        if first >= last:
            continue
        src = slice(lo.i + first + wi - row_lo, lo.i + last + wi - row_lo)
        total[first:last] += row_sum[src]
        total2[first:last] += row_sum2[src]
        count[first:last] += row_count[src]

    safe_count = np.maximum(count, 1.0)
    mean = total / safe_count
    mean2 = total2 / safe_count
    variance = np.maximum(mean2 - mean * mean, 0.0)
    if unbiased:
        variance = np.where(count > 1, variance * (count / np.maximum(count - 1, 1.0)), variance)
    variance[count == 0] = 0.0
    return variance.astype(np.float32)


def vertical_mean(values: np.ndarray, half_k: int) -> np.ndarray:
    """
    Stage 2: mean over [k - half_k, k + half_k] along the last axis.

    Offsets beyond either end are left out of the count.
    """
    if half_k == 0:
        return values.astype(np.float32)
    total = window_sum(values.astype(np.float64), half_k, axis=2)
    count = np.rint(window_sum(np.ones(values.shape[2]), half_k, axis=0))
    return (total / count).astype(np.float32)


class Variance(BaseAttribute):
    """Local horizontal variance averaged along the vertical axis."""

    config_class = VarianceConfig
    name = 'Variance'
    description = ('Computes local variance on inline/xline windows and then averages '
                   'the variance along Z.')
    short_description = 'Local variance with vertical averaging.'
    category = AttributeCategory.BASIC

    def window_size(self) -> Index3:
        return Index3(self.config.window_inline, self.config.window_xline, self.config.window_z)

    def value_ranges(self) -> List[Tuple[float, float]]:
        return [(0.0, float('nan'))]

    def _prepare(self):
        return None

    def _compute(self, inputs, outputs, state):
        cube = inputs[0]
        out = outputs[0]
        lo, hi = out.min_ijk, out.max_ijk
        size_i = out.shape[0]
        chunk = min(self.config.chunk_inline, size_i)
        half_i = self.config.window_inline // 2
        half_j = self.config.window_xline // 2
        half_k = self.config.window_z // 2

        for start in range(0, size_i, chunk):
            stop = min(start + chunk, size_i)
            chunk_lo = Index3(lo.i + start, lo.j, lo.k)
            chunk_hi = Index3(lo.i + stop - 1, hi.j, hi.k)

            var_block = horizontal_variance(cube, chunk_lo, chunk_hi, half_i, half_j,
                                            self.config.unbiased)
            out.data[start:stop] = vertical_mean(var_block, half_k)
