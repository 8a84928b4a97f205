"""
Synthetic volume helpers.

Wraps whole volumes as SubCubes and drives a kernel's initialize()/compute()
over them without the tiled runner.
"""
from typing import List, Sequence, Tuple

import numpy as np

from models.seismic_volume import SeismicVolume
from models.sub_cube import SubCube


def full_cube(volume) -> SubCube:
    """Whole volume as one SubCube."""
    return volume.get_subcube((0, 0, 0), tuple(n - 1 for n in volume.shape))


def constant_like(volume, value: float) -> SeismicVolume:
    """SeismicVolume with the geometry of volume, filled with value."""
    return SeismicVolume(
        data=np.full(volume.shape, value, dtype=np.float32),
        di=volume.di, dj=volume.dj, dk=volume.dk
    )


def dip_volumes(volume, inline_dip_deg: float = 0.0,
                xline_dip_deg: float = 0.0) -> Tuple[SeismicVolume, SeismicVolume]:
    """Constant inline and crossline dip fields matching volume."""
    return constant_like(volume, inline_dip_deg), constant_like(volume, xline_dip_deg)


def run_on_cubes(kernel, inputs: Sequence) -> List[np.ndarray]:
    """
    initialize() the kernel and compute() every output over the range of the
    first present input.

    Returns:
        One output array per kernel output
    """
    kernel.initialize()
    reference = next(cube for cube in inputs if cube is not None)
    outputs = [SubCube.empty(reference.min_ijk, reference.max_ijk)
               for _ in range(kernel.output_count)]
    kernel.compute(list(inputs), outputs)
    return [out.data for out in outputs]
