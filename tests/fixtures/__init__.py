"""
Test Fixtures Package

Synthetic volume and SubCube helpers for testing attribute kernels.
"""

from tests.fixtures.synthetic_volumes import (
    full_cube,
    constant_like,
    dip_volumes,
    run_on_cubes,
)

__all__ = [
    'full_cube',
    'constant_like',
    'dip_volumes',
    'run_on_cubes',
]
