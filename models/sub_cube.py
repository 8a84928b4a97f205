"""
Bounded sample volume (SubCube) - the unit of data exchanged with kernels.

A SubCube is a rectangular, inclusive index range over a 3D float32 array
indexed [i, j, k] (inline, crossline, vertical sample). Invalid samples are
NaN. Reads outside the provided range replicate the nearest edge sample,
which is the only border policy used by the attribute kernels.
"""
from enum import Enum
from typing import NamedTuple, Sequence, Tuple

import numpy as np


class Index3(NamedTuple):
    """Integer (i, j, k) triple. K is the vertical axis."""
    i: int
    j: int
    k: int


class BorderPolicy(Enum):
    """How the host resolves reads beyond the logical volume edges."""
    REPLICATE = 'replicate'


def as_index3(value: Sequence[int]) -> Index3:
    """Coerce any length-3 integer sequence to Index3."""
    if len(value) != 3:
        raise ValueError(f"Expected an (i, j, k) triple, got {value!r}")
    return Index3(int(value[0]), int(value[1]), int(value[2]))


def replicate_indices(lo: int, hi: int, n: int) -> np.ndarray:
    """Local indices for global range [lo, hi] on an axis of length n, edge-clamped."""
    return np.clip(np.arange(lo, hi + 1), 0, n - 1)


class SubCube:
    """
    Inclusive index range over a 3D sample array.

    Attributes:
        data: float32 array of shape (size_i, size_j, size_k)
        min_ijk: Global index of data[0, 0, 0]

    Example:
        >>> cube = SubCube(np.zeros((4, 4, 10)), min_ijk=(8, 0, 0))
        >>> cube.max_ijk
        Index3(i=11, j=3, k=9)
        >>> cube[7, 0, 0]  # replicated from i=8
        0.0
    """

    def __init__(self, data: np.ndarray, min_ijk: Sequence[int] = (0, 0, 0)):
        data = np.asarray(data)
        if data.ndim != 3:
            raise ValueError(f"SubCube data must be 3D, got shape {data.shape}")
        if 0 in data.shape:
            raise ValueError(f"SubCube data must not be empty, got shape {data.shape}")
        if data.dtype != np.float32:
            data = data.astype(np.float32)
        self.data = data
        self.min_ijk = as_index3(min_ijk)

    @classmethod
    def empty(cls, min_ijk: Sequence[int], max_ijk: Sequence[int],
              fill_value: float = np.nan) -> 'SubCube':
        """Allocate an output tile covering [min_ijk, max_ijk]."""
        lo = as_index3(min_ijk)
        hi = as_index3(max_ijk)
        shape = tuple(h - l + 1 for l, h in zip(lo, hi))
        if any(n < 1 for n in shape):
            raise ValueError(f"Empty index range {lo} - {hi}")
        return cls(np.full(shape, fill_value, dtype=np.float32), lo)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.data.shape

    @property
    def max_ijk(self) -> Index3:
        return Index3(*(m + n - 1 for m, n in zip(self.min_ijk, self.data.shape)))

    def contains(self, i: int, j: int, k: int) -> bool:
        """True if (i, j, k) lies inside the provided range."""
        lo, hi = self.min_ijk, self.max_ijk
        return lo.i <= i <= hi.i and lo.j <= j <= hi.j and lo.k <= k <= hi.k

    def contains_range(self, min_ijk: Sequence[int], max_ijk: Sequence[int]) -> bool:
        return self.contains(*min_ijk) and self.contains(*max_ijk)

    def _local(self, idx: Sequence[int]) -> Tuple[int, int, int]:
        """Global index -> clamped local index (replicate border)."""
        return tuple(
            min(max(int(g) - m, 0), n - 1)
            for g, m, n in zip(idx, self.min_ijk, self.data.shape)
        )

    def __getitem__(self, idx: Sequence[int]) -> float:
        return float(self.data[self._local(idx)])

    def __setitem__(self, idx: Sequence[int], value: float):
        if not self.contains(*idx):
            raise IndexError(f"Index {tuple(idx)} outside {self.min_ijk} - {self.max_ijk}")
        local = tuple(int(g) - m for g, m in zip(idx, self.min_ijk))
        self.data[local] = value

    def window(self, min_ijk: Sequence[int], max_ijk: Sequence[int]) -> np.ndarray:
        """
        Copy of the block [min_ijk, max_ijk] with replicate border.

        Indices beyond the provided range are clamped to the nearest edge,
        so the block may extend arbitrarily far outside the SubCube.
        """
        axes = [
            replicate_indices(lo - m, hi - m, n)
            for lo, hi, m, n in zip(min_ijk, max_ijk, self.min_ijk, self.data.shape)
        ]
        return self.data[np.ix_(*axes)]

    def region(self, min_ijk: Sequence[int], max_ijk: Sequence[int]) -> np.ndarray:
        """View of the block [min_ijk, max_ijk], which must be inside the range."""
        if not self.contains_range(min_ijk, max_ijk):
            raise IndexError(
                f"Region {tuple(min_ijk)} - {tuple(max_ijk)} outside "
                f"{self.min_ijk} - {self.max_ijk}"
            )
        sl = tuple(
            slice(lo - m, hi - m + 1)
            for lo, hi, m in zip(min_ijk, max_ijk, self.min_ijk)
        )
        return self.data[sl]

    def assign(self, values: np.ndarray):
        """Overwrite every sample of this SubCube."""
        values = np.asarray(values)
        if values.shape != self.data.shape:
            raise ValueError(f"Shape mismatch: {values.shape} vs {self.data.shape}")
        self.data[...] = values

    def fill(self, value: float):
        self.data.fill(value)

    def __repr__(self) -> str:
        return f"SubCube(min={tuple(self.min_ijk)}, max={tuple(self.max_ijk)})"
