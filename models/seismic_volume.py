"""
3D Seismic Volume Data Model

Container for full 3D seismic volumes (inline × crossline × sample) used as
kernel inputs during initialize() and as the source of SubCube tiles.
"""
import numpy as np
from typing import Optional, Dict, Any, Iterator, Sequence, Tuple
from dataclasses import dataclass, field

from models.sub_cube import SubCube, as_index3, replicate_indices


@dataclass
class SeismicVolume:
    """
    Container for 3D seismic volume data.

    Attributes:
        data: 3D array (n_inlines, n_xlines, n_samples), NaN marks invalid samples
        di: Inline spacing in meters
        dj: Crossline spacing in meters
        dk: Vertical sample spacing (ms or m); may be negative for elevation axes
        metadata: Additional metadata (survey info, processing history, etc.)
    """
    data: np.ndarray
    di: float = 25.0
    dj: float = 25.0
    dk: float = 4.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate data integrity."""
        if self.data.ndim != 3:
            raise ValueError(f"Data must be 3D array, got shape {self.data.shape}")

        for name in ('di', 'dj', 'dk'):
            value = getattr(self, name)
            if not np.isfinite(value):
                raise ValueError(f"Spacing {name} must be finite, got {value}")

        # Ensure data is float32 for processing
        if self.data.dtype != np.float32:
            object.__setattr__(self, 'data', self.data.astype(np.float32))

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Volume shape (ni, nj, nk)."""
        return self.data.shape

    @property
    def ni(self) -> int:
        """Number of inlines."""
        return self.data.shape[0]

    @property
    def nj(self) -> int:
        """Number of crosslines."""
        return self.data.shape[1]

    @property
    def nk(self) -> int:
        """Number of samples per trace."""
        return self.data.shape[2]

    @property
    def spacing(self) -> Tuple[float, float, float]:
        return (self.di, self.dj, self.dk)

    # =========================================================================
    # Trace and SubCube Accessors
    # =========================================================================

    def get_trace(self, i: int, j: int) -> np.ndarray:
        """
        Extract one vertical trace.

        Args:
            i: Inline index
            j: Crossline index

        Returns:
            1D array (nk,)
        """
        if not (0 <= i < self.ni and 0 <= j < self.nj):
            raise IndexError(f"Trace ({i}, {j}) out of range ({self.ni}, {self.nj})")
        return self.data[i, j, :]

    def iter_traces(self) -> Iterator[Tuple[int, int, np.ndarray]]:
        """Yield (i, j, trace) for every trace, inline-major."""
        for i in range(self.ni):
            for j in range(self.nj):
                yield i, j, self.data[i, j, :]

    def get_subcube(self, min_ijk: Sequence[int], max_ijk: Sequence[int]) -> SubCube:
        """
        Extract [min_ijk, max_ijk] as a SubCube.

        Parts of the range beyond the volume edges are filled by replicating
        the nearest edge sample, which is how halo is supplied at true edges.
        """
        lo = as_index3(min_ijk)
        hi = as_index3(max_ijk)
        axes = [replicate_indices(l, h, n) for l, h, n in zip(lo, hi, self.shape)]
        return SubCube(self.data[np.ix_(*axes)], lo)

    # =========================================================================
    # Memory and Utilities
    # =========================================================================

    def memory_mb(self) -> float:
        """Return memory size in megabytes."""
        return self.data.nbytes / (1024 * 1024)

    def __repr__(self) -> str:
        return (
            f"SeismicVolume(shape={self.shape}, "
            f"di={self.di:.1f}, dj={self.dj:.1f}, dk={self.dk:.3f}, "
            f"size={self.memory_mb():.1f}MB)"
        )


def create_synthetic_volume(
    ni: int = 32,
    nj: int = 32,
    nk: int = 128,
    di: float = 25.0,
    dj: float = 25.0,
    dk: float = 4.0,
    inline_dip_deg: float = 0.0,
    xline_dip_deg: float = 0.0,
    period_samples: float = 12.0,
    noise_level: float = 0.0,
    seed: Optional[int] = 42
) -> SeismicVolume:
    """
    Create a synthetic layered volume with planar dipping reflectors.

    Sample k of trace (i, j) is sin(2*pi*(k - shift)/period), where shift is
    the vertical displacement of a plane dipping inline_dip_deg along I and
    xline_dip_deg along J, measured in samples.

    Args:
        ni, nj, nk: Volume dimensions
        di, dj, dk: Sample spacing along each axis
        inline_dip_deg: Reflector dip along the inline axis (degrees)
        xline_dip_deg: Reflector dip along the crossline axis (degrees)
        period_samples: Layer period in samples
        noise_level: Standard deviation of added Gaussian noise
        seed: Random seed for the noise

    Returns:
        SeismicVolume with matching dip values recorded in metadata
    """
    i = np.arange(ni)[:, None, None]
    j = np.arange(nj)[None, :, None]
    k = np.arange(nk)[None, None, :]

    shift = (i * np.tan(np.radians(inline_dip_deg)) * di / dk
             + j * np.tan(np.radians(xline_dip_deg)) * dj / dk)
    data = np.sin(2.0 * np.pi * (k - shift) / period_samples)

    if noise_level > 0:
        rng = np.random.default_rng(seed)
        data = data + rng.normal(0.0, noise_level, size=data.shape)

    return SeismicVolume(
        data=data.astype(np.float32),
        di=di,
        dj=dj,
        dk=dk,
        metadata={
            'synthetic': True,
            'inline_dip_deg': inline_dip_deg,
            'xline_dip_deg': xline_dip_deg,
        }
    )
