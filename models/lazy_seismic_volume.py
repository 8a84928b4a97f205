"""
Lazy seismic volume - memory-efficient 3D volume backed by Zarr storage.

Provides the SeismicVolume read interface (trace iteration, SubCube
extraction) while loading data on demand, so global statistics passes and
tiled attribute runs work on volumes much larger than available RAM.
"""
import json
import logging
import numpy as np
import zarr
from pathlib import Path
from typing import Optional, Dict, Any, Iterator, Sequence, Tuple

from models.seismic_volume import SeismicVolume
from models.sub_cube import SubCube, as_index3, replicate_indices

logger = logging.getLogger(__name__)

VOLUME_ARRAY_NAME = 'volume.zarr'
METADATA_FILE_NAME = 'metadata.json'


class LazySeismicVolume:
    """
    Read/write wrapper around a 3D Zarr array (n_inlines, n_xlines, n_samples).

    Storage Structure:
        storage_dir/
            ├── volume.zarr/      # Chunked sample data
            └── metadata.json     # Spacing and free-form metadata

    Trace iteration reads one inline slab at a time, so memory use is
    O(n_xlines × n_samples) regardless of volume size.

    Example:
        >>> lazy = LazySeismicVolume.from_storage_dir('/path/to/volume')
        >>> cube = lazy.get_subcube((0, 0, 0), (15, 15, 99))
    """

    def __init__(self, zarr_path: Path, metadata: Optional[Dict[str, Any]] = None,
                 mode: str = 'r'):
        """
        Initialize lazy volume wrapper.

        Args:
            zarr_path: Path to the volume.zarr array
            metadata: Metadata dictionary with 'di', 'dj', 'dk' spacing
            mode: Zarr open mode ('r' read-only, 'r+' read/write)
        """
        self.zarr_path = Path(zarr_path)
        self.metadata = dict(metadata or {})

        self._zarr_array = zarr.open_array(str(self.zarr_path), mode=mode)
        if len(self._zarr_array.shape) != 3:
            raise ValueError(f"Volume array must be 3D, got shape {self._zarr_array.shape}")

        self._spacing = (
            float(self.metadata.get('di', 25.0)),
            float(self.metadata.get('dj', 25.0)),
            float(self.metadata.get('dk', 4.0)),
        )

    @classmethod
    def from_storage_dir(cls, storage_dir: str, mode: str = 'r') -> 'LazySeismicVolume':
        """
        Open a volume written by create_zarr_volume().

        Raises:
            FileNotFoundError: If the array or metadata file is missing
        """
        storage_path = Path(storage_dir)
        if storage_path.name == VOLUME_ARRAY_NAME:
            storage_path = storage_path.parent

        zarr_path = storage_path / VOLUME_ARRAY_NAME
        metadata_path = storage_path / METADATA_FILE_NAME

        if not zarr_path.exists():
            raise FileNotFoundError(f"Zarr array not found: {zarr_path}")
        if not metadata_path.exists():
            raise FileNotFoundError(f"Metadata not found: {metadata_path}")

        with open(metadata_path, 'r') as f:
            metadata = json.load(f)

        return cls(zarr_path, metadata, mode=mode)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(int(n) for n in self._zarr_array.shape)

    @property
    def ni(self) -> int:
        return self.shape[0]

    @property
    def nj(self) -> int:
        return self.shape[1]

    @property
    def nk(self) -> int:
        return self.shape[2]

    @property
    def di(self) -> float:
        return self._spacing[0]

    @property
    def dj(self) -> float:
        return self._spacing[1]

    @property
    def dk(self) -> float:
        return self._spacing[2]

    @property
    def spacing(self) -> Tuple[float, float, float]:
        return self._spacing

    # Data access methods (load on-demand)
    def get_trace(self, i: int, j: int) -> np.ndarray:
        if not (0 <= i < self.ni and 0 <= j < self.nj):
            raise IndexError(f"Trace ({i}, {j}) out of range ({self.ni}, {self.nj})")
        return np.asarray(self._zarr_array[i, j, :], dtype=np.float32)

    def iter_traces(self) -> Iterator[Tuple[int, int, np.ndarray]]:
        """Yield (i, j, trace) for every trace, loading one inline at a time."""
        for i in range(self.ni):
            slab = np.asarray(self._zarr_array[i, :, :], dtype=np.float32)
            for j in range(self.nj):
                yield i, j, slab[j]

    def get_subcube(self, min_ijk: Sequence[int], max_ijk: Sequence[int]) -> SubCube:
        """
        Load [min_ijk, max_ijk] as a SubCube, replicating edges beyond the volume.

        Only the in-volume bounding box is read from storage.
        """
        lo = as_index3(min_ijk)
        hi = as_index3(max_ijk)
        shape = self.shape

        box_lo = [min(max(l, 0), n - 1) for l, n in zip(lo, shape)]
        box_hi = [min(max(h, 0), n - 1) for h, n in zip(hi, shape)]
        box = np.asarray(
            self._zarr_array[tuple(slice(a, b + 1) for a, b in zip(box_lo, box_hi))],
            dtype=np.float32
        )

        axes = [
            replicate_indices(l, h, n) - a
            for l, h, n, a in zip(lo, hi, shape, box_lo)
        ]
        return SubCube(box[np.ix_(*axes)], lo)

    def write_subcube(self, cube: SubCube):
        """Write an in-volume SubCube back to storage."""
        lo, hi = cube.min_ijk, cube.max_ijk
        if any(l < 0 or h >= n for l, h, n in zip(lo, hi, self.shape)):
            raise IndexError(f"{cube} outside volume of shape {self.shape}")
        self._zarr_array[tuple(slice(l, h + 1) for l, h in zip(lo, hi))] = cube.data

    def to_volume(self) -> SeismicVolume:
        """Load the whole array into an in-memory SeismicVolume."""
        return SeismicVolume(
            data=np.asarray(self._zarr_array[...], dtype=np.float32),
            di=self.di,
            dj=self.dj,
            dk=self.dk,
            metadata=dict(self.metadata)
        )

    def __repr__(self) -> str:
        return f"LazySeismicVolume(path='{self.zarr_path}', shape={self.shape})"


def create_zarr_volume(
    storage_dir: str,
    shape: Optional[Tuple[int, int, int]] = None,
    volume: Optional[SeismicVolume] = None,
    spacing: Optional[Tuple[float, float, float]] = None,
    chunks: Optional[Tuple[int, int, int]] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> LazySeismicVolume:
    """
    Create a Zarr-backed volume, either empty (NaN-filled) or copied from a SeismicVolume.

    Args:
        storage_dir: Output directory (created if missing)
        shape: Volume shape when creating an empty volume
        volume: Source volume to copy; its spacing is used unless spacing is given
        spacing: (di, dj, dk)
        chunks: Zarr chunk shape (defaults to one inline per chunk)
        metadata: Extra metadata stored alongside the spacing

    Returns:
        LazySeismicVolume opened read/write
    """
    if volume is None and shape is None:
        raise ValueError("Either shape or volume must be provided")

    storage_path = Path(storage_dir)
    storage_path.mkdir(parents=True, exist_ok=True)

    if volume is not None:
        shape = volume.shape
        if spacing is None:
            spacing = volume.spacing
    if spacing is None:
        spacing = (25.0, 25.0, 4.0)
    if chunks is None:
        chunks = (1, shape[1], shape[2])

    zarr_path = storage_path / VOLUME_ARRAY_NAME
    array = zarr.open_array(
        str(zarr_path),
        mode='w',
        shape=tuple(shape),
        chunks=tuple(min(c, n) for c, n in zip(chunks, shape)),
        dtype='float32',
        fill_value=np.nan
    )
    if volume is not None:
        array[...] = volume.data

    meta = dict(metadata or {})
    meta.update({'di': float(spacing[0]), 'dj': float(spacing[1]), 'dk': float(spacing[2]),
                 'shape': [int(n) for n in shape]})
    with open(storage_path / METADATA_FILE_NAME, 'w') as f:
        json.dump(meta, f, indent=2)

    logger.info(f"Created Zarr volume {zarr_path} shape={tuple(shape)} chunks={tuple(chunks)}")
    return LazySeismicVolume(zarr_path, meta, mode='r+')
