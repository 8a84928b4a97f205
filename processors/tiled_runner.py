"""
Tiled attribute runner - drives a kernel over a whole volume tile by tile.

Plays the host side of the kernel contract:
1. initialize() the kernel once
2. split the output volume into tiles
3. cut each input tile with the kernel's halo (edge-replicated at the
   volume edges)
4. compute() every tile, sequentially or on a thread pool
5. assemble the output tiles into numpy arrays or Zarr storage

Memory usage is O(tile size × workers) for Zarr-backed inputs and outputs.
"""
import logging
import os
import shutil
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from models.lazy_seismic_volume import LazySeismicVolume, create_zarr_volume
from models.seismic_volume import SeismicVolume
from models.sub_cube import Index3, SubCube
from processors.base_attribute import BaseAttribute, ProgressCallback

logger = logging.getLogger(__name__)

Tile = Tuple[Index3, Index3]


def get_optimal_workers() -> int:
    """Get optimal number of worker threads."""
    cpu_count = os.cpu_count() or 4
    # Leave one core free, minimum 1 worker
    return max(1, cpu_count - 1)


def plan_tiles(shape: Sequence[int], tile_shape: Sequence[int]) -> List[Tile]:
    """
    Partition a volume into inclusive (min, max) tiles, inline-major.

    Args:
        shape: Volume shape (ni, nj, nk)
        tile_shape: Tile extent per axis

    Returns:
        List of (min_ijk, max_ijk) pairs covering the volume exactly once
    """
    starts = [range(0, n, t) for n, t in zip(shape, tile_shape)]
    tiles = []
    for i0 in starts[0]:
        for j0 in starts[1]:
            for k0 in starts[2]:
                lo = Index3(i0, j0, k0)
                hi = Index3(*(min(s + t, n) - 1 for s, t, n in zip(lo, tile_shape, shape)))
                tiles.append((lo, hi))
    return tiles


class TiledAttributeRunner:
    """
    Runs an attribute kernel over its full input volumes.

    Example:
        >>> kernel = Variance(VarianceConfig(), AttributeContext([volume]))
        >>> runner = TiledAttributeRunner(tile_shape=(16, 16, None), max_workers=4)
        >>> (variance,) = runner.run(kernel)
    """

    def __init__(self, tile_shape: Sequence[Optional[int]] = (32, 32, None),
                 max_workers: Optional[int] = 1):
        """
        Initialize runner.

        Args:
            tile_shape: Output tile extent per axis; None spans the whole axis
            max_workers: Worker threads (1 = sequential, None = auto)

        Raises:
            ValueError: If tile_shape or max_workers is invalid
        """
        if len(tile_shape) != 3:
            raise ValueError(f"tile_shape must have 3 entries, got {tile_shape}")
        for n in tile_shape:
            if n is not None and (not isinstance(n, (int, np.integer)) or n < 1):
                raise ValueError(f"tile_shape entries must be None or >= 1, got {tile_shape}")
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.tile_shape = tuple(tile_shape)
        self.max_workers = max_workers if max_workers is not None else get_optimal_workers()

    def resolve_tile_shape(self, shape: Sequence[int]) -> Tuple[int, int, int]:
        return tuple(n if t is None else min(t, n) for t, n in zip(self.tile_shape, shape))

    @staticmethod
    def _volume_shape(volumes: Sequence) -> Tuple[int, int, int]:
        present = [v for v in volumes if v is not None]
        if not present:
            raise ValueError("Kernel context has no input volumes")
        shape = tuple(present[0].shape)
        for volume in present[1:]:
            if tuple(volume.shape) != shape:
                raise ValueError(f"Input volume shapes differ: {shape} vs {tuple(volume.shape)}")
        return shape

    def run(
        self,
        kernel: BaseAttribute,
        output_dir: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> List:
        """
        Compute every output of kernel over the full volume.

        Args:
            kernel: Attribute kernel whose context holds the input volumes
            output_dir: If given, outputs are written to Zarr stores under
                this directory (one per output label)
            progress_callback: Optional callback(tiles_done, total_tiles, message)

        Returns:
            One SeismicVolume (or LazySeismicVolume with output_dir) per output
        """
        volumes = list(kernel.context.input_volumes)
        if len(volumes) != kernel.input_count:
            raise ValueError(f"{kernel.name} expects {kernel.input_count} input volumes, "
                             f"got {len(volumes)}")
        shape = self._volume_shape(volumes)
        spacing = next(v for v in volumes if v is not None).spacing
        tile_shape = self.resolve_tile_shape(shape)
        tiles = plan_tiles(shape, tile_shape)
        halo = kernel.halo_size()

        logger.info(f"Running {kernel.name} over {shape} in {len(tiles)} tiles of {tile_shape}, "
                    f"halo={tuple(halo)}, workers={self.max_workers}")

        kernel.initialize()
        outputs, output_paths = self._allocate_outputs(kernel, shape, spacing, tile_shape, output_dir)

        start_time = time.time()
        try:
            if self.max_workers == 1:
                for n, tile in enumerate(tiles, start=1):
                    self._write_tile(outputs, self._compute_tile(kernel, volumes, tile, halo))
                    self._report(progress_callback, n, len(tiles), start_time)
            else:
                self._run_parallel(kernel, volumes, tiles, halo, outputs,
                                   progress_callback, start_time)
        except Exception as e:
            logger.error(f"{kernel.name} failed: {e}")
            for path in output_paths:
                self._cleanup_partial_output(path)
            raise

        logger.info(f"{kernel.name} finished in {time.time() - start_time:.2f}s")

        if output_dir is not None:
            return outputs
        return [
            SeismicVolume(data=data, di=spacing[0], dj=spacing[1], dk=spacing[2],
                          metadata={'attribute': kernel.name, 'output': label})
            for data, label in zip(outputs, kernel.output_labels)
        ]

    def _run_parallel(self, kernel, volumes, tiles, halo, outputs, progress_callback, start_time):
        """
        Compute tiles on a thread pool; results are written from this thread.

        At most 2 × max_workers tiles are in flight and each result is
        released as soon as it is written, so only O(workers) output tiles
        are alive at any time.
        """
        pending_tiles = iter(tiles)
        max_in_flight = 2 * self.max_workers

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            in_flight = {}

            def submit_next():
                tile = next(pending_tiles, None)
                if tile is not None:
                    in_flight[executor.submit(self._compute_tile, kernel, volumes, tile, halo)] = tile

            for _ in range(max_in_flight):
                submit_next()

            done = 0
            while in_flight:
                finished, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                # One at a time, so finished futures never pile up outside in_flight
                future = finished.pop()
                tile = in_flight.pop(future)
                try:
                    self._write_tile(outputs, future.result())
                except Exception:
                    logger.error(f"Tile {tuple(tile[0])} - {tuple(tile[1])} failed")
                    raise
                del future, finished
                done += 1
                self._report(progress_callback, done, len(tiles), start_time)
                submit_next()

    @staticmethod
    def _compute_tile(kernel: BaseAttribute, volumes, tile: Tile, halo: Index3) -> List[SubCube]:
        lo, hi = tile
        in_lo = Index3(*(l - h for l, h in zip(lo, halo)))
        in_hi = Index3(*(u + h for u, h in zip(hi, halo)))
        inputs = [v.get_subcube(in_lo, in_hi) if v is not None else None for v in volumes]
        tile_outputs = [SubCube.empty(lo, hi) for _ in range(kernel.output_count)]
        kernel.compute(inputs, tile_outputs)
        return tile_outputs

    @staticmethod
    def _write_tile(outputs, tile_outputs: List[SubCube]):
        for target, cube in zip(outputs, tile_outputs):
            if isinstance(target, LazySeismicVolume):
                target.write_subcube(cube)
            else:
                lo, hi = cube.min_ijk, cube.max_ijk
                target[lo.i:hi.i + 1, lo.j:hi.j + 1, lo.k:hi.k + 1] = cube.data

    @staticmethod
    def _allocate_outputs(kernel, shape, spacing, tile_shape, output_dir):
        if output_dir is None:
            return [np.full(shape, np.nan, dtype=np.float32) for _ in kernel.output_labels], []

        outputs, paths = [], []
        for label in kernel.output_labels:
            path = Path(output_dir) / label.lower().replace(' ', '_')
            # Zarr chunks match tiles so concurrent tile writes never share a chunk
            outputs.append(create_zarr_volume(
                str(path), shape=shape, spacing=spacing, chunks=tile_shape,
                metadata={'attribute': kernel.name, 'output': label}
            ))
            paths.append(path)
        return outputs, paths

    @staticmethod
    def _report(progress_callback, done: int, total: int, start_time: float):
        if progress_callback is None:
            return
        elapsed = time.time() - start_time
        rate = done / elapsed if elapsed > 0 else 0
        remaining = (total - done) / rate if rate > 0 else 0
        progress_callback(done, total, f"Tile {done}/{total}, ~{remaining:.1f}s remaining")

    @staticmethod
    def _cleanup_partial_output(output_path: Path):
        """Clean up partial Zarr output on error."""
        try:
            if output_path.exists():
                shutil.rmtree(output_path)
        except OSError as e:
            logger.warning(f"Could not remove partial output {output_path}: {e}")
