"""
Global histogram percentile estimator.

Converts percentiles into absolute amplitude bounds for a whole volume in two
streaming passes over its traces, using O(num_bins) memory regardless of
volume size:

1. Pass 1 - global min, max and count of non-NaN samples
2. Pass 2 - fixed-width histogram between min and max
3. Lookup - first bin whose cumulative count reaches floor(total * p)

Results are exact to one bin width, (max - min) / (num_bins - 1).
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from models.errors import DegenerateDataError
from processors.base_attribute import ProgressCallback

logger = logging.getLogger(__name__)

NUM_HISTOGRAM_BINS = 10000
MIN_VALUE_RANGE = 1e-9


class HistogramStatus:
    """Outcome of a statistics pass."""
    OK = 'ok'
    NO_VALID_DATA = 'no_valid_data'
    CONSTANT_VOLUME = 'constant_volume'
    MISSING_INPUT = 'missing_input'
    READ_ERROR = 'read_error'


@dataclass(frozen=True)
class ClipBounds:
    """Absolute clip bounds plus how they were obtained."""
    lower: float
    upper: float
    status: str = HistogramStatus.OK

    @property
    def value_range(self) -> float:
        return self.upper - self.lower

    @property
    def is_degenerate(self) -> bool:
        return self.status != HistogramStatus.OK


@dataclass(frozen=True)
class Histogram:
    """
    Read-only global histogram.

    Attributes:
        bins: int64 counts, length num_bins
        min_value: Smallest non-NaN sample
        max_value: Largest non-NaN sample
        total_count: Number of non-NaN samples
    """
    bins: np.ndarray
    min_value: float
    max_value: float
    total_count: int

    @property
    def num_bins(self) -> int:
        return len(self.bins)

    @property
    def value_range(self) -> float:
        return self.max_value - self.min_value

    @property
    def bin_width(self) -> float:
        return self.value_range / (self.num_bins - 1)

    def value_at(self, fraction: float) -> float:
        """
        Value at cumulative fraction p in (0, 1).

        Returns min + range if no bin reaches the target count.
        """
        target = int(np.floor(self.total_count * fraction))
        cumulative = np.cumsum(self.bins)
        index = int(np.searchsorted(cumulative, target, side='left'))
        if index >= self.num_bins:
            return self.min_value + self.value_range
        return self.min_value + (index / (self.num_bins - 1)) * self.value_range


class HistogramPercentileEstimator:
    """
    Two-pass, memory-bounded percentile estimator over a trace source.

    The volume argument is anything with a shape and an iter_traces() method
    yielding (i, j, trace), i.e. SeismicVolume or LazySeismicVolume.

    Example:
        >>> estimator = HistogramPercentileEstimator()
        >>> bounds = estimator.estimate_bounds(volume, 0.01, 0.99)
        >>> bounds.lower, bounds.upper
    """

    def __init__(self, num_bins: int = NUM_HISTOGRAM_BINS,
                 progress_callback: Optional[ProgressCallback] = None):
        if num_bins < 2:
            raise ValueError(f"num_bins must be >= 2, got {num_bins}")
        self.num_bins = num_bins
        self._progress_callback = progress_callback

    def _report_progress(self, current: int, total: int, message: str):
        if self._progress_callback is not None:
            self._progress_callback(current, total, message)

    def _scan_extent(self, volume):
        """Pass 1: global min, max and valid-sample count."""
        n_traces = volume.shape[0] * volume.shape[1]
        global_min = np.inf
        global_max = -np.inf
        total = 0

        for n, (_, _, trace) in enumerate(volume.iter_traces(), start=1):
            valid = trace[~np.isnan(trace)]
            if valid.size:
                global_min = min(global_min, float(valid.min()))
                global_max = max(global_max, float(valid.max()))
                total += int(valid.size)
            self._report_progress(n, n_traces, "Histogram pass 1: min/max")

        return global_min, global_max, total

    def _fill_bins(self, volume, min_value: float, value_range: float) -> np.ndarray:
        """Pass 2: count samples per bin."""
        n_traces = volume.shape[0] * volume.shape[1]
        bins = np.zeros(self.num_bins, dtype=np.int64)
        scale = self.num_bins - 1

        for n, (_, _, trace) in enumerate(volume.iter_traces(), start=1):
            valid = trace[~np.isnan(trace)].astype(np.float64)
            if valid.size:
                index = np.floor((valid - min_value) * scale / value_range).astype(np.int64)
                np.clip(index, 0, self.num_bins - 1, out=index)
                bins += np.bincount(index, minlength=self.num_bins)
            self._report_progress(n, n_traces, "Histogram pass 2: binning")

        return bins

    def build_histogram(self, volume) -> Histogram:
        """
        Run both passes over the volume.

        Raises:
            DegenerateDataError: If there are no valid samples or all valid
                samples are (nearly) equal; fallback holds the ClipBounds to use
        """
        start_time = time.time()
        logger.info(f"Histogram pass 1: scanning {volume.shape[0] * volume.shape[1]} traces for min/max")
        min_value, max_value, total = self._scan_extent(volume)

        if total == 0:
            raise DegenerateDataError(
                "No valid data found",
                status=HistogramStatus.NO_VALID_DATA,
                fallback=ClipBounds(0.0, 1.0, HistogramStatus.NO_VALID_DATA)
            )
        logger.info(f"Histogram pass 1 complete. Min={min_value}, Max={max_value}, Total samples={total}")

        value_range = max_value - min_value
        if value_range < MIN_VALUE_RANGE:
            raise DegenerateDataError(
                f"All data points are constant ({min_value})",
                status=HistogramStatus.CONSTANT_VOLUME,
                fallback=ClipBounds(min_value, min_value, HistogramStatus.CONSTANT_VOLUME)
            )

        logger.info("Histogram pass 2: populating histogram")
        bins = self._fill_bins(volume, min_value, value_range)
        logger.info(f"Histogram pass 2 complete in {time.time() - start_time:.2f}s")

        return Histogram(bins=bins, min_value=min_value, max_value=max_value, total_count=total)

    def estimate_bounds(self, volume, lower_fraction: float, upper_fraction: float) -> ClipBounds:
        """
        Clip bounds at two cumulative fractions.

        Degenerate volumes are not an error: a warning is logged and the
        fallback bounds are returned with their status set.
        """
        try:
            histogram = self.build_histogram(volume)
        except DegenerateDataError as e:
            logger.warning(f"Percentile estimation degenerate ({e.status}): {e}. "
                           f"Using bounds [{e.fallback.lower}, {e.fallback.upper}]")
            return e.fallback

        return ClipBounds(
            lower=histogram.value_at(lower_fraction),
            upper=histogram.value_at(upper_fraction),
            status=HistogramStatus.OK
        )
