"""
Clip-normalize attributes - pointwise maps of a metric into [0, 1].

Both variants clamp a per-sample metric to (lo, hi) and rescale:
    output = (clamp(metric, lo, hi) - lo) / (hi - lo)

- AbsoluteClipNormalization: metric = |sample|, bounds from configuration
- PercentileClipNormalization: metric = sample, bounds from a global
  histogram of the input volume computed once in initialize()

NaN samples pass through as NaN. A degenerate bound range (< 1e-9) makes the
whole output 0.
"""
import logging
import time
from typing import List, Tuple

import numpy as np

from models.attribute_config import AbsoluteClipConfig, PercentileClipConfig
from models.errors import MissingInputError
from processors.base_attribute import AttributeCategory, BaseAttribute
from processors.histogram_percentile import (
    ClipBounds,
    HistogramPercentileEstimator,
    HistogramStatus,
    MIN_VALUE_RANGE,
)

logger = logging.getLogger(__name__)


def clip_normalize(metric: np.ndarray, bounds: ClipBounds) -> np.ndarray:
    """
    Clamp metric to bounds and rescale to [0, 1].

    Args:
        metric: Per-sample metric, NaN for invalid samples
        bounds: Clip bounds

    Returns:
        float32 array of the same shape
    """
    value_range = bounds.value_range
    if value_range < MIN_VALUE_RANGE:
        return np.zeros(metric.shape, dtype=np.float32)

    clamped = np.clip(metric, bounds.lower, bounds.upper)
    return ((clamped - bounds.lower) / value_range).astype(np.float32)


class _ClipNormalization(BaseAttribute):
    """Shared compute for both clip variants; subclasses supply bounds and metric."""

    category = AttributeCategory.UTILITY

    def value_ranges(self) -> List[Tuple[float, float]]:
        return [(0.0, 1.0)]

    @staticmethod
    def _metric(samples: np.ndarray) -> np.ndarray:
        return samples

    def _compute(self, inputs, outputs, state: ClipBounds):
        self.map_pointwise(
            inputs, outputs[0],
            lambda samples: clip_normalize(self._metric(samples), state)
        )


class AbsoluteClipNormalization(_ClipNormalization):
    """
    Normalizes |amplitude| between two absolute thresholds.

    |value| <= lower -> 0, |value| >= upper -> 1, linear in between.
    """

    config_class = AbsoluteClipConfig
    name = 'Absolute Clip Normalization'
    description = ('Clips absolute amplitudes to [lower, upper] and rescales '
                   'them linearly to [0, 1].')
    short_description = 'Absolute-value band clip to [0, 1].'

    @staticmethod
    def _metric(samples: np.ndarray) -> np.ndarray:
        return np.abs(samples)

    def _prepare(self) -> ClipBounds:
        return ClipBounds(float(self.config.lower_threshold), float(self.config.upper_threshold))


class PercentileClipNormalization(_ClipNormalization):
    """
    Clips amplitudes to global percentiles of the input volume and rescales to [0, 1].

    initialize() scans the full input volume twice through
    HistogramPercentileEstimator. A missing or unreadable input, or degenerate statistics,
    fall back to safe bounds instead of failing.
    """

    config_class = PercentileClipConfig
    name = 'Percentile Clip Normalization'
    description = ('Clips amplitudes to the given global percentiles, computed with a '
                   'memory-efficient histogram, and rescales them to [0, 1].')
    short_description = 'Percentile clip to [0, 1].'

    def _prepare(self) -> ClipBounds:
        logger.info("PercentileClipNormalization: starting histogram pre-computation")
        start_time = time.time()

        try:
            volume = self.context.get_volume(0)
        except MissingInputError as e:
            logger.error(f"PercentileClipNormalization: {e}. Using bounds [0, 1]")
            return ClipBounds(0.0, 1.0, HistogramStatus.MISSING_INPUT)

        estimator = HistogramPercentileEstimator(progress_callback=self._progress_callback)
        try:
            bounds = estimator.estimate_bounds(
                volume,
                self.config.lower_percentile / 100.0,
                self.config.upper_percentile / 100.0
            )
        except Exception as e:
            logger.error(f"PercentileClipNormalization: histogram pre-computation failed: {e}. "
                         f"Using bounds [0, 1]")
            return ClipBounds(0.0, 1.0, HistogramStatus.READ_ERROR)

        logger.info(
            f"PercentileClipNormalization: pre-computation finished in "
            f"{time.time() - start_time:.2f}s. Clipping range: [{bounds.lower}, {bounds.upper}]"
        )
        return bounds
