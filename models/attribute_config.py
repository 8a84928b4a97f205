"""
Configuration dataclasses for the attribute kernels.

Each kernel has one frozen configuration type. Constraints are checked in
__post_init__, so an instance that exists is valid and cannot change for the
rest of the job.
"""
import numbers
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Tuple

from models.errors import ValidationError

MAX_FUSION_INPUTS = 6


def _check_int(name: str, value: Any, minimum: int = 0, odd: bool = False):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}, got {value}")
    if odd and value % 2 == 0:
        raise ValidationError(f"{name} must be odd, got {value}")


def _check_real(name: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if value != value or value in (float('inf'), float('-inf')):
        raise ValidationError(f"{name} must be finite, got {value}")


@dataclass(frozen=True)
class AttributeConfig:
    """Base class: construction from plain parameter mappings."""

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> 'AttributeConfig':
        """
        Build a configuration from a parameter mapping.

        Raises:
            ValidationError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ValidationError(
                f"Unknown parameters for {cls.__name__}: {sorted(unknown)}. "
                f"Available: {sorted(known)}"
            )
        return cls(**params)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AbsoluteClipConfig(AttributeConfig):
    """Band clip of |sample| to [lower_threshold, upper_threshold]."""
    lower_threshold: float = 0.0
    upper_threshold: float = 10000.0

    def __post_init__(self):
        _check_real('lower_threshold', self.lower_threshold)
        _check_real('upper_threshold', self.upper_threshold)
        if self.lower_threshold < 0 or self.upper_threshold < 0:
            raise ValidationError(
                f"Thresholds must be non-negative, got "
                f"[{self.lower_threshold}, {self.upper_threshold}]"
            )
        if self.lower_threshold >= self.upper_threshold:
            raise ValidationError(
                f"lower_threshold ({self.lower_threshold}) must be less than "
                f"upper_threshold ({self.upper_threshold})"
            )


@dataclass(frozen=True)
class PercentileClipConfig(AttributeConfig):
    """Clip to global percentiles given in percent (0-100)."""
    lower_percentile: float = 1.0
    upper_percentile: float = 99.0

    def __post_init__(self):
        _check_real('lower_percentile', self.lower_percentile)
        _check_real('upper_percentile', self.upper_percentile)
        if not (0.0 <= self.lower_percentile <= 100.0 and 0.0 <= self.upper_percentile <= 100.0):
            raise ValidationError(
                f"Percentiles must be in [0, 100], got "
                f"[{self.lower_percentile}, {self.upper_percentile}]"
            )
        if self.lower_percentile >= self.upper_percentile:
            raise ValidationError(
                f"lower_percentile ({self.lower_percentile}) must be less than "
                f"upper_percentile ({self.upper_percentile})"
            )


@dataclass(frozen=True)
class FusionInputConfig:
    """Weight and inclusive gate for one fusion input slot."""
    weight: float = 0.0
    min_threshold: float = 0.0
    max_threshold: float = 1.0

    def __post_init__(self):
        _check_real('weight', self.weight)
        _check_real('min_threshold', self.min_threshold)
        _check_real('max_threshold', self.max_threshold)
        if self.min_threshold > self.max_threshold:
            raise ValidationError(
                f"min_threshold ({self.min_threshold}) must not exceed "
                f"max_threshold ({self.max_threshold})"
            )


def _default_fusion_inputs() -> Tuple[FusionInputConfig, ...]:
    return (FusionInputConfig(weight=1.0),) + tuple(
        FusionInputConfig() for _ in range(MAX_FUSION_INPUTS - 1)
    )


@dataclass(frozen=True)
class MultiAttributeFusionConfig(AttributeConfig):
    """
    Per-slot weights and gates for up to six inputs.

    inputs may also be given as a sequence of dicts, e.g.
    [{'weight': 1.0, 'min_threshold': 0.0, 'max_threshold': 1.0}, ...].
    """
    inputs: Tuple[FusionInputConfig, ...] = field(default_factory=_default_fusion_inputs)

    def __post_init__(self):
        slots = []
        for n, slot in enumerate(self.inputs, start=1):
            if isinstance(slot, dict):
                try:
                    slot = FusionInputConfig(**slot)
                except TypeError as e:
                    raise ValidationError(f"Invalid fusion input {n}: {e}")
            elif not isinstance(slot, FusionInputConfig):
                raise ValidationError(f"Fusion input {n} must be a FusionInputConfig, got {slot!r}")
            slots.append(slot)

        if not 1 <= len(slots) <= MAX_FUSION_INPUTS:
            raise ValidationError(
                f"Fusion needs 1 to {MAX_FUSION_INPUTS} inputs, got {len(slots)}"
            )
        object.__setattr__(self, 'inputs', tuple(slots))


@dataclass(frozen=True)
class StructureOrientedFilterConfig(AttributeConfig):
    """Filter radii in traces; vertical radius only sizes the requested halo."""
    inline_radius: int = 10
    xline_radius: int = 10
    max_vertical_search_radius: int = 50

    def __post_init__(self):
        _check_int('inline_radius', self.inline_radius)
        _check_int('xline_radius', self.xline_radius)
        _check_int('max_vertical_search_radius', self.max_vertical_search_radius)


@dataclass(frozen=True)
class StructureTensorConfig(AttributeConfig):
    """Odd window sizes over which gradient products are summed."""
    window_inline: int = 5
    window_xline: int = 5
    window_z: int = 5

    def __post_init__(self):
        _check_int('window_inline', self.window_inline, minimum=1, odd=True)
        _check_int('window_xline', self.window_xline, minimum=1, odd=True)
        _check_int('window_z', self.window_z, minimum=1, odd=True)


@dataclass(frozen=True)
class VarianceConfig(AttributeConfig):
    """Horizontal variance window, vertical smoothing window and inline chunk size."""
    window_inline: int = 5
    window_xline: int = 5
    window_z: int = 9
    chunk_inline: int = 20
    unbiased: bool = False

    def __post_init__(self):
        _check_int('window_inline', self.window_inline, minimum=1, odd=True)
        _check_int('window_xline', self.window_xline, minimum=1, odd=True)
        _check_int('window_z', self.window_z, minimum=1, odd=True)
        _check_int('chunk_inline', self.chunk_inline, minimum=1)
        if not isinstance(self.unbiased, bool):
            raise ValidationError(f"unbiased must be a bool, got {self.unbiased!r}")
