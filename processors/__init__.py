"""
Processors package - volumetric seismic attribute kernels.

Includes the attribute registry used to build kernels from a name and a
plain parameter mapping.
"""
from typing import Any, Dict, Optional, Type

from .base_attribute import (
    AttributeCategory,
    AttributeContext,
    AttributeInfo,
    BaseAttribute,
    ProgressCallback,
)
from .histogram_percentile import (
    ClipBounds,
    Histogram,
    HistogramPercentileEstimator,
    HistogramStatus,
    NUM_HISTOGRAM_BINS,
)
from .clip_normalization import (
    AbsoluteClipNormalization,
    PercentileClipNormalization,
    clip_normalize,
)
from .attribute_fusion import MultiAttributeFusion
from .structure_oriented_filter import (
    ShearFactors,
    StructureOrientedFilter,
    compute_shear_factors,
)
from .structure_tensor import StructureTensorEigenvalues, symmetric_eigenvalues_3x3
from .variance import Variance
from .tiled_runner import TiledAttributeRunner, get_optimal_workers, plan_tiles

# =============================================================================
# Attribute Registry
# =============================================================================

ATTRIBUTE_REGISTRY: Dict[str, Type[BaseAttribute]] = {
    'AbsoluteClipNormalization': AbsoluteClipNormalization,
    'PercentileClipNormalization': PercentileClipNormalization,
    'MultiAttributeFusion': MultiAttributeFusion,
    'StructureOrientedFilter': StructureOrientedFilter,
    'StructureTensorEigenvalues': StructureTensorEigenvalues,
    'Variance': Variance,
}


def get_attribute_class(name: str) -> Type[BaseAttribute]:
    """
    Get attribute class by name from registry.

    Raises:
        KeyError: If attribute name not found in registry
    """
    if name not in ATTRIBUTE_REGISTRY:
        raise KeyError(f"Unknown attribute: {name}. Available: {list(ATTRIBUTE_REGISTRY.keys())}")
    return ATTRIBUTE_REGISTRY[name]


def create_attribute(name: str, params: Optional[Dict[str, Any]] = None,
                     context: Optional[AttributeContext] = None) -> BaseAttribute:
    """
    Create a kernel from its registry name and parameter mapping.

    Raises:
        KeyError: If name is not registered
        ValidationError: If params are invalid
    """
    attribute_class = get_attribute_class(name)
    config = attribute_class.config_class.from_dict(params or {})
    return attribute_class(config, context)


def register_attribute(name: str, attribute_class: Type[BaseAttribute]) -> None:
    """
    Register a custom attribute class.

    Raises:
        TypeError: If attribute_class is not a BaseAttribute subclass
    """
    if not isinstance(attribute_class, type) or not issubclass(attribute_class, BaseAttribute):
        raise TypeError(f"{attribute_class} is not a BaseAttribute subclass")
    ATTRIBUTE_REGISTRY[name] = attribute_class


__all__ = [
    # Base classes
    'AttributeCategory',
    'AttributeContext',
    'AttributeInfo',
    'BaseAttribute',
    'ProgressCallback',
    # Statistics
    'ClipBounds',
    'Histogram',
    'HistogramPercentileEstimator',
    'HistogramStatus',
    'NUM_HISTOGRAM_BINS',
    # Attributes
    'AbsoluteClipNormalization',
    'PercentileClipNormalization',
    'clip_normalize',
    'MultiAttributeFusion',
    'ShearFactors',
    'StructureOrientedFilter',
    'compute_shear_factors',
    'StructureTensorEigenvalues',
    'symmetric_eigenvalues_3x3',
    'Variance',
    # Runner
    'TiledAttributeRunner',
    'get_optimal_workers',
    'plan_tiles',
    # Registry functions
    'ATTRIBUTE_REGISTRY',
    'get_attribute_class',
    'create_attribute',
    'register_attribute',
]
