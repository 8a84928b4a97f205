"""Models package - volumes, sub-cubes, configurations and errors."""
from .errors import ValidationError, DegenerateDataError, MissingInputError
from .sub_cube import SubCube, Index3, BorderPolicy, as_index3
from .seismic_volume import SeismicVolume, create_synthetic_volume
from .lazy_seismic_volume import LazySeismicVolume, create_zarr_volume
from .attribute_config import (
    AttributeConfig,
    AbsoluteClipConfig,
    PercentileClipConfig,
    FusionInputConfig,
    MultiAttributeFusionConfig,
    StructureOrientedFilterConfig,
    StructureTensorConfig,
    VarianceConfig,
    MAX_FUSION_INPUTS,
)

__all__ = [
    # Errors
    'ValidationError',
    'DegenerateDataError',
    'MissingInputError',
    # Data
    'SubCube',
    'Index3',
    'BorderPolicy',
    'as_index3',
    'SeismicVolume',
    'create_synthetic_volume',
    'LazySeismicVolume',
    'create_zarr_volume',
    # Configuration
    'AttributeConfig',
    'AbsoluteClipConfig',
    'PercentileClipConfig',
    'FusionInputConfig',
    'MultiAttributeFusionConfig',
    'StructureOrientedFilterConfig',
    'StructureTensorConfig',
    'VarianceConfig',
    'MAX_FUSION_INPUTS',
]
