"""
Base attribute class - abstract interface for all volumetric attribute kernels.

Lifecycle shared by every kernel:
    kernel = SomeAttribute(config, context)   # config already validated
    kernel.initialize()                        # exactly once, may scan inputs
    kernel.compute(inputs, outputs)            # 0..N times, possibly concurrent

initialize() returns an immutable prepared-state value which compute() only
reads, so concurrent compute calls on disjoint tiles need no locking.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple, Type

import numpy as np

from models.attribute_config import AttributeConfig
from models.errors import MissingInputError, ValidationError
from models.sub_cube import BorderPolicy, Index3, SubCube

# Type alias for progress callbacks: (current, total, message) -> None
ProgressCallback = Callable[[int, int, str], None]

UNKNOWN_RANGE = (float('nan'), float('nan'))


class AttributeCategory:
    """Attribute grouping names."""
    BASIC = 'Basic'
    STRUCTURAL = 'Structural'
    UTILITY = 'Utility'


@dataclass
class AttributeContext:
    """
    Full input volumes available to a kernel during initialize().

    Attributes:
        input_volumes: One entry per input slot; None marks an absent slot.
            Entries are SeismicVolume or LazySeismicVolume instances.
    """
    input_volumes: Sequence[Any] = field(default_factory=list)

    def get_volume(self, index: int = 0):
        """
        Return input volume `index`.

        Raises:
            MissingInputError: If the slot is absent or not a 3D volume
        """
        if index >= len(self.input_volumes) or self.input_volumes[index] is None:
            raise MissingInputError(f"Input volume {index} is not connected")
        volume = self.input_volumes[index]
        shape = getattr(volume, 'shape', None)
        if shape is None or len(shape) != 3 or not hasattr(volume, 'iter_traces'):
            raise MissingInputError(
                f"Input {index} is not a seismic cube: {type(volume).__name__}"
            )
        return volume


@dataclass(frozen=True)
class AttributeInfo:
    """
    What a kernel reports to the host before scheduling.

    window_size doubles as display metadata; value_ranges is one (lo, hi)
    hint per output with NaN meaning unknown.
    """
    window_size: Index3
    border: BorderPolicy
    value_ranges: Tuple[Tuple[float, float], ...]
    input_labels: Tuple[str, ...]
    output_labels: Tuple[str, ...]


class BaseAttribute(ABC):
    """
    Abstract base class for all attribute kernels.

    All kernels must:
    1. Receive a validated, immutable configuration of their config_class
    2. Produce prepared state in _prepare() and never mutate it afterwards
    3. Write only to the output SubCubes passed to compute()
    """

    config_class: Type[AttributeConfig] = AttributeConfig
    name: str = ''
    description: str = ''
    short_description: str = ''
    category: str = AttributeCategory.BASIC
    input_labels: Tuple[str, ...] = ('Input',)
    output_labels: Tuple[str, ...] = ('Output',)

    def __init__(self, config: Optional[AttributeConfig] = None,
                 context: Optional[AttributeContext] = None):
        """
        Initialize kernel with its configuration.

        Args:
            config: Instance of config_class (defaults used if None)
            context: Full input volumes for initialize()

        Raises:
            ValidationError: If config is not an instance of config_class
        """
        if config is None:
            config = self.config_class()
        if not isinstance(config, self.config_class):
            raise ValidationError(
                f"{self.__class__.__name__} requires {self.config_class.__name__}, "
                f"got {type(config).__name__}"
            )
        self.config = config
        self.context = context if context is not None else AttributeContext()
        self._prepared: Any = None
        self._initialized = False
        self._progress_callback: Optional[ProgressCallback] = None

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> 'BaseAttribute':
        """
        Set progress callback for long-running initialization passes.

        Returns:
            self for method chaining
        """
        self._progress_callback = callback
        return self

    def _report_progress(self, current: int, total: int, message: str = ""):
        if self._progress_callback is not None:
            self._progress_callback(current, total, message)

    # =========================================================================
    # Host-facing contract
    # =========================================================================

    @property
    def input_count(self) -> int:
        return len(self.input_labels)

    @property
    def output_count(self) -> int:
        return len(self.output_labels)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def prepared_state(self) -> Any:
        return self._prepared

    def get_attribute_info(self) -> AttributeInfo:
        return AttributeInfo(
            window_size=self.window_size(),
            border=BorderPolicy.REPLICATE,
            value_ranges=tuple(self.value_ranges()),
            input_labels=tuple(self.input_labels),
            output_labels=tuple(self.output_labels),
        )

    def window_size(self) -> Index3:
        """Operator size (sizeI, sizeJ, sizeK) around each output voxel."""
        return Index3(1, 1, 1)

    def halo_size(self) -> Index3:
        """Samples of input needed beyond each side of an output tile."""
        size = self.window_size()
        return Index3(size.i // 2, size.j // 2, size.k // 2)

    def value_ranges(self) -> List[Tuple[float, float]]:
        return [UNKNOWN_RANGE] * self.output_count

    def initialize(self) -> Any:
        """
        Run one-time preparation and return the prepared state.

        Calling again returns the existing state without recomputing.
        """
        if not self._initialized:
            self._prepared = self._prepare()
            self._initialized = True
        return self._prepared

    def compute(self, inputs: Sequence[Optional[SubCube]], outputs: Sequence[SubCube]):
        """
        Compute one output tile.

        Args:
            inputs: One SubCube (or None for absent optional slots) per input,
                each covering at least the outputs' range plus halo
            outputs: One SubCube per output, all over the same index range

        Raises:
            RuntimeError: If initialize() was not called first
            ValueError: On wrong counts or mismatched ranges
        """
        if not self._initialized:
            raise RuntimeError(f"{self.__class__.__name__}.initialize() must be called before compute()")
        if len(inputs) != self.input_count:
            raise ValueError(f"Expected {self.input_count} inputs, got {len(inputs)}")
        if len(outputs) != self.output_count:
            raise ValueError(f"Expected {self.output_count} outputs, got {len(outputs)}")

        lo, hi = outputs[0].min_ijk, outputs[0].max_ijk
        for out in outputs[1:]:
            if out.min_ijk != lo or out.max_ijk != hi:
                raise ValueError(f"Output ranges differ: {outputs[0]} vs {out}")
        for n, cube in enumerate(inputs):
            if cube is not None and not cube.contains_range(lo, hi):
                raise ValueError(f"Input {n} {cube} does not cover output range {lo} - {hi}")

        self._compute(inputs, outputs, self._prepared)

    @abstractmethod
    def _prepare(self) -> Any:
        """Build the immutable prepared state. Must not raise for bad data."""
        pass

    @abstractmethod
    def _compute(self, inputs: Sequence[Optional[SubCube]], outputs: Sequence[SubCube],
                 state: Any):
        """Kernel body; inputs/outputs already checked."""
        pass

    # =========================================================================
    # Shared iteration helpers
    # =========================================================================

    @staticmethod
    def map_pointwise(inputs: Sequence[Optional[SubCube]], output: SubCube,
                      func: Callable[..., np.ndarray]):
        """
        Apply func to the input samples co-located with every output index.

        func receives one array per input (None for absent slots), each of
        the output's shape, and returns the output array.
        """
        lo, hi = output.min_ijk, output.max_ijk
        arrays = [cube.region(lo, hi) if cube is not None else None for cube in inputs]
        output.assign(func(*arrays))

    @staticmethod
    def output_index_grids(output: SubCube) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Global (I, J, K) index grids over the output range, each of output shape."""
        lo, hi = output.min_ijk, output.max_ijk
        return np.meshgrid(
            np.arange(lo.i, hi.i + 1),
            np.arange(lo.j, hi.j + 1),
            np.arange(lo.k, hi.k + 1),
            indexing='ij'
        )

    def get_description(self) -> str:
        """Get human-readable description of this attribute and its parameters."""
        params = ', '.join(f"{k}={v}" for k, v in self.config.to_dict().items())
        return f"{self.name}: {params}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.config})"
