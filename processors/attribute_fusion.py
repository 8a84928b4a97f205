"""
Multi-attribute fusion - weighted, threshold-gated sum of up to six inputs.

    output = sum_i( w_i * v_i  if min_i <= v_i <= max_i  else 0 )

Absent input slots are skipped entirely. Weights are not normalized, so the
output range is unconstrained. NaN fails every gate and contributes 0.
"""
from typing import Tuple

import numpy as np

from models.attribute_config import MultiAttributeFusionConfig
from processors.base_attribute import AttributeCategory, BaseAttribute


class MultiAttributeFusion(BaseAttribute):
    """Fuses up to six co-located attribute volumes into one."""

    config_class = MultiAttributeFusionConfig
    name = 'Multi-Attribute Fusion'
    description = ('Combines up to six attributes as a weighted sum; each input only '
                   'contributes where its value lies inside its threshold gate.')
    short_description = 'Weighted, gated sum of attributes.'
    category = AttributeCategory.UTILITY

    @property
    def input_labels(self) -> Tuple[str, ...]:
        return tuple(f"Input {n}" for n in range(1, len(self.config.inputs) + 1))

    def _prepare(self):
        return self.config.inputs

    def _fuse(self, *values) -> np.ndarray:
        result = None
        for slot, samples in zip(self.config.inputs, values):
            if samples is None:
                continue
            if result is None:
                result = np.zeros(samples.shape, dtype=np.float32)
            gate = (samples >= slot.min_threshold) & (samples <= slot.max_threshold)
            result += np.where(gate, samples * np.float32(slot.weight), np.float32(0.0))
        return result

    def _compute(self, inputs, outputs, state):
        if all(cube is None for cube in inputs):
            outputs[0].fill(0.0)
            return
        self.map_pointwise(inputs, outputs[0], self._fuse)
