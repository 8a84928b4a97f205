"""
Structure-oriented mean filter guided by inline/crossline dip fields.

For each output voxel the neighbours at horizontal offsets (oI, oJ) are taken
along the local reflector plane rather than at the same sample index:

    k' = round(k + oI * tan(dipI) * di/dk + oJ * tan(dipJ) * dj/dk)

Background is the mean of those neighbours, residual = input - background.

Neighbours outside the provided input SubCube are skipped rather than
clamped, so the host halo (sized by max_vertical_search_radius) bounds how
far the filter may follow steep dips.
"""
import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from models.attribute_config import StructureOrientedFilterConfig
from models.errors import DegenerateDataError, MissingInputError
from models.sub_cube import Index3
from processors.base_attribute import AttributeCategory, BaseAttribute, UNKNOWN_RANGE

logger = logging.getLogger(__name__)

MIN_VERTICAL_SPACING = 1e-9


@dataclass(frozen=True)
class ShearFactors:
    """Vertical samples per unit tan(dip) per horizontal step."""
    inline: float
    xline: float


def compute_shear_factors(di: float, dj: float, dk: float) -> ShearFactors:
    """
    Shear factors from sample spacing.

    Raises:
        DegenerateDataError: If vertical spacing is (nearly) zero
    """
    if abs(dk) < MIN_VERTICAL_SPACING:
        raise DegenerateDataError(
            f"Vertical sample spacing cannot be zero (dk={dk})",
            status='zero_vertical_spacing',
            fallback=ShearFactors(0.0, 0.0)
        )
    return ShearFactors(inline=di / dk, xline=dj / dk)


class StructureOrientedFilter(BaseAttribute):
    """Dip-guided mean filter producing background and residual volumes."""

    config_class = StructureOrientedFilterConfig
    name = 'Structure Oriented Mean Filter'
    description = ('Applies a mean filter guided by local dip fields. Simultaneously '
                   'outputs Background and Residual volumes.')
    short_description = 'Dip-guided mean filter.'
    category = AttributeCategory.STRUCTURAL
    input_labels = ('Seismic Input', 'Inline Dip', 'Crossline Dip')
    output_labels = ('Background', 'Residual')

    def window_size(self) -> Index3:
        return Index3(
            2 * self.config.inline_radius + 1,
            2 * self.config.xline_radius + 1,
            2 * self.config.max_vertical_search_radius + 1,
        )

    def value_ranges(self) -> List[Tuple[float, float]]:
        return [UNKNOWN_RANGE, UNKNOWN_RANGE]

    def _prepare(self) -> ShearFactors:
        try:
            volume = self.context.get_volume(0)
            di, dj, dk = volume.spacing
            shear = compute_shear_factors(di, dj, dk)
        except MissingInputError as e:
            logger.error(f"StructureOrientedFilter: {e}. Falling back to flat filtering")
            return ShearFactors(0.0, 0.0)
        except DegenerateDataError as e:
            logger.warning(f"StructureOrientedFilter: {e}. Falling back to flat filtering")
            return e.fallback
        except Exception as e:
            logger.error(f"StructureOrientedFilter: could not read input spacing: {e}. "
                         f"Falling back to flat filtering")
            return ShearFactors(0.0, 0.0)

        logger.info(f"StructureOrientedFilter: shear factors inline={shear.inline:.4f}, "
                    f"xline={shear.xline:.4f}")
        return shear

    def _compute(self, inputs, outputs, state: ShearFactors):
        seismic, dip_il, dip_xl = inputs
        background, residual = outputs
        lo, hi = background.min_ijk, background.max_ijk
        in_lo, in_hi = seismic.min_ijk, seismic.max_ijk

        gi, gj, gk = self.output_index_grids(background)
        dip_i = dip_il.region(lo, hi).astype(np.float64)
        dip_j = dip_xl.region(lo, hi).astype(np.float64)
        shift_i = np.tan(np.radians(dip_i)) * state.inline
        shift_j = np.tan(np.radians(dip_j)) * state.xline
        no_dip = np.isnan(shift_i) | np.isnan(shift_j)

        total = np.zeros(background.shape, dtype=np.float64)
        count = np.zeros(background.shape, dtype=np.int64)
        data = seismic.data
        r_i = self.config.inline_radius
        r_j = self.config.xline_radius

        for off_i in range(-r_i, r_i + 1):
            ni = gi + off_i
            valid_i = (ni >= in_lo.i) & (ni <= in_hi.i)
            for off_j in range(-r_j, r_j + 1):
                nj = gj + off_j
                nk = np.rint(gk + off_i * shift_i + off_j * shift_j)
                valid = (valid_i & (nj >= in_lo.j) & (nj <= in_hi.j)
                         & (nk >= in_lo.k) & (nk <= in_hi.k) & ~no_dip)
                if not valid.any():
                    continue

                li = np.clip(ni - in_lo.i, 0, data.shape[0] - 1)
                lj = np.clip(nj - in_lo.j, 0, data.shape[1] - 1)
                lk = np.clip(np.nan_to_num(nk - in_lo.k), 0, data.shape[2] - 1).astype(np.int64)
                values = data[li, lj, lk]
                valid &= ~np.isnan(values)

                total += np.where(valid, values, 0.0)
                count += valid

        with np.errstate(invalid='ignore', divide='ignore'):
            mean = np.where(count > 0, total / np.maximum(count, 1), 0.0)

        background.assign(mean)
        residual.assign(seismic.region(lo, hi) - background.data)
