"""Per-pixel TVDI evaluation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tvdi._types import FittedParameters
    from tvdi.raster.base import RasterField
    from tvdi.raster.region import Region

TVDI_MIN: float = 0.0
TVDI_MAX: float = 1.0


def evaluate_tvdi(
    ndvi: RasterField,
    lst: RasterField,
    params: FittedParameters,
    region: Region,
    epsilon: float = 1e-9,
) -> RasterField:
    """Compute ``TVDI = (LST - LST_min) / (a + b*NDVI - LST_min)``.

    Pixels whose denominator magnitude is at most *epsilon* are masked
    instead of producing infinities. The result is clipped to *region*
    and clamped to ``[0, 1]``.

    Args:
        ndvi: NDVI field.
        lst: LST field on the same grid.
        params: Fitted dry/wet edge parameters.
        region: Region outside which output pixels are masked.
        epsilon: Degenerate-denominator tolerance.

    Returns:
        Field named ``TVDI`` with valid values in ``[0, 1]``.
    """
    numerator = lst - params.lst_min
    denominator = ndvi * params.slope_b + (params.offset_a - params.lst_min)
    tvdi = numerator.divide(denominator, epsilon=epsilon)
    return tvdi.rename("TVDI").clip(region).clamp(TVDI_MIN, TVDI_MAX)
