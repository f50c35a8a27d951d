"""Dry-edge regression and wet-edge mean temperature."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from tvdi._types import EdgeMasks, FittedParameters
from tvdi.exceptions import InsufficientDataError
from tvdi.raster.base import DEFAULT_MAX_PIXELS

if TYPE_CHECKING:
    from tvdi.raster.base import RasterField
    from tvdi.raster.region import Region

logger = logging.getLogger(__name__)

_MIN_DRY_PIXELS: int = 2


def fit_edges(
    ndvi: RasterField,
    lst: RasterField,
    edges: EdgeMasks,
    region: Region,
    scale: float,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> FittedParameters:
    """Fit the dry edge and average the wet edge.

    The dry edge is an ordinary least-squares line of LST against NDVI
    over dry-edge pixels inside *region*; ``LST_min`` is the mean LST of
    wet-edge pixels inside *region*.

    Args:
        ndvi: NDVI field.
        lst: LST field on the same grid.
        edges: Scene-wide masks from ``aggregate_edges``.
        region: Region restricting both reductions.
        scale: Reduction scale in CRS units.
        max_pixels: Pixel budget per reduction.

    Returns:
        ``FittedParameters`` with finite ``offset_a``, ``slope_b`` and
        ``lst_min``.

    Raises:
        InsufficientDataError: If the dry edge has fewer than two usable
            pixels or no NDVI spread, or the wet edge is empty.
    """
    dry_ndvi = ndvi.update_mask(edges.dry).rename("NDVI")
    dry_lst = lst.update_mask(edges.dry).rename("LST")
    dry_pixels = int(dry_lst.frequency_histogram(region, scale, max_pixels).sum())
    offset_a, slope_b = dry_ndvi.linear_fit(dry_lst, region, scale, max_pixels)

    if dry_pixels < _MIN_DRY_PIXELS or not (
        math.isfinite(offset_a) and math.isfinite(slope_b)
    ):
        raise InsufficientDataError(
            what="Cannot fit the dry edge",
            cause=(
                "The dry-edge mask holds too few pixels inside the region "
                "or their NDVI values do not vary"
            ),
            fix="Use a larger region or a scene with more NDVI/LST contrast",
        )

    wet_lst = lst.update_mask(edges.wet).rename("LST")
    lst_min = wet_lst.mean(region, scale, max_pixels)
    if not math.isfinite(lst_min):
        raise InsufficientDataError(
            what="Cannot estimate the wet edge",
            cause="The wet-edge mask holds no pixels inside the region",
            fix="Use a larger region or a scene with more LST contrast",
        )

    wet_count = int(
        wet_lst.frequency_histogram(region, scale, max_pixels).sum()
    )
    params = FittedParameters(
        offset_a=offset_a,
        slope_b=slope_b,
        lst_min=lst_min,
        dry_pixel_count=dry_pixels,
        wet_pixel_count=wet_count,
    )
    logger.debug(
        "Dry edge: LST = %.4f + %.4f * NDVI (%d px); wet edge LST_min = %.4f (%d px)",
        offset_a,
        slope_b,
        dry_pixels,
        lst_min,
        wet_count,
    )
    return params
