"""NDVI interval partitioning.

Slices the NDVI domain ``[0, 1]`` into 100 intervals of width 0.01 and
returns, for each interval holding enough LST variety, the LST field
restricted to that interval's pixels.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from tvdi._types import IntervalField
from tvdi.raster.base import DEFAULT_MAX_PIXELS

if TYPE_CHECKING:
    from tvdi.raster.base import RasterField
    from tvdi.raster.region import Region

logger = logging.getLogger(__name__)

INTERVAL_COUNT: int = 100
INTERVAL_WIDTH: float = 0.01
_MIN_DISTINCT_VALUES: int = 2


def interval_bounds(index: int) -> tuple[float, float]:
    """Return the ``(lower, upper)`` NDVI bounds of interval *index*.

    Example:
        >>> interval_bounds(0)
        (0.0, 0.01)
    """
    return (index * INTERVAL_WIDTH, (index + 1) * INTERVAL_WIDTH)


def iter_intervals(
    ndvi: RasterField,
    lst: RasterField,
    region: Region,
    scale: float,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> Iterator[IntervalField]:
    """Yield retained NDVI intervals one at a time, in ascending order.

    Both interval bounds are exclusive (``lower < NDVI < upper``), so a
    pixel whose NDVI equals a bound belongs to no interval. Intervals
    whose LST holds fewer than two distinct values inside *region* are
    skipped, since no cumulative histogram can be built for them.

    Only the interval being yielded holds a masked LST field; callers
    that consume intervals as they come never keep more than one alive.

    Args:
        ndvi: NDVI field.
        lst: LST field on the same grid.
        region: Region restricting the distinct-value count.
        scale: Reduction scale in CRS units.
        max_pixels: Pixel budget per reduction.

    Yields:
        Retained intervals (at most 100).
    """
    retained = 0
    for index in range(INTERVAL_COUNT):
        lower, upper = interval_bounds(index)
        in_interval = ndvi.gt(lower).logical_and(ndvi.lt(upper)).self_mask()
        lst_on_interval = lst.update_mask(in_interval).rename("LST")
        distinct = lst_on_interval.count_distinct(region, scale, max_pixels)

        if distinct < _MIN_DISTINCT_VALUES:
            continue
        retained += 1
        yield IntervalField(
            index=index,
            lower=lower,
            upper=upper,
            lst=lst_on_interval,
            distinct_count=distinct,
        )

    logger.debug("Retained %d of %d NDVI intervals", retained, INTERVAL_COUNT)


def partition_intervals(
    ndvi: RasterField,
    lst: RasterField,
    region: Region,
    scale: float,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> list[IntervalField]:
    """Split LST pixels into NDVI intervals.

    Eager form of ``iter_intervals``: every retained interval keeps its
    own masked LST field, so prefer the iterator on large scenes.

    Returns:
        Retained intervals in ascending NDVI order (at most 100).
    """
    return list(iter_intervals(ndvi, lst, region, scale, max_pixels))
