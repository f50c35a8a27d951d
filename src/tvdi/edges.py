"""Wet-edge and dry-edge classification and aggregation.

Within each NDVI interval, the coldest pixels (below the LST at which
the cumulative frequency first reaches 2%) form the wet edge and the
hottest (at or above the LST at which it first reaches 98%) form the
dry edge. Per-interval masks are then composited scene-wide.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from tvdi._types import EdgeMasks, IntervalField
from tvdi.exceptions import InsufficientDataError
from tvdi.raster.base import DEFAULT_MAX_PIXELS

if TYPE_CHECKING:
    from tvdi.raster.base import RasterField
    from tvdi.raster.region import Region

logger = logging.getLogger(__name__)

WET_EDGE_FRACTION: float = 0.02
DRY_EDGE_FRACTION: float = 0.98


def cumulative_frequency(histogram: pd.Series) -> pd.Series:
    """Normalise a frequency histogram into a cumulative distribution.

    Args:
        histogram: Pixel counts indexed by distinct LST value.

    Returns:
        Cumulative fraction in ``[0, 1]``, indexed by LST in ascending
        numeric order. The last entry is exactly 1.

    Example:
        >>> hist = pd.Series([1, 2, 1], index=[300.5, 299.0, 301.0])
        >>> cumulative_frequency(hist).tolist()
        [0.5, 0.75, 1.0]
    """
    ordered = histogram.copy()
    ordered.index = ordered.index.astype(np.float64)
    ordered = ordered.sort_index()
    accumulated = ordered.cumsum()
    return accumulated / accumulated.iloc[-1]


def _first_value_reaching(cumulative: pd.Series, fraction: float) -> float:
    reached = cumulative.to_numpy() >= fraction
    return float(cumulative.index[int(np.argmax(reached))])


def edge_thresholds(histogram: pd.Series) -> tuple[float, float]:
    """Return the ``(wet, dry)`` LST cut-offs of one interval.

    The wet cut-off is the smallest LST whose cumulative fraction is at
    least 2%; the dry cut-off the smallest whose fraction is at least
    98%. With few distinct values these collapse onto the minimum or
    maximum LST.

    Raises:
        InsufficientDataError: If *histogram* is empty.
    """
    if histogram.empty or histogram.sum() <= 0:
        raise InsufficientDataError(
            what="Cannot derive edge thresholds",
            cause="The interval histogram holds no pixels",
            fix="Only classify intervals with at least two distinct LST values",
        )
    cumulative = cumulative_frequency(histogram)
    return (
        _first_value_reaching(cumulative, WET_EDGE_FRACTION),
        _first_value_reaching(cumulative, DRY_EDGE_FRACTION),
    )


def classify_edges(
    interval: IntervalField,
    region: Region,
    scale: float,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> EdgeMasks:
    """Derive wet-edge and dry-edge masks for one NDVI interval.

    Wet pixels have ``LST < wet cut-off``; dry pixels have
    ``LST >= dry cut-off``. Since the wet cut-off never exceeds the dry
    one, no pixel is in both masks.

    Args:
        interval: Retained NDVI interval.
        region: Region restricting the histogram.
        scale: Reduction scale in CRS units.
        max_pixels: Pixel budget per reduction.

    Returns:
        ``EdgeMasks`` for this interval.
    """
    histogram = interval.lst.frequency_histogram(region, scale, max_pixels)
    wet_threshold, dry_threshold = edge_thresholds(histogram)

    wet = interval.lst.lt(wet_threshold).self_mask().rename("wet_edge")
    dry = interval.lst.ge(dry_threshold).self_mask().rename("dry_edge")

    logger.debug(
        "Interval %d (%.2f-%.2f): %d distinct LST, wet < %.4f, dry >= %.4f",
        interval.index,
        interval.lower,
        interval.upper,
        len(histogram),
        wet_threshold,
        dry_threshold,
    )
    return EdgeMasks(
        wet=wet,
        dry=dry,
        wet_threshold=wet_threshold,
        dry_threshold=dry_threshold,
        interval_index=interval.index,
    )


def aggregate_edges(
    edge_masks: Iterable[EdgeMasks],
    template: RasterField,
) -> EdgeMasks:
    """Composite per-interval masks into scene-wide wet and dry masks.

    Intervals are disjoint, so each pixel comes from at most one input
    mask and the composite is a plain union. Masks are folded in one at
    a time, so *edge_masks* may be a generator that produces each
    interval's masks on demand. With no intervals, both masks are empty
    (fully masked) on *template*'s grid.

    Args:
        edge_masks: Per-interval masks from ``classify_edges``.
        template: Field defining the output grid.

    Returns:
        Aggregated ``EdgeMasks`` without thresholds.
    """
    field_type = type(template)
    wet = field_type.mosaic([], template=template)
    dry = field_type.mosaic([], template=template)
    for masks in edge_masks:
        wet = field_type.mosaic([wet, masks.wet])
        dry = field_type.mosaic([dry, masks.dry])
    return EdgeMasks(wet=wet.rename("wet_edge"), dry=dry.rename("dry_edge"))
