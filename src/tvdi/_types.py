"""Internal shared types passed between pipeline stages.

These types define the data shapes exchanged by the partition, edge,
fit and evaluate stages. They are internal (prefixed ``_``); only
``FittedParameters`` and ``TVDIDiagnostics`` are re-exported.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tvdi.raster.base import RasterField


@dataclass(frozen=True)
class IntervalField:
    """LST restricted to pixels whose NDVI lies in one interval.

    Args:
        index: Interval number (0--99).
        lower: Exclusive lower NDVI bound.
        upper: Exclusive upper NDVI bound.
        lst: LST field masked to the interval.
        distinct_count: Distinct LST values inside the region.
    """

    index: int
    lower: float
    upper: float
    lst: RasterField
    distinct_count: int = 0


@dataclass(frozen=True)
class EdgeMasks:
    """Wet-edge and dry-edge membership masks.

    Both fields hold 1 for member pixels and are masked elsewhere.

    Args:
        wet: Pixels below the 2% cumulative-frequency LST.
        dry: Pixels at or above the 98% cumulative-frequency LST.
        wet_threshold: LST cut-off for the wet edge (NaN for aggregates).
        dry_threshold: LST cut-off for the dry edge (NaN for aggregates).
        interval_index: Originating interval, ``None`` for aggregates.
    """

    wet: RasterField
    dry: RasterField
    wet_threshold: float = float("nan")
    dry_threshold: float = float("nan")
    interval_index: int | None = None


@dataclass(frozen=True)
class FittedParameters:
    """Dry-edge regression and wet-edge mean for one image pair.

    The dry edge is ``LST = offset_a + slope_b * NDVI``.

    Args:
        offset_a: Dry-edge intercept.
        slope_b: Dry-edge slope.
        lst_min: Mean LST of wet-edge pixels.
        dry_pixel_count: Region pixels used for the regression.
        wet_pixel_count: Region pixels used for the mean.

    Example:
        >>> params = FittedParameters(offset_a=320.0, slope_b=-16.0, lst_min=296.0)
        >>> params.dry_edge(0.5)
        312.0
    """

    offset_a: float
    slope_b: float
    lst_min: float
    dry_pixel_count: int = 0
    wet_pixel_count: int = 0

    def dry_edge(self, ndvi: float) -> float:
        """Evaluate the dry-edge temperature at *ndvi*."""
        return self.offset_a + self.slope_b * ndvi


@dataclass
class TVDIDiagnostics:
    """Intermediate products of one single-pair run, kept for inspection.

    Args:
        intervals: Retained NDVI intervals.
        edge_masks: Per-interval wet/dry masks.
        aggregated: Scene-wide wet/dry masks.
        parameters: Fitted edge parameters.
    """

    intervals: list[IntervalField] = field(default_factory=list)
    edge_masks: list[EdgeMasks] = field(default_factory=list)
    aggregated: EdgeMasks | None = None
    parameters: FittedParameters | None = None
