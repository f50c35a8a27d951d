"""Top-level entry points for TVDI computation.

Example:
    >>> import tvdi
    >>> roi = tvdi.Region.from_file("roi.geojson")  # doctest: +SKIP
    >>> ndvi = tvdi.ArrayField.from_geotiff("ndvi.tif", name="NDVI")  # doctest: +SKIP
    >>> lst = tvdi.ArrayField.from_geotiff("lst.tif", name="LST")  # doctest: +SKIP
    >>> result = tvdi.single_tvdi(ndvi, lst, roi, scale=0.01)  # doctest: +SKIP
    >>> result.parameters.slope_b  # doctest: +SKIP
    -12.4
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any

import numpy as np

from tvdi._types import TVDIDiagnostics
from tvdi.config import Config, get_default_config
from tvdi.edges import aggregate_edges, classify_edges
from tvdi.evaluate import evaluate_tvdi
from tvdi.exceptions import InputValidationError, TVDIError
from tvdi.fit import fit_edges
from tvdi.partition import iter_intervals
from tvdi.raster.array import ArrayField
from tvdi.results import ResultMetadata, TVDIResult

if TYPE_CHECKING:
    from tvdi._types import EdgeMasks, FittedParameters, IntervalField
    from tvdi.raster.base import RasterField
    from tvdi.raster.region import Region

logger = logging.getLogger(__name__)

# Below this many retained intervals the dry-edge regression is shaky.
_MIN_RECOMMENDED_INTERVALS: int = 10
_LOW_COVERAGE_THRESHOLD: float = 0.5


# ── Validation ─────────────────────────────────────────────────────


def _validate_inputs(
    ndvi: Any,
    lst: Any,
    region: Region | None,
    scale: float | None,
    is_collection: bool = False,
) -> None:
    """Check that every required input is present and consistent.

    All problems are collected and reported together.

    Raises:
        InputValidationError: If any input is missing, the scale is not
            positive, or paired sequences differ in length.
    """
    kind = "sequence" if is_collection else "field"
    problems: list[str] = []

    if ndvi is None:
        problems.append(f"NDVI {kind} must not be None")
    if lst is None:
        problems.append(f"LST {kind} must not be None")
    if region is None:
        problems.append("Region must not be None")
    if scale is None:
        problems.append("Scale must not be None")
    elif not (isinstance(scale, (int, float)) and math.isfinite(scale) and scale > 0):
        problems.append(f"Scale must be a positive number, got {scale!r}")

    if is_collection and ndvi is not None and lst is not None and len(ndvi) != len(lst):
        problems.append(
            f"NDVI and LST sequences differ in length ({len(ndvi)} vs {len(lst)})"
        )

    if problems:
        message = "; ".join(problems)
        logger.error("Invalid TVDI inputs: %s", message)
        raise InputValidationError(
            what="Invalid TVDI inputs",
            cause=message,
            fix="Provide NDVI and LST rasters, a region and a positive scale",
        )


# ── Helpers ────────────────────────────────────────────────────────


def _prepare_fields(
    ndvi: RasterField,
    lst: RasterField,
    scale: float,
    config: Config,
) -> tuple[RasterField, RasterField]:
    """Bring NDVI to the target CRS and scale, and LST onto the NDVI grid.

    Fields that are not ``ArrayField`` instances are used as given and
    must already share a grid.
    """
    if isinstance(ndvi, ArrayField):
        target_crs = config.target_crs or ndvi.crs
        if ndvi.crs != target_crs or not math.isclose(
            ndvi.resolution, scale, rel_tol=1e-9
        ):
            ndvi = ndvi.reproject(target_crs, scale)
        if isinstance(lst, ArrayField):
            lst = lst.align_to(ndvi)
    return ndvi.rename("NDVI"), lst.rename("LST")


def _log_diagnostics(diagnostics: TVDIDiagnostics) -> None:
    logger.info("======== TVDI DEBUG ========")
    logger.info(
        "Retained NDVI intervals (%d): %s",
        len(diagnostics.intervals),
        [i.index for i in diagnostics.intervals],
    )
    for masks in diagnostics.edge_masks:
        logger.info(
            "  interval %s: wet < %.4f, dry >= %.4f",
            masks.interval_index,
            masks.wet_threshold,
            masks.dry_threshold,
        )
    params = diagnostics.parameters
    if params is not None:
        logger.info("Dry edge a_offset: %.6f", params.offset_a)
        logger.info("Dry edge b_slope: %.6f", params.slope_b)
        logger.info("Wet edge LST mean: %.6f", params.lst_min)
    logger.info("============================")


def _build_result(
    tvdi: RasterField,
    region: Region,
    scale: float,
    params: FittedParameters,
    retained_intervals: int,
    diagnostics: TVDIDiagnostics | None = None,
) -> TVDIResult:
    """Assemble a ``TVDIResult`` with coverage-based confidence and warnings."""
    data = tvdi.to_numpy()
    inside = region.to_mask(tvdi.shape, tvdi.transform, tvdi.crs)
    inside_count = int(np.count_nonzero(inside))
    valid_count = int(np.count_nonzero(inside & np.isfinite(data)))
    confidence = valid_count / inside_count if inside_count > 0 else 0.0

    warnings: list[str] = []
    if retained_intervals < _MIN_RECOMMENDED_INTERVALS:
        warnings.append(
            f"Only {retained_intervals} NDVI intervals retained; "
            "the dry-edge fit may be unreliable"
        )
    if params.slope_b >= 0:
        warnings.append(
            f"Dry-edge slope is non-negative (b={params.slope_b:.3f}); "
            "LST usually decreases with NDVI"
        )
    if confidence < _LOW_COVERAGE_THRESHOLD:
        warnings.append(
            f"Only {confidence:.0%} of the region has a valid TVDI value"
        )

    bounds: dict[str, float] = {}
    if isinstance(tvdi, ArrayField):
        west, south, east, north = tvdi.bounds
        bounds = {"minx": west, "miny": south, "maxx": east, "maxy": north}
    metadata = ResultMetadata(
        crs=tvdi.crs,
        bounds=bounds,
        scale=scale,
        bands=["NDVI", "LST"],
        retained_intervals=retained_intervals,
    )
    return TVDIResult(
        data=data,
        confidence=confidence,
        metadata=metadata,
        warnings=warnings,
        parameters=params,
        raster=tvdi,
        diagnostics=diagnostics,
    )


# ── Entry points ───────────────────────────────────────────────────


def single_tvdi(
    ndvi: RasterField,
    lst: RasterField,
    region: Region,
    scale: float,
    debug: bool = False,
    *,
    config: Config | None = None,
) -> TVDIResult:
    """Compute TVDI for one NDVI/LST pair.

    Runs partition → classify → aggregate → fit → evaluate. The ``debug``
    flag logs intermediate products and attaches them to the result as
    ``diagnostics``; the TVDI values are the same either way. Intervals
    are classified as they are produced, and their fields are only kept
    in debug mode.

    Args:
        ndvi: NDVI field.
        lst: LST field.
        region: Region of interest restricting all statistics.
        scale: Pixel size in CRS units.
        debug: Log and keep intermediate products.
        config: Optional configuration override.

    Returns:
        ``TVDIResult`` with the clamped TVDI field and fitted parameters.

    Raises:
        InputValidationError: If an input is missing or the scale is invalid.
        InsufficientDataError: If the wet or dry edge is empty.
        RasterError: If the fields cannot be combined or reduced.
    """
    _validate_inputs(ndvi, lst, region, scale)
    cfg = config if config is not None else get_default_config()

    ndvi, lst = _prepare_fields(ndvi, lst, scale, cfg)

    retained: list[int] = []
    intervals: list[IntervalField] = []
    edge_masks: list[EdgeMasks] = []

    def classified() -> Iterator[EdgeMasks]:
        for interval in iter_intervals(ndvi, lst, region, scale, cfg.max_pixels):
            masks = classify_edges(interval, region, scale, cfg.max_pixels)
            retained.append(interval.index)
            if debug:
                intervals.append(interval)
                edge_masks.append(masks)
            yield masks

    aggregated = aggregate_edges(classified(), template=lst)
    params = fit_edges(ndvi, lst, aggregated, region, scale, cfg.max_pixels)
    tvdi = evaluate_tvdi(ndvi, lst, params, region, cfg.denominator_epsilon)

    diagnostics = None
    if debug:
        diagnostics = TVDIDiagnostics(
            intervals=intervals,
            edge_masks=edge_masks,
            aggregated=aggregated,
            parameters=params,
        )
        _log_diagnostics(diagnostics)

    return _build_result(tvdi, region, scale, params, len(retained), diagnostics)


def collection_tvdi(
    ndvi_fields: Sequence[RasterField],
    lst_fields: Sequence[RasterField],
    region: Region,
    scale: float,
    *,
    config: Config | None = None,
) -> list[TVDIResult]:
    """Compute TVDI for each NDVI/LST pair of two equal-length sequences.

    Result ``i`` comes from pair ``i`` and carries ``index == i``. Pairs
    are isolated: a pair failing with a ``TVDIError`` yields a failed
    result (empty data, ``error`` set) and the remaining pairs still run.
    Diagnostics are never collected here.

    Args:
        ndvi_fields: Ordered NDVI fields.
        lst_fields: Ordered LST fields, same length as *ndvi_fields*.
        region: Region of interest.
        scale: Pixel size in CRS units.
        config: Optional configuration override.

    Returns:
        One ``TVDIResult`` per pair, in input order.

    Raises:
        InputValidationError: If an input is missing or the sequences
            differ in length.
    """
    _validate_inputs(ndvi_fields, lst_fields, region, scale, is_collection=True)
    cfg = config if config is not None else get_default_config()

    results: list[TVDIResult] = []
    for index, (ndvi, lst) in enumerate(zip(ndvi_fields, lst_fields)):
        try:
            result = single_tvdi(ndvi, lst, region, scale, debug=False, config=cfg)
        except TVDIError as exc:
            logger.warning("TVDI pair %d failed: %s", index, exc.what)
            result = TVDIResult(
                data=np.array([], dtype=np.float64),
                metadata=ResultMetadata(index=index, scale=scale),
                warnings=[exc.what],
                error=str(exc),
            )
        else:
            result.metadata = result.metadata.model_copy(update={"index": index})
        results.append(result)

    failed = sum(1 for r in results if not r.ok)
    logger.info(
        "Processed %d TVDI pairs (%d failed)", len(results), failed
    )
    return results
