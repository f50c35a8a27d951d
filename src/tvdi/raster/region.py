"""Region of interest geometry.

A ``Region`` restricts which pixels take part in reductions and which
pixels survive ``clip``. The geometry is a shapely ``Polygon`` or
``MultiPolygon``; area-of-interest files are read with geopandas and
rasterised with rasterio, a pixel belonging to the region when its
centre lies inside.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import geopandas as gpd
import numpy as np
import numpy.typing as npt
from rasterio.features import geometry_mask
from shapely.geometry import box, mapping
from shapely.geometry import shape as shape_from_geojson
from shapely.geometry.base import BaseGeometry

from tvdi.exceptions import RasterError

if TYPE_CHECKING:
    from affine import Affine

logger = logging.getLogger(__name__)

_SUPPORTED_TYPES = frozenset({"Polygon", "MultiPolygon"})


@dataclass(frozen=True)
class Region:
    """Immutable polygonal region of interest.

    Regions are hashable and compare equal when their geometry and CRS
    match exactly.

    Args:
        geometry: Shapely polygon, or a GeoJSON ``Polygon`` /
            ``MultiPolygon`` mapping.
        crs: CRS of the geometry coordinates.

    Example:
        >>> roi = Region.from_bounds(-53.5, -29.5, -52.5, -28.5)
        >>> roi.geometry.geom_type
        'Polygon'
    """

    geometry: BaseGeometry
    crs: str = "EPSG:4326"
    _cache: dict[Any, npt.NDArray[np.bool_]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        geometry = self.geometry
        if isinstance(geometry, Mapping):
            try:
                geometry = shape_from_geojson(geometry)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise RasterError(
                    what="Unsupported region geometry",
                    cause=f"Cannot parse GeoJSON geometry: {exc}",
                    fix="Pass a GeoJSON Polygon/MultiPolygon, Feature or FeatureCollection",
                ) from None
        if not isinstance(geometry, BaseGeometry):
            raise RasterError(
                what="Unsupported region geometry",
                cause=f"Expected a geometry, got {type(geometry).__name__}",
                fix="Pass a shapely polygon or a GeoJSON mapping",
            )
        if geometry.geom_type not in _SUPPORTED_TYPES:
            raise RasterError(
                what="Unsupported region geometry",
                cause=f"Expected Polygon or MultiPolygon, got {geometry.geom_type!r}",
                fix="Pass a GeoJSON Polygon/MultiPolygon, Feature or FeatureCollection",
            )
        if geometry.is_empty:
            raise RasterError(
                what="Unsupported region geometry",
                cause="Geometry has no coordinates",
                fix="Pass a non-empty polygon",
            )
        object.__setattr__(self, "geometry", geometry)

    # ── Constructors ───────────────────────────────────────────────

    @classmethod
    def from_bounds(
        cls,
        minx: float,
        miny: float,
        maxx: float,
        maxy: float,
        crs: str = "EPSG:4326",
    ) -> Region:
        """Build a rectangular region from a bounding box."""
        if minx >= maxx or miny >= maxy:
            raise RasterError(
                what="Invalid region bounds",
                cause=f"Bounds ({minx}, {miny}, {maxx}, {maxy}) are empty",
                fix="Ensure minx < maxx and miny < maxy",
            )
        return cls(geometry=box(minx, miny, maxx, maxy), crs=crs)

    @classmethod
    def from_frame(cls, frame: gpd.GeoDataFrame, crs: str = "EPSG:4326") -> Region:
        """Dissolve the polygons of a GeoDataFrame into one region.

        The frame's own CRS wins; *crs* is used only when it has none.
        Non-polygonal features are ignored.
        """
        polygons = frame.geometry[frame.geometry.geom_type.isin(_SUPPORTED_TYPES)]
        if polygons.empty:
            raise RasterError(
                what="Unsupported region geometry",
                cause="The features contain no polygons",
                fix="Provide at least one Polygon or MultiPolygon feature",
            )
        frame_crs = frame.crs.to_string() if frame.crs is not None else crs
        return cls(geometry=polygons.union_all(), crs=frame_crs)

    @classmethod
    def from_geojson(cls, obj: dict[str, Any], crs: str = "EPSG:4326") -> Region:
        """Build a region from a GeoJSON geometry, Feature or FeatureCollection.

        Polygons of a FeatureCollection are dissolved into one geometry.
        """
        obj_type = obj.get("type")
        if obj_type == "FeatureCollection":
            return cls.from_frame(gpd.GeoDataFrame.from_features(obj), crs=crs)
        if obj_type == "Feature":
            return cls.from_frame(gpd.GeoDataFrame.from_features([obj]), crs=crs)
        return cls(geometry=obj, crs=crs)

    @classmethod
    def from_file(cls, path: str | Path, crs: str = "EPSG:4326") -> Region:
        """Load a region from any vector file geopandas can read.

        GeoJSON, Shapefile and GeoPackage all work. The CRS stored in the
        file is used; *crs* applies only to files without one.
        """
        resolved = Path(path).expanduser()
        if not resolved.exists():
            raise RasterError(
                what="Cannot read region file",
                cause=f"File not found: {resolved}",
                fix="Check the vector file path",
            )
        try:
            frame = gpd.read_file(resolved)
        except (OSError, RuntimeError, ValueError) as exc:
            raise RasterError(
                what="Invalid region file format",
                cause=f"Cannot read {resolved}: {exc}",
                fix="Ensure the file is a valid GeoJSON, Shapefile or GeoPackage",
            ) from None
        region = cls.from_frame(frame, crs=crs)
        logger.debug("Loaded region from %s (crs=%s)", resolved, region.crs)
        return region

    # ── Geometry helpers ───────────────────────────────────────────

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Bounding box ``(minx, miny, maxx, maxy)`` in the region CRS."""
        minx, miny, maxx, maxy = self.geometry.bounds
        return (float(minx), float(miny), float(maxx), float(maxy))

    def geometry_in(self, crs: str) -> BaseGeometry:
        """Return the geometry expressed in *crs*."""
        if crs == self.crs:
            return self.geometry
        return gpd.GeoSeries([self.geometry], crs=self.crs).to_crs(crs).iloc[0]

    def to_mask(
        self,
        shape: tuple[int, int],
        transform: Affine,
        crs: str,
    ) -> npt.NDArray[np.bool_]:
        """Rasterise the region onto a grid.

        Args:
            shape: ``(height, width)`` of the grid.
            transform: Affine transform of the grid.
            crs: CRS of the grid.

        Returns:
            Boolean array, ``True`` for pixels inside the region.
        """
        key = (tuple(shape), tuple(transform), crs)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        inside: npt.NDArray[np.bool_] = geometry_mask(
            [mapping(self.geometry_in(crs))],
            out_shape=shape,
            transform=transform,
            invert=True,
        )
        inside.setflags(write=False)
        self._cache[key] = inside
        logger.debug(
            "Rasterised region onto %s grid: %d pixels inside",
            shape,
            int(np.count_nonzero(inside)),
        )
        return inside
