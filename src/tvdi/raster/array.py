"""In-memory numpy implementation of ``RasterField``.

Pixels are stored as a read-only ``float64`` array where NaN marks a
masked pixel. Grid geometry is an affine transform plus a CRS string,
so rasterio can rasterise regions, resample and reproject fields.
"""

from __future__ import annotations

import logging
import math
import operator
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import pandas as pd
import rasterio
from affine import Affine
from rasterio.errors import RasterioError, RasterioIOError
from rasterio.transform import array_bounds, from_origin
from rasterio.warp import Resampling, calculate_default_transform, reproject

from tvdi.exceptions import RasterError
from tvdi.raster.base import DEFAULT_MAX_PIXELS, RasterField

if TYPE_CHECKING:
    import xarray as xr

    from tvdi.raster.region import Region

logger = logging.getLogger(__name__)

_BinaryOp = Callable[[Any, Any], Any]


class ArrayField(RasterField):
    """Single-band raster held in memory as a numpy array.

    Non-finite input values are treated as masked.

    Args:
        data: 2D array of pixel values.
        transform: Affine transform of the grid (pixel corner based).
        crs: CRS identifier understood by rasterio.
        name: Band name.

    Example:
        >>> import numpy as np
        >>> from rasterio.transform import from_origin
        >>> lst = ArrayField(
        ...     np.full((4, 4), 300.0),
        ...     transform=from_origin(0, 4, 1, 1),
        ...     crs="EPSG:32722",
        ...     name="LST",
        ... )
        >>> lst.resolution
        1.0
    """

    __slots__ = ("_crs", "_data", "_name", "_transform")

    def __init__(
        self,
        data: npt.ArrayLike,
        transform: Affine,
        crs: str = "EPSG:4326",
        name: str = "b1",
    ) -> None:
        array = np.array(data, dtype=np.float64)
        if array.ndim != 2:
            raise RasterError(
                what="Invalid raster data",
                cause=f"Expected a 2D array, got {array.ndim} dimensions",
                fix="Select a single band before building the field",
            )
        array[~np.isfinite(array)] = np.nan
        array.setflags(write=False)
        self._data = array
        self._transform = transform
        self._crs = crs
        self._name = name

    def __repr__(self) -> str:
        valid = int(np.count_nonzero(self.valid))
        return (
            f"ArrayField(name={self._name!r}, shape={self.shape}, "
            f"crs={self._crs!r}, resolution={self.resolution:g}, valid={valid})"
        )

    # ── Grid properties ────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def crs(self) -> str:
        return self._crs

    @property
    def transform(self) -> Affine:
        return self._transform

    @property
    def shape(self) -> tuple[int, int]:
        height, width = self._data.shape
        return (height, width)

    @property
    def resolution(self) -> float:
        return float(abs(self._transform.a))

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Grid extent ``(west, south, east, north)``."""
        height, width = self.shape
        west, south, east, north = array_bounds(height, width, self._transform)
        return (float(west), float(south), float(east), float(north))

    @property
    def data(self) -> npt.NDArray[np.float64]:
        """Read-only pixel array, NaN where masked."""
        return self._data

    @property
    def valid(self) -> npt.NDArray[np.bool_]:
        """Boolean array, ``True`` for unmasked pixels."""
        return np.isfinite(self._data)

    def to_numpy(self) -> npt.NDArray[np.float64]:
        return self._data.copy()

    def same_grid(self, other: RasterField) -> bool:
        """Return ``True`` when *other* shares shape, transform and CRS."""
        return (
            self.shape == other.shape
            and self._crs == other.crs
            and self._transform.almost_equals(other.transform)
        )

    def _derive(
        self,
        data: npt.NDArray[np.float64],
        name: str | None = None,
    ) -> ArrayField:
        return ArrayField(
            data,
            transform=self._transform,
            crs=self._crs,
            name=self._name if name is None else name,
        )

    def _check_aligned(self, other: RasterField) -> None:
        if not self.same_grid(other):
            raise RasterError(
                what=f"Fields {self._name!r} and {other.name!r} are not aligned",
                cause=(
                    f"Grids differ: {self.shape} {self._crs} vs "
                    f"{other.shape} {other.crs}"
                ),
                fix="Reproject both fields onto a common grid with align_to()",
            )

    def rename(self, name: str) -> ArrayField:
        return self._derive(self._data, name=name)

    # ── Arithmetic ─────────────────────────────────────────────────

    def _binary(self, other: RasterField | float, op: _BinaryOp) -> ArrayField:
        if isinstance(other, RasterField):
            self._check_aligned(other)
            rhs: Any = other.to_numpy()
        else:
            rhs = float(other)
        with np.errstate(all="ignore"):
            result = op(self._data, rhs)
        return self._derive(result)

    def __add__(self, other: RasterField | float) -> ArrayField:
        return self._binary(other, operator.add)

    def __radd__(self, other: float) -> ArrayField:
        return self._binary(other, operator.add)

    def __sub__(self, other: RasterField | float) -> ArrayField:
        return self._binary(other, operator.sub)

    def __rsub__(self, other: float) -> ArrayField:
        return self._binary(other, lambda a, b: b - a)

    def __mul__(self, other: RasterField | float) -> ArrayField:
        return self._binary(other, operator.mul)

    def __rmul__(self, other: float) -> ArrayField:
        return self._binary(other, operator.mul)

    def divide(self, other: RasterField, epsilon: float = 0.0) -> ArrayField:
        self._check_aligned(other)
        denominator = other.to_numpy()
        with np.errstate(all="ignore"):
            quotient = self._data / denominator
        degenerate = np.abs(denominator) <= epsilon
        quotient[degenerate | ~np.isfinite(quotient)] = np.nan
        return self._derive(quotient)

    # ── Masking and comparison ─────────────────────────────────────

    def _compare(self, value: float, op: _BinaryOp) -> ArrayField:
        with np.errstate(invalid="ignore"):
            hits = op(self._data, value).astype(np.float64)
        return self._derive(np.where(self.valid, hits, np.nan))

    def gt(self, value: float) -> ArrayField:
        return self._compare(value, operator.gt)

    def lt(self, value: float) -> ArrayField:
        return self._compare(value, operator.lt)

    def ge(self, value: float) -> ArrayField:
        return self._compare(value, operator.ge)

    def logical_and(self, other: RasterField) -> ArrayField:
        self._check_aligned(other)
        rhs = other.to_numpy()
        both_valid = self.valid & np.isfinite(rhs)
        hits = ((self._data != 0) & (rhs != 0)).astype(np.float64)
        return self._derive(np.where(both_valid, hits, np.nan))

    def update_mask(self, mask: RasterField) -> ArrayField:
        self._check_aligned(mask)
        values = mask.to_numpy()
        keep = np.isfinite(values) & (values != 0)
        return self._derive(np.where(keep, self._data, np.nan))

    def self_mask(self) -> ArrayField:
        return self._derive(np.where(self._data != 0, self._data, np.nan))

    def clip(self, region: Region) -> ArrayField:
        inside = region.to_mask(self.shape, self._transform, self._crs)
        return self._derive(np.where(inside, self._data, np.nan))

    def clamp(self, low: float, high: float) -> ArrayField:
        return self._derive(np.clip(self._data, low, high))

    # ── Reprojection ───────────────────────────────────────────────

    def _warp_onto(
        self,
        shape: tuple[int, int],
        transform: Affine,
        crs: str,
    ) -> ArrayField:
        destination = np.full(shape, np.nan, dtype=np.float64)
        try:
            reproject(
                source=self._data.copy(),
                destination=destination,
                src_transform=self._transform,
                src_crs=self._crs,
                src_nodata=np.nan,
                dst_transform=transform,
                dst_crs=crs,
                dst_nodata=np.nan,
                resampling=Resampling.nearest,
            )
        except (RasterioError, ValueError) as exc:
            raise RasterError(
                what=f"Cannot resample field {self._name!r}",
                cause=f"{self._crs} -> {crs}: {exc}",
                fix="Check that both CRS strings are valid, e.g. 'EPSG:4326'",
            ) from None
        return ArrayField(destination, transform=transform, crs=crs, name=self._name)

    def reproject(self, crs: str, resolution: float) -> ArrayField:
        """Warp the field to *crs* at *resolution* (nearest neighbour).

        Raises:
            RasterError: If either CRS is invalid or the warp fails.
        """
        height, width = self.shape
        west, south, east, north = self.bounds
        try:
            dst_transform, dst_width, dst_height = calculate_default_transform(
                self._crs,
                crs,
                width,
                height,
                west,
                south,
                east,
                north,
                resolution=resolution,
            )
        except (RasterioError, ValueError) as exc:
            raise RasterError(
                what=f"Cannot reproject field {self._name!r}",
                cause=f"{self._crs} -> {crs} at {resolution:g}: {exc}",
                fix="Check that both CRS strings are valid, e.g. 'EPSG:4326'",
            ) from None
        warped = self._warp_onto((dst_height, dst_width), dst_transform, crs)
        logger.debug(
            "Reprojected %s from %s @ %g to %s @ %g (%s -> %s)",
            self._name,
            self._crs,
            self.resolution,
            crs,
            resolution,
            self.shape,
            warped.shape,
        )
        return warped

    def align_to(self, other: RasterField) -> ArrayField:
        """Resample the field onto *other*'s grid (nearest neighbour)."""
        if self.same_grid(other):
            return self
        return self._warp_onto(other.shape, other.transform, other.crs)

    def _at_scale(self, scale: float) -> ArrayField:
        if not scale > 0:
            raise RasterError(
                what="Invalid reduction scale",
                cause=f"Scale must be positive, got {scale}",
                fix="Pass the pixel size in CRS units",
            )
        if math.isclose(scale, self.resolution, rel_tol=1e-9):
            return self
        return self.reproject(self._crs, scale)

    # ── Region-restricted reductions ───────────────────────────────

    def _region_pixels(
        self,
        region: Region,
        scale: float,
        max_pixels: int,
    ) -> tuple[ArrayField, npt.NDArray[np.bool_]]:
        field = self._at_scale(scale)
        inside = region.to_mask(field.shape, field.transform, field.crs)
        pixel_count = int(np.count_nonzero(inside))
        if pixel_count > max_pixels:
            raise RasterError(
                what=f"Too many pixels in reduction over {self._name!r}",
                cause=f"Region covers {pixel_count} pixels, limit is {max_pixels}",
                fix="Increase max_pixels in Config or use a coarser scale",
            )
        return field, inside

    def _region_values(
        self,
        region: Region,
        scale: float,
        max_pixels: int,
    ) -> npt.NDArray[np.float64]:
        field, inside = self._region_pixels(region, scale, max_pixels)
        return field.data[inside & field.valid]

    def count_distinct(
        self,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> int:
        values = self._region_values(region, scale, max_pixels)
        return int(np.unique(values).size)

    def frequency_histogram(
        self,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> pd.Series:
        values = self._region_values(region, scale, max_pixels)
        distinct, counts = np.unique(values, return_counts=True)
        return pd.Series(
            counts,
            index=pd.Index(distinct, dtype=np.float64, name=self._name),
            name="count",
        )

    def mean(
        self,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> float:
        values = self._region_values(region, scale, max_pixels)
        if values.size == 0:
            return float("nan")
        return float(values.mean())

    def linear_fit(
        self,
        dependent: RasterField,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> tuple[float, float]:
        self._check_aligned(dependent)
        if not isinstance(dependent, ArrayField):
            dependent = ArrayField(
                dependent.to_numpy(),
                transform=dependent.transform,
                crs=dependent.crs,
                name=dependent.name,
            )
        x_field, inside = self._region_pixels(region, scale, max_pixels)
        y_field = dependent._at_scale(scale)
        selected = inside & x_field.valid & y_field.valid
        x = x_field.data[selected]
        y = y_field.data[selected]

        if x.size < 2 or np.ptp(x) == 0:
            return (float("nan"), float("nan"))

        slope, offset = np.polyfit(x, y, 1)
        return (float(offset), float(slope))

    # ── Compositing ────────────────────────────────────────────────

    @classmethod
    def mosaic(
        cls,
        fields: Sequence[RasterField],
        template: RasterField | None = None,
    ) -> ArrayField:
        if not fields:
            if template is None:
                raise RasterError(
                    what="Cannot mosaic an empty list of fields",
                    cause="No fields and no template grid were given",
                    fix="Pass a template field to define the output grid",
                )
            return cls(
                np.full(template.shape, np.nan),
                transform=template.transform,
                crs=template.crs,
                name=template.name,
            )

        first = fields[0]
        composite = np.full(first.shape, np.nan, dtype=np.float64)
        for item in fields:
            if not (
                item.shape == first.shape
                and item.crs == first.crs
                and item.transform.almost_equals(first.transform)
            ):
                raise RasterError(
                    what="Cannot mosaic fields on different grids",
                    cause=f"{item.name!r} does not match {first.name!r}",
                    fix="Align all fields to a common grid first",
                )
            values = item.to_numpy()
            composite = np.where(np.isfinite(values), values, composite)
        return cls(composite, transform=first.transform, crs=first.crs, name=first.name)

    # ── I/O ────────────────────────────────────────────────────────

    @classmethod
    def from_geotiff(
        cls,
        path: str | Path,
        band: int = 1,
        name: str | None = None,
    ) -> ArrayField:
        """Read one band of a GeoTIFF; nodata pixels become masked."""
        resolved = Path(path).expanduser()
        try:
            with rasterio.open(resolved) as src:
                values = src.read(band, masked=True).astype(np.float64)
                transform = src.transform
                crs = src.crs
        except RasterioIOError as exc:
            raise RasterError(
                what="Cannot read raster file",
                cause=f"{resolved}: {exc}",
                fix="Check the path and that the file is a readable GeoTIFF",
            ) from None

        if crs is None:
            raise RasterError(
                what="Raster has no coordinate reference system",
                cause=f"{resolved} carries no CRS metadata",
                fix="Assign a CRS to the file (e.g. with gdal_edit.py -a_srs)",
            )
        return cls(
            values.filled(np.nan),
            transform=transform,
            crs=crs.to_string(),
            name=name or resolved.stem,
        )

    @classmethod
    def from_xarray(cls, array: xr.DataArray, crs: str | None = None) -> ArrayField:
        """Build a field from a 2D ``DataArray`` with regular ``x``/``y`` coords.

        Coordinates are pixel centres; ``y`` must be descending.
        """
        if array.ndim != 2 or "x" not in array.coords or "y" not in array.coords:
            raise RasterError(
                what="Unsupported DataArray layout",
                cause=f"Expected 2D (y, x) coordinates, got dims {array.dims}",
                fix="Select a single band and name spatial dims 'y' and 'x'",
            )
        xs = array.coords["x"].values
        ys = array.coords["y"].values
        if xs.size < 2 or ys.size < 2:
            raise RasterError(
                what="Unsupported DataArray layout",
                cause="At least two pixels per axis are needed to infer the grid",
                fix="Pass a larger array or build ArrayField directly",
            )
        x_res = float(xs[1] - xs[0])
        y_res = float(ys[0] - ys[1])
        transform = from_origin(
            float(xs[0]) - x_res / 2, float(ys[0]) + y_res / 2, x_res, y_res
        )
        return cls(
            array.transpose("y", "x").values,
            transform=transform,
            crs=crs or str(array.attrs.get("crs", "EPSG:4326")),
            name=str(array.name) if array.name is not None else "b1",
        )

    def to_xarray(self) -> xr.DataArray:
        """Export as a ``DataArray`` with pixel-centre ``x``/``y`` coords."""
        import xarray as xr

        height, width = self.shape
        cols = np.arange(width) + 0.5
        rows = np.arange(height) + 0.5
        xs = self._transform.c + cols * self._transform.a
        ys = self._transform.f + rows * self._transform.e
        return xr.DataArray(
            self.to_numpy(),
            coords={"y": ys, "x": xs},
            dims=("y", "x"),
            name=self._name,
            attrs={"crs": self._crs, "transform": tuple(self._transform)[:6]},
        )
