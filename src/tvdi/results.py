"""Result object model for TVDI outputs."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import pandas as pd
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    import xarray as xr

    from tvdi._types import FittedParameters, TVDIDiagnostics
    from tvdi.raster.base import RasterField

# ── TVDI interpretation thresholds ────────────────────────────────
_TVDI_WET_THRESHOLD: float = 0.2
_TVDI_MOIST_THRESHOLD: float = 0.4
_TVDI_NORMAL_THRESHOLD: float = 0.6
_TVDI_DRY_THRESHOLD: float = 0.8


def _interpret_tvdi(value: float) -> str:
    """Return plain-language interpretation of a TVDI value.

    Args:
        value: TVDI value in ``[0, 1]``.

    Returns:
        Human-readable moisture class.

    Example:
        >>> _interpret_tvdi(0.1)
        'wet'
        >>> _interpret_tvdi(0.85)
        'very dry'
    """
    if math.isnan(value):
        return "no data"
    if value < _TVDI_WET_THRESHOLD:
        return "wet"
    if value < _TVDI_MOIST_THRESHOLD:
        return "moist"
    if value < _TVDI_NORMAL_THRESHOLD:
        return "normal"
    if value < _TVDI_DRY_THRESHOLD:
        return "dry"
    return "very dry"


class ResultMetadata(BaseModel):
    """Metadata for TVDI results.

    Uses Pydantic (not dataclass) for JSON serialization in exports.

    Attributes:
        index: Position of the pair in a processed sequence, if any.
        crs: Coordinate reference system of the output grid.
        bounds: Grid bounding box ``{"minx", "miny", "maxx", "maxy"}``.
        scale: Pixel size in CRS units used for reductions.
        bands: Band names of the inputs (NDVI, LST).
        retained_intervals: NDVI intervals that passed the distinct-value test.

    Example:
        >>> meta = ResultMetadata(index=2, crs="EPSG:4326")
        >>> meta.index
        2
    """

    index: int | None = None
    crs: str = ""
    bounds: dict[str, float] = Field(default_factory=dict)
    scale: float | None = None
    bands: list[str] = Field(default_factory=list)
    retained_intervals: int = 0


@dataclass
class TVDIResult:
    """TVDI output for one NDVI/LST pair.

    Dataclass (not Pydantic) because numpy arrays are the primary payload.
    A failed pair carries an empty ``data`` array, zero confidence and
    the failure message in ``error``.

    Attributes:
        data: TVDI array ``(height, width)``, NaN where invalid; empty on failure.
        confidence: Fraction of region pixels holding a valid TVDI value.
        metadata: Grid and processing metadata.
        warnings: Human-readable quality warnings.
        parameters: Fitted dry/wet edge parameters.
        raster: Output raster field (``None`` on failure).
        diagnostics: Intermediate products when run with ``debug=True``.
        error: Failure message, empty on success.

    Example:
        >>> result = TVDIResult(data=np.array([[0.2, 0.6]]), confidence=1.0)
        >>> result.ok
        True
        >>> round(result.mean_tvdi, 2)
        0.4
    """

    data: npt.NDArray[np.floating[Any]]
    confidence: float = 0.0
    metadata: ResultMetadata = field(default_factory=ResultMetadata)
    warnings: list[str] = field(default_factory=list)
    parameters: FittedParameters | None = None
    raster: RasterField | None = field(default=None, repr=False)
    diagnostics: TVDIDiagnostics | None = field(default=None, repr=False)
    error: str = ""

    @property
    def ok(self) -> bool:
        """``True`` when the pair produced a TVDI field."""
        return not self.error and self.data.size > 0

    @property
    def index(self) -> int | None:
        """Sequence position of the pair (``None`` for single runs)."""
        return self.metadata.index

    @property
    def mean_tvdi(self) -> float:
        """Mean TVDI over valid pixels (NaN if none)."""
        if self.data.size == 0 or np.all(np.isnan(self.data)):
            return float("nan")
        return float(np.nanmean(self.data))

    @property
    def interpretation(self) -> str:
        """Moisture class of the mean TVDI."""
        return _interpret_tvdi(self.mean_tvdi)

    def __repr__(self) -> str:
        """Return narrative summary for interactive display.

        Shows index, status, fitted edges, mean TVDI with interpretation
        and warnings. Does NOT show raw arrays.
        """
        lines: list[str] = [f"{type(self).__name__}("]
        if self.index is not None:
            lines.append(f"  index: {self.index}")

        if not self.ok:
            lines.append(f"  error: {self.error or 'no data'}")
        else:
            if self.parameters is not None:
                p = self.parameters
                lines.append(
                    f"  dry edge: LST = {p.offset_a:.3f} + ({p.slope_b:.3f}) * NDVI"
                )
                lines.append(f"  wet edge: LST_min = {p.lst_min:.3f}")
            lines.append(f"  confidence: {self.confidence:.2f}")
            if math.isnan(self.mean_tvdi):
                lines.append("  mean_tvdi: N/A (no valid data)")
            else:
                lines.append(
                    f"  mean_tvdi: {self.mean_tvdi:.2f} — {self.interpretation}"
                )

        for w in self.warnings:
            lines.append(f"  ⚠ {w}")

        lines.append(")")
        return "\n".join(lines)

    def to_dataframe(self) -> pd.DataFrame:
        """Export a one-row summary of the result.

        Returns:
            pandas DataFrame with edge parameters and TVDI statistics.
        """
        p = self.parameters
        row: dict[str, Any] = {
            "index": self.index,
            "ok": self.ok,
            "offset_a": p.offset_a if p is not None else float("nan"),
            "slope_b": p.slope_b if p is not None else float("nan"),
            "lst_min": p.lst_min if p is not None else float("nan"),
            "dry_pixels": p.dry_pixel_count if p is not None else 0,
            "wet_pixels": p.wet_pixel_count if p is not None else 0,
            "retained_intervals": self.metadata.retained_intervals,
            "mean_tvdi": self.mean_tvdi,
            "tvdi_interpretation": self.interpretation,
            "confidence": self.confidence,
            "crs": self.metadata.crs,
            "error": self.error,
        }
        if self.data.size > 0 and not np.all(np.isnan(self.data)):
            row["tvdi_min"] = float(np.nanmin(self.data))
            row["tvdi_max"] = float(np.nanmax(self.data))
            row["tvdi_std"] = float(np.nanstd(self.data))
        return pd.DataFrame([row])

    def to_xarray(self) -> xr.DataArray:
        """Export the TVDI field as an xarray ``DataArray``.

        Raises:
            ValueError: If the result holds no field.
        """
        from tvdi.raster.array import ArrayField

        if self.raster is None:
            msg = "Cannot export a failed result to xarray"
            raise ValueError(msg)
        output = self.raster
        if not isinstance(output, ArrayField):
            output = ArrayField(
                output.to_numpy(),
                transform=output.transform,
                crs=output.crs,
                name=output.name,
            )
        array = output.to_xarray()
        array.attrs.update(self.metadata.model_dump(exclude={"bounds", "bands"}))
        return array

    def to_geotiff(self, path: str | Path) -> Path:
        """Export the TVDI field to a single-band float32 GeoTIFF.

        Invalid pixels are written as NaN nodata.

        Args:
            path: Output file path (will be created/overwritten).

        Returns:
            Path object pointing to the written file.

        Raises:
            ValueError: If the result holds no field.
        """
        import rasterio

        path = Path(path)

        if self.raster is None or self.data.size == 0:
            msg = "Cannot export empty result to GeoTIFF"
            raise ValueError(msg)

        height, width = self.raster.shape
        with rasterio.open(
            path,
            "w",
            driver="GTiff",
            height=height,
            width=width,
            count=1,
            dtype="float32",
            crs=self.raster.crs,
            transform=self.raster.transform,
            nodata=np.nan,
        ) as dst:
            dst.write(self.data.astype(np.float32), 1)
            dst.set_band_description(1, "TVDI")

        return path

    def to_png(self, path: str | Path) -> Path:
        """Export a TVDI map to PNG.

        Args:
            path: Output file path.

        Returns:
            Path object pointing to the written file.
        """
        import matplotlib

        matplotlib.use("Agg")  # Non-interactive backend for file output
        import matplotlib.pyplot as plt

        path = Path(path)

        fig, ax = plt.subplots(figsize=(10, 8))

        title = "TVDI"
        if self.index is not None:
            title += f" #{self.index}"
        if not math.isnan(self.mean_tvdi):
            title += f"\nMean TVDI: {self.mean_tvdi:.2f} ({self.interpretation})"
        ax.set_title(title)

        if self.data.size == 0:
            ax.text(
                0.5,
                0.5,
                self.error or "No data available",
                ha="center",
                va="center",
                fontsize=12,
                wrap=True,
                transform=ax.transAxes,
            )
            ax.set_xlim(0, 1)
            ax.set_ylim(0, 1)
        else:
            im = ax.imshow(self.data, cmap="RdYlGn_r", vmin=0.0, vmax=1.0)
            plt.colorbar(im, ax=ax, label="TVDI")

        plt.tight_layout()
        plt.savefig(path, dpi=150, bbox_inches="tight")
        plt.close(fig)

        return path


def results_to_dataframe(results: Sequence[TVDIResult]) -> pd.DataFrame:
    """Summarise a sequence of results, one row per pair.

    Example:
        >>> results_to_dataframe([]).empty
        True
    """
    if not results:
        return pd.DataFrame()
    return pd.concat([r.to_dataframe() for r in results], ignore_index=True)
