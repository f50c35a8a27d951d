"""Raster field interface contract.

Defines the ``RasterField`` abstract base class: the capabilities the
TVDI pipeline needs from a raster backend. Masking, comparison,
region-restricted reductions and compositing are all expressed here so
the pipeline never depends on how a backend stores or evaluates pixels.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    import numpy.typing as npt
    import pandas as pd
    from affine import Affine

    from tvdi.raster.region import Region

DEFAULT_MAX_PIXELS = 1_000_000_000


class RasterField(ABC):
    """A masked, single-band 2D field on a georeferenced grid.

    Every operation returns a new field; implementations must never
    mutate ``self`` or their arguments. Masked (invalid) pixels
    propagate through comparisons and arithmetic.

    Mask semantics follow the usual raster convention: a mask field
    selects pixels where it is valid *and* non-zero.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Band name."""
        ...

    @property
    @abstractmethod
    def crs(self) -> str:
        """Coordinate reference system identifier (e.g. ``EPSG:4326``)."""
        ...

    @property
    @abstractmethod
    def resolution(self) -> float:
        """Pixel size in CRS units."""
        ...

    @property
    @abstractmethod
    def shape(self) -> tuple[int, int]:
        """Grid ``(height, width)``."""
        ...

    @property
    @abstractmethod
    def transform(self) -> Affine:
        """Affine transform mapping pixel to CRS coordinates."""
        ...

    @abstractmethod
    def to_numpy(self) -> npt.NDArray[np.float64]:
        """Return pixel values as a float array, NaN where masked."""
        ...

    @abstractmethod
    def rename(self, name: str) -> RasterField:
        """Return the same field under a new band name."""
        ...

    # ── Arithmetic ─────────────────────────────────────────────────

    @abstractmethod
    def __add__(self, other: RasterField | float) -> RasterField: ...

    @abstractmethod
    def __sub__(self, other: RasterField | float) -> RasterField: ...

    @abstractmethod
    def __mul__(self, other: RasterField | float) -> RasterField: ...

    @abstractmethod
    def divide(self, other: RasterField, epsilon: float = 0.0) -> RasterField:
        """Divide by *other*, masking pixels where ``|other| <= epsilon``.

        Never produces infinities; degenerate pixels come out masked.
        """
        ...

    # ── Masking and comparison ─────────────────────────────────────

    @abstractmethod
    def update_mask(self, mask: RasterField) -> RasterField:
        """Keep pixels where *mask* is valid and non-zero; mask the rest."""
        ...

    @abstractmethod
    def self_mask(self) -> RasterField:
        """Mask pixels whose value is zero."""
        ...

    @abstractmethod
    def gt(self, value: float) -> RasterField:
        """Return 1 where ``self > value``, 0 where not, masked where invalid."""
        ...

    @abstractmethod
    def lt(self, value: float) -> RasterField:
        """Return 1 where ``self < value``, 0 where not, masked where invalid."""
        ...

    @abstractmethod
    def ge(self, value: float) -> RasterField:
        """Return 1 where ``self >= value``, 0 where not, masked where invalid."""
        ...

    @abstractmethod
    def logical_and(self, other: RasterField) -> RasterField:
        """Return 1 where both fields are non-zero, 0 elsewhere."""
        ...

    @abstractmethod
    def clip(self, region: Region) -> RasterField:
        """Mask pixels outside *region*."""
        ...

    @abstractmethod
    def clamp(self, low: float, high: float) -> RasterField:
        """Limit valid values to the closed interval ``[low, high]``."""
        ...

    # ── Region-restricted reductions ───────────────────────────────

    @abstractmethod
    def count_distinct(
        self,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> int:
        """Count distinct valid values inside *region* at *scale*."""
        ...

    @abstractmethod
    def frequency_histogram(
        self,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> pd.Series:
        """Return pixel counts per distinct value inside *region*.

        The index holds the distinct values as floats, sorted in
        ascending numeric order; values are pixel counts.
        """
        ...

    @abstractmethod
    def mean(
        self,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> float:
        """Arithmetic mean of valid values inside *region* (NaN if none)."""
        ...

    @abstractmethod
    def linear_fit(
        self,
        dependent: RasterField,
        region: Region,
        scale: float,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> tuple[float, float]:
        """Ordinary least-squares fit of *dependent* against ``self``.

        Only pixels valid in both fields and inside *region* take part.

        Returns:
            ``(offset, slope)``; both NaN when fewer than two samples
            exist or ``self`` is constant over them.
        """
        ...

    # ── Compositing ────────────────────────────────────────────────

    @classmethod
    @abstractmethod
    def mosaic(
        cls,
        fields: Sequence[RasterField],
        template: RasterField | None = None,
    ) -> RasterField:
        """Composite *fields* into one field.

        Each output pixel takes its value from the last field valid
        there. With no fields, return an all-masked field on
        *template*'s grid.
        """
        ...
