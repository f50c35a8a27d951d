"""Raster substrate: field interface, numpy backend and region geometry."""

from tvdi.raster.array import ArrayField
from tvdi.raster.base import RasterField
from tvdi.raster.region import Region

__all__ = ["ArrayField", "RasterField", "Region"]
