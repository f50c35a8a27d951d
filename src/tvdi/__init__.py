"""TVDI — Temperature–Vegetation Dryness Index from NDVI and LST rasters.

Example:
    >>> import tvdi
    >>>
    >>> roi = tvdi.Region.from_file("roi.geojson")  # doctest: +SKIP
    >>> ndvi = tvdi.ArrayField.from_geotiff("ndvi.tif", name="NDVI")  # doctest: +SKIP
    >>> lst = tvdi.ArrayField.from_geotiff("lst.tif", name="LST")  # doctest: +SKIP
    >>> result = tvdi.single_tvdi(ndvi, lst, roi, scale=0.01)  # doctest: +SKIP
    >>> result.to_geotiff("tvdi.tif")  # doctest: +SKIP
"""

from tvdi.__about__ import __version__
from tvdi._types import FittedParameters, TVDIDiagnostics
from tvdi.api import collection_tvdi, single_tvdi
from tvdi.config import Config, configure
from tvdi.exceptions import (
    InputValidationError,
    InsufficientDataError,
    RasterError,
    TVDIError,
)
from tvdi.raster import ArrayField, RasterField, Region
from tvdi.results import ResultMetadata, TVDIResult, results_to_dataframe

__all__ = [
    # Version
    "__version__",
    # Entry points
    "collection_tvdi",
    "single_tvdi",
    # Raster substrate
    "ArrayField",
    "RasterField",
    "Region",
    # Configuration
    "Config",
    "configure",
    # Results
    "FittedParameters",
    "ResultMetadata",
    "TVDIDiagnostics",
    "TVDIResult",
    "results_to_dataframe",
    # Exceptions
    "InputValidationError",
    "InsufficientDataError",
    "RasterError",
    "TVDIError",
]
