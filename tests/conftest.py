"""Shared test fixtures for the TVDI test suite."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import numpy.typing as npt
import pytest
from rasterio.transform import from_origin

from tvdi.config import Config
from tvdi.raster.array import ArrayField
from tvdi.raster.region import Region

TEST_CRS = "EPSG:32722"
GRID_SIZE = 100

FieldFactory = Callable[..., ArrayField]


@pytest.fixture
def test_config() -> Config:
    """Return a fresh default Config instance for test isolation."""
    return Config()


@pytest.fixture
def make_field() -> FieldFactory:
    """Return a factory building unit-pixel fields anchored at the origin."""

    def _make(values: npt.ArrayLike, name: str = "b1") -> ArrayField:
        array = np.asarray(values, dtype=np.float64)
        return ArrayField(
            array,
            transform=from_origin(0.0, float(array.shape[0]), 1.0, 1.0),
            crs=TEST_CRS,
            name=name,
        )

    return _make


@pytest.fixture
def full_region() -> Region:
    """Region covering the whole 100 x 100 test grid."""
    return Region.from_bounds(0.0, 0.0, float(GRID_SIZE), float(GRID_SIZE), crs=TEST_CRS)


@pytest.fixture
def ramp_ndvi() -> npt.NDArray[np.float64]:
    """NDVI increasing smoothly over (0, 1), about 100 pixels per interval."""
    return np.linspace(0.005, 0.995, GRID_SIZE * GRID_SIZE).reshape(
        GRID_SIZE, GRID_SIZE
    )


@pytest.fixture
def affine_scene(
    make_field: FieldFactory, ramp_ndvi: npt.NDArray[np.float64]
) -> tuple[ArrayField, ArrayField]:
    """Scene where LST = 300 + 10 * NDVI exactly."""
    return (
        make_field(ramp_ndvi, name="NDVI"),
        make_field(300.0 + 10.0 * ramp_ndvi, name="LST"),
    )


@pytest.fixture
def triangle_scene(
    make_field: FieldFactory, ramp_ndvi: npt.NDArray[np.float64]
) -> tuple[ArrayField, ArrayField]:
    """Scene filling the NDVI/LST triangle between 295 K and 320 - 20*NDVI."""
    rng = np.random.default_rng(7)
    wetness = rng.uniform(0.0, 1.0, size=ramp_ndvi.shape)
    dry_edge = 320.0 - 20.0 * ramp_ndvi
    lst = 295.0 + wetness * (dry_edge - 295.0)
    return make_field(ramp_ndvi, name="NDVI"), make_field(lst, name="LST")
