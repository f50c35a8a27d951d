"""End-to-end tests for single_tvdi and collection_tvdi."""

from __future__ import annotations

import tracemalloc
from collections.abc import Callable

import numpy as np
import pytest
from rasterio.transform import from_origin

from tvdi.api import collection_tvdi, single_tvdi
from tvdi.config import Config
from tvdi.exceptions import InputValidationError, InsufficientDataError, RasterError
from tvdi.raster.array import ArrayField
from tvdi.raster.region import Region

FieldFactory = Callable[..., ArrayField]


@pytest.fixture
def constant_scene(
    make_field: FieldFactory, ramp_ndvi: np.ndarray
) -> tuple[ArrayField, ArrayField]:
    """Scene with uniform LST, which leaves no usable interval."""
    return make_field(ramp_ndvi, name="NDVI"), make_field(
        np.full(ramp_ndvi.shape, 300.0), name="LST"
    )


@pytest.mark.unit
class TestSingleTVDI:
    """Tests for single_tvdi."""

    def test_affine_scene_fits_exact_dry_edge(
        self,
        affine_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = affine_scene
        result = single_tvdi(ndvi, lst, full_region, scale=1.0)

        assert result.ok
        assert result.parameters is not None
        assert result.parameters.slope_b == pytest.approx(10.0, abs=1e-6)
        assert result.parameters.offset_a == pytest.approx(300.0, abs=1e-6)

    def test_affine_scene_tvdi_is_one(
        self,
        affine_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        # Every pixel lies on the fitted dry edge.
        ndvi, lst = affine_scene
        result = single_tvdi(ndvi, lst, full_region, scale=1.0)
        valid = result.data[np.isfinite(result.data)]

        assert valid.size > 0
        assert np.mean(np.abs(valid - 1.0) < 1e-3) > 0.99
        assert (valid >= 0.0).all() and (valid <= 1.0).all()

    def test_triangle_scene(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        result = single_tvdi(ndvi, lst, full_region, scale=1.0)
        params = result.parameters

        assert params is not None
        assert -21.0 < params.slope_b < -18.5
        assert 318.0 < params.offset_a < 321.0
        assert 295.0 < params.lst_min < 296.0
        assert 0.4 < result.mean_tvdi < 0.6
        assert result.metadata.retained_intervals == 100
        assert result.confidence > 0.99
        assert result.warnings == []

    def test_positive_slope_warns(
        self,
        affine_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = affine_scene
        result = single_tvdi(ndvi, lst, full_region, scale=1.0)
        assert any("non-negative" in w for w in result.warnings)

    def test_constant_lst_raises(
        self,
        constant_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = constant_scene
        with pytest.raises(InsufficientDataError):
            single_tvdi(ndvi, lst, full_region, scale=1.0)

    def test_output_clipped_to_region(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
    ) -> None:
        ndvi, lst = triangle_scene
        region = Region.from_bounds(0, 0, 100, 50, crs="EPSG:32722")
        result = single_tvdi(ndvi, lst, region, scale=1.0)
        assert np.isnan(result.data[:50]).all()
        assert np.isfinite(result.data[50:]).any()

    def test_debug_attaches_diagnostics_without_changing_output(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        plain = single_tvdi(ndvi, lst, full_region, scale=1.0)
        debug = single_tvdi(ndvi, lst, full_region, scale=1.0, debug=True)

        np.testing.assert_array_equal(plain.data, debug.data)
        assert plain.diagnostics is None
        assert debug.diagnostics is not None
        assert len(debug.diagnostics.intervals) == 100
        assert len(debug.diagnostics.edge_masks) == 100
        assert debug.diagnostics.parameters == debug.parameters

    def test_debug_logs_edge_parameters(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        ndvi, lst = triangle_scene
        with caplog.at_level("INFO", logger="tvdi"):
            single_tvdi(ndvi, lst, full_region, scale=1.0, debug=True)
        assert "Dry edge b_slope" in caplog.text
        assert "Wet edge LST mean" in caplog.text

    def test_coarser_scale_resamples(self) -> None:
        # 200 x 200 at 1 unit keeps about 100 pixels per interval at scale 2.
        rng = np.random.default_rng(11)
        ndvi_values = np.linspace(0.005, 0.995, 40000).reshape(200, 200)
        lst_values = 295.0 + rng.uniform(0.0, 1.0, size=ndvi_values.shape) * (
            25.0 - 20.0 * ndvi_values
        )
        transform = from_origin(0.0, 200.0, 1.0, 1.0)
        ndvi = ArrayField(ndvi_values, transform=transform, crs="EPSG:32722")
        lst = ArrayField(lst_values, transform=transform, crs="EPSG:32722")
        region = Region.from_bounds(0, 0, 200, 200, crs="EPSG:32722")

        result = single_tvdi(ndvi, lst, region, scale=2.0)

        assert result.ok
        assert result.data.shape == (100, 100)
        assert result.metadata.scale == 2.0
        assert result.raster is not None
        assert result.raster.resolution == pytest.approx(2.0)

    def test_lst_on_other_grid_is_aligned(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        fine_lst = ArrayField(
            np.kron(lst.data, np.ones((2, 2))),
            transform=from_origin(0.0, 100.0, 0.5, 0.5),
            crs=lst.crs,
            name="LST",
        )
        result = single_tvdi(ndvi, fine_lst, full_region, scale=1.0)
        assert result.ok
        assert result.data.shape == (100, 100)

    def test_peak_memory_does_not_grow_with_intervals(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        grid_bytes = ndvi.data.nbytes
        single_tvdi(ndvi, lst, full_region, scale=1.0)

        tracemalloc.start()
        try:
            single_tvdi(ndvi, lst, full_region, scale=1.0)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        # 100 intervals are retained; per-interval grids must not accumulate.
        assert peak < 60 * grid_bytes

    def test_pixel_budget_from_config(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        with pytest.raises(RasterError, match="Too many pixels"):
            single_tvdi(
                ndvi, lst, full_region, scale=1.0, config=Config(max_pixels=100)
            )

    def test_missing_inputs_raise(
        self,
        affine_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = affine_scene
        with pytest.raises(InputValidationError, match="NDVI field must not be None"):
            single_tvdi(None, lst, full_region, scale=1.0)  # type: ignore[arg-type]
        with pytest.raises(InputValidationError, match="Region must not be None"):
            single_tvdi(ndvi, lst, None, scale=1.0)  # type: ignore[arg-type]

    def test_all_problems_reported_together(self) -> None:
        with pytest.raises(InputValidationError) as exc_info:
            single_tvdi(None, None, None, scale=-1.0)  # type: ignore[arg-type]
        cause = exc_info.value.cause
        assert "NDVI field" in cause
        assert "LST field" in cause
        assert "Region" in cause
        assert "positive number" in cause


@pytest.mark.unit
class TestCollectionTVDI:
    """Tests for collection_tvdi."""

    def test_identical_pairs_match_single_run(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        single = single_tvdi(ndvi, lst, full_region, scale=1.0)
        results = collection_tvdi([ndvi, ndvi], [lst, lst], full_region, scale=1.0)

        assert [r.index for r in results] == [0, 1]
        for result in results:
            np.testing.assert_array_equal(result.data, single.data)
            assert result.parameters == single.parameters
            assert result.diagnostics is None

    def test_length_mismatch_raises(
        self,
        affine_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = affine_scene
        with pytest.raises(InputValidationError, match="3 vs 4"):
            collection_tvdi([ndvi] * 3, [lst] * 4, full_region, scale=1.0)

    def test_none_sequence_raises(self, full_region: Region) -> None:
        with pytest.raises(InputValidationError, match="NDVI sequence"):
            collection_tvdi(None, [], full_region, scale=1.0)  # type: ignore[arg-type]

    def test_empty_sequences(self, full_region: Region) -> None:
        assert collection_tvdi([], [], full_region, scale=1.0) == []

    def test_failing_pair_is_isolated(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        constant_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        flat_ndvi, flat_lst = constant_scene
        results = collection_tvdi(
            [ndvi, flat_ndvi, ndvi], [lst, flat_lst, lst], full_region, scale=1.0
        )

        assert [r.ok for r in results] == [True, False, True]
        failed = results[1]
        assert failed.index == 1
        assert failed.data.size == 0
        assert failed.confidence == 0.0
        assert "dry edge" in failed.error
        assert failed.warnings
        np.testing.assert_array_equal(results[0].data, results[2].data)

    def test_rasterio_failure_is_isolated(
        self,
        triangle_scene: tuple[ArrayField, ArrayField],
        full_region: Region,
    ) -> None:
        ndvi, lst = triangle_scene
        broken_lst = ArrayField(
            lst.data, transform=lst.transform, crs="EPSG:999999", name="LST"
        )
        results = collection_tvdi(
            [ndvi, ndvi], [broken_lst, lst], full_region, scale=1.0
        )

        assert [r.ok for r in results] == [False, True]
        assert "Cannot resample field" in results[0].error
