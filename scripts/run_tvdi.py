#!/usr/bin/env python3
"""Compute TVDI from NDVI and LST GeoTIFFs.

Each NDVI file is paired with the LST file at the same position. One
TVDI GeoTIFF (and optionally a PNG preview) is written per pair, plus a
CSV summary of the fitted edges.

Usage:
    python run_tvdi.py --ndvi ndvi.tif --lst lst.tif --roi roi.geojson \
        --scale 0.01 --output-dir out/

Example:
    python run_tvdi.py --ndvi n1.tif n2.tif --lst l1.tif l2.tif \
        --roi roi.geojson --scale 1000 --ndvi-factor 0.0001 --lst-factor 0.02 \
        --png --output-dir out/
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Check imports before running
try:
    import tvdi
except ImportError:
    print("Error: tvdi not installed. Run: pip install -e .")
    sys.exit(1)


def load_fields(
    paths: list[Path], name: str, factor: float
) -> list[tvdi.ArrayField]:
    """Read GeoTIFFs and apply the band scale factor."""
    fields = []
    for path in paths:
        field = tvdi.ArrayField.from_geotiff(path, name=name)
        if factor != 1.0:
            field = field * factor
        fields.append(field)
    return fields


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the pipeline and write outputs."""
    parser = argparse.ArgumentParser(
        description="Compute the Temperature-Vegetation Dryness Index",
    )
    parser.add_argument("--ndvi", nargs="+", type=Path, required=True,
                        help="NDVI GeoTIFF(s)")
    parser.add_argument("--lst", nargs="+", type=Path, required=True,
                        help="LST GeoTIFF(s), paired with --ndvi by position")
    parser.add_argument("--roi", type=Path, required=True,
                        help="Region of interest (GeoJSON, Shapefile or GeoPackage)")
    parser.add_argument("--roi-crs", default="EPSG:4326",
                        help="CRS for ROI files that carry none (default: EPSG:4326)")
    parser.add_argument("--scale", type=float, required=True,
                        help="Pixel size in CRS units")
    parser.add_argument("--crs", default=None,
                        help="Target CRS for processing (default: NDVI CRS)")
    parser.add_argument("--ndvi-factor", type=float, default=1.0,
                        help="Scale factor applied to NDVI values")
    parser.add_argument("--lst-factor", type=float, default=1.0,
                        help="Scale factor applied to LST values")
    parser.add_argument("--output-dir", type=Path, default=Path("."),
                        help="Directory for outputs")
    parser.add_argument("--png", action="store_true",
                        help="Also write PNG previews")
    parser.add_argument("--debug", action="store_true",
                        help="Log intermediate results (single pair only)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = tvdi.Config(target_crs=args.crs)
    roi = tvdi.Region.from_file(args.roi, crs=args.roi_crs)
    ndvi_fields = load_fields(args.ndvi, "NDVI", args.ndvi_factor)
    lst_fields = load_fields(args.lst, "LST", args.lst_factor)

    print(f"Computing TVDI for {len(ndvi_fields)} pair(s) at scale {args.scale}...")

    try:
        if len(ndvi_fields) == 1 and len(lst_fields) == 1:
            results = [
                tvdi.single_tvdi(
                    ndvi_fields[0],
                    lst_fields[0],
                    roi,
                    args.scale,
                    debug=args.debug,
                    config=config,
                )
            ]
        else:
            results = tvdi.collection_tvdi(
                ndvi_fields, lst_fields, roi, args.scale, config=config
            )
    except tvdi.TVDIError as exc:
        print(f"Error: {exc}")
        return 1

    args.output_dir.mkdir(parents=True, exist_ok=True)
    for position, result in enumerate(results):
        print(repr(result))
        if not result.ok:
            continue
        stem = args.ndvi[position].stem
        result.to_geotiff(args.output_dir / f"{stem}_tvdi.tif")
        if args.png:
            result.to_png(args.output_dir / f"{stem}_tvdi.png")

    summary_path = args.output_dir / "tvdi_summary.csv"
    tvdi.results_to_dataframe(results).to_csv(summary_path, index=False)
    print(f"Summary written to {summary_path}")

    return 0 if all(r.ok for r in results) else 2


if __name__ == "__main__":
    sys.exit(main())
