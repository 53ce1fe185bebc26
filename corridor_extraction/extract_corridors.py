# extract_corridors.py
# extracts the least-cost transmission corridor between an origin and a
# destination inside an area of interest.
#
# methodology: projects the AOI and reference layers to a local metric frame,
# scores a cost grid (land cover, corridor discounts along existing lines and
# railroads, railroad barrier penalties), routes an A* path without corner cutting,
# simplifies it and summarises length, cost, land cover and crossings.
#
# inputs: AOI polygon, classified land cover / transmission / railroad layers,
#         optional weight profiles and routing config (JSON)
# outputs: route.geojson with length_km and cost, route_report.csv

import argparse
import logging
import sys
from pathlib import Path

from transmission_siting.config import DEFAULT_WEIGHT_PROFILES, RoutingConfig, load_config, load_weight_profiles
from transmission_siting.io import read_aoi, read_layers, report_to_frame, write_route
from transmission_siting.router import generate_route

output_dir = Path("outputs")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="least-cost transmission corridor between two points")
    parser.add_argument("--aoi", required=True, help="AOI polygon file")
    parser.add_argument("--land-cover", help="classified land cover polygons")
    parser.add_argument("--transmission", help="classified transmission lines")
    parser.add_argument("--railroads", help="classified railroads")
    parser.add_argument("--field", default="subcategory", help="subcategory column in the layer files")
    parser.add_argument("--weights", help="weight profiles JSON (defaults to the built-in table)")
    parser.add_argument("--config", help="routing config JSON")
    parser.add_argument("--resolution", type=float, help="grid cell size in metres")
    parser.add_argument("--origin", nargs=2, type=float, metavar=("LON", "LAT"), required=True)
    parser.add_argument("--destination", nargs=2, type=float, metavar=("LON", "LAT"), required=True)
    parser.add_argument("--output", default=str(output_dir / "route.geojson"))
    parser.add_argument("--report-csv", default=str(output_dir / "route_report.csv"))
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    aoi = read_aoi(args.aoi)
    layers = read_layers(args.land_cover, args.transmission, args.railroads, field=args.field)
    weights = load_weight_profiles(args.weights) if args.weights else DEFAULT_WEIGHT_PROFILES
    config = load_config(args.config) if args.config else RoutingConfig()

    print(f"loaded {len(layers.land_cover)} land cover polygons")
    print(f"loaded {len(layers.transmission_lines)} transmission lines")
    print(f"loaded {len(layers.railroads)} railroads")
    print(f"loaded {len(weights)} weight profiles")

    print("\nrouting corridor")
    outcome = generate_route(
        aoi,
        layers,
        weights,
        origin=tuple(args.origin),
        destination=tuple(args.destination),
        resolution_m=args.resolution,
        config=config,
    )
    if not outcome.ok:
        reason = "cancelled" if outcome.is_cancelled else f"{outcome.error.kind}: {outcome.error}"
        print(f"no route: {reason}")
        return 1

    route = outcome.route
    report = route.report
    print(f"length: {report.length_km:.2f} km")
    print(f"accumulated cost: {report.total_cost:.2f}")
    print(f"estimated cost: {report.estimated_cost:,.0f}")
    for share in report.land_cover:
        print(f"  {share.subcategory}: {share.percent:.1f}%")
    for crossing in report.crossings:
        if crossing.count:
            print(f"  crosses {crossing.count} x {crossing.layer.value} {crossing.subcategory}")

    write_route(route, args.output)
    report_path = Path(args.report_csv)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_to_frame(report).to_csv(report_path, index=False)
    print("route saved")
    return 0


if __name__ == "__main__":
    sys.exit(main())
