# classify_layers.py
# tags raw reference layers with the routing subcategories the weight
# profiles are keyed on: transmission lines by voltage class, railroads by
# maximum speed class, land cover polygons by NLCD group.
#
# inputs: one or more raw layer files (e.g. HIFLD transmission lines,
#         FRA rail lines, polygonised NLCD)
# outputs: classified layer with a subcategory field, reprojected to WGS84

import argparse
import logging
import sys
from pathlib import Path

import geopandas as gpd

from transmission_siting.classify import classify_features, combine_layers
from transmission_siting.models import LayerKind
from transmission_siting.projection import WGS84

# default attribute holding the classified value for each layer
source_fields = {
    "transmission": "VOLTAGE",
    "railroad": "MAXSPEED",
    "land_cover": "gridcode",
}

layer_kinds = {
    "transmission": LayerKind.TRANSMISSION_LINE,
    "railroad": LayerKind.RAILROAD,
    "land_cover": LayerKind.LAND_COVER,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="classify a reference layer into routing subcategories")
    parser.add_argument("--layer", required=True, choices=sorted(layer_kinds))
    parser.add_argument("--input", required=True, nargs="+", help="raw layer file(s)")
    parser.add_argument("--field", help="attribute to classify (defaults per layer)")
    parser.add_argument("--output", required=True)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    field = args.field or source_fields[args.layer]
    kind = layer_kinds[args.layer]

    frames = []
    for path in args.input:
        frame = gpd.read_file(path)
        print(f"loaded {len(frame)} features from {Path(path).name}")
        frames.append(frame)
    raw = combine_layers(frames)

    classified = classify_features(raw, field, kind)
    if classified.crs is None:
        classified = classified.set_crs(WGS84)
    classified = classified.to_crs(WGS84)
    print(f"classified {len(classified)} of {len(raw)} features")
    for name, count in classified["subcategory"].value_counts().sort_index().items():
        print(f"  {name}: {count}")

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    classified.to_file(output, driver="GeoJSON")
    print("layer saved")
    return 0


if __name__ == "__main__":
    sys.exit(main())
