# create_grid.py
# generates the routing cost grid across an area of interest and writes every
# cell with its cost components, for inspecting how the weights shape the
# surface a route is solved on.
#
# inputs: AOI polygon, classified land cover / transmission / railroad layers,
#         optional weight profiles and routing config (JSON)
# outputs: cost_grid.geojson with cost, land_cover, corridor_factor,
#          barrier_penalty and hard_block fields

import argparse
import logging
import sys
from pathlib import Path

from transmission_siting.config import DEFAULT_WEIGHT_PROFILES, RoutingConfig, load_config, load_weight_profiles
from transmission_siting.io import cost_grid_to_frame, read_aoi, read_layers
from transmission_siting.router import prepare_cost_surface

output_dir = Path("outputs")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="score the routing cost grid for an AOI")
    parser.add_argument("--aoi", required=True)
    parser.add_argument("--land-cover")
    parser.add_argument("--transmission")
    parser.add_argument("--railroads")
    parser.add_argument("--field", default="subcategory")
    parser.add_argument("--weights")
    parser.add_argument("--config")
    parser.add_argument("--resolution", type=float)
    parser.add_argument("--output", default=str(output_dir / "cost_grid.geojson"))
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    aoi = read_aoi(args.aoi)
    layers = read_layers(args.land_cover, args.transmission, args.railroads, field=args.field)
    weights = load_weight_profiles(args.weights) if args.weights else DEFAULT_WEIGHT_PROFILES
    config = (load_config(args.config) if args.config else RoutingConfig()).with_resolution(args.resolution)
    print("loaded study area and reference layers")

    surface = prepare_cost_surface(aoi, layers, weights, config)
    grid = surface.grid
    print(f"grid dimensions: {grid.n_cols} x {grid.n_rows} at {grid.resolution:g} m")
    print(f"working crs: {surface.frame.crs}")

    cells = cost_grid_to_frame(grid, surface.frame.crs)
    print(f"cells in aoi: {len(cells)}")
    print(f"traversable cells: {int(cells['passable'].sum())}")
    print(f"hard-blocked cells: {int(cells['hard_block'].sum())}")
    print(f"cells with corridor discount: {int((cells['corridor_factor'] < 1).sum())}")

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    cells.to_file(output, driver="GeoJSON")
    print("grid saved")
    return 0


if __name__ == "__main__":
    sys.exit(main())
