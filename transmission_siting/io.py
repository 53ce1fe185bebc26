# io.py
# geopandas / pandas adapters between files and the routing core: reading
# the AOI and reference layers, writing routes, analytics tables and the
# scored cost grid.

import json
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
import shapely

from transmission_siting.exceptions import GeometryError
from transmission_siting.models import AreaOfInterest, LayerFeature, RoutingLayers
from transmission_siting.projection import WGS84


def _to_wgs84(frame):
    if frame.crs is None:
        return frame.set_crs(WGS84)
    if frame.crs != WGS84:
        return frame.to_crs(WGS84)
    return frame


def read_aoi(path):
    """read a single-polygon AOI from any vector file geopandas can open."""
    path = Path(path)
    if path.suffix.lower() in (".json", ".geojson"):
        data = json.loads(path.read_text())
        if data.get("type") != "FeatureCollection" or "crs" not in data:
            return AreaOfInterest.from_geojson(data)
    frame = _to_wgs84(gpd.read_file(path))
    if len(frame) != 1:
        raise GeometryError(f"{path.name}: AOI file must hold exactly one feature, got {len(frame)}")
    return AreaOfInterest(frame.geometry.iloc[0])


def layer_features(frame, field="subcategory"):
    """(geometry, subcategory) features from a GeoDataFrame, in WGS84."""
    frame = _to_wgs84(frame)
    if field not in frame.columns:
        raise KeyError(f"layer has no {field!r} column")
    frame = frame[frame.geometry.notna() & frame[field].notna()]
    return tuple(LayerFeature(geom, str(name)) for geom, name in zip(frame.geometry, frame[field]))


def read_layer(path, field="subcategory"):
    return layer_features(gpd.read_file(path), field)


def read_layers(land_cover=None, transmission_lines=None, railroads=None, field="subcategory"):
    """read whichever layer files are given; missing layers are empty."""
    return RoutingLayers(
        land_cover=read_layer(land_cover, field) if land_cover else (),
        transmission_lines=read_layer(transmission_lines, field) if transmission_lines else (),
        railroads=read_layer(railroads, field) if railroads else (),
    )


def route_to_frame(route, name=None):
    properties = route.to_feature()["properties"]
    if name is not None:
        properties = {"name": name, **properties}
    return gpd.GeoDataFrame([properties], geometry=[route.geometry], crs=WGS84)


def write_route(route, path, name=None):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    route_to_frame(route, name).to_file(path, driver="GeoJSON")
    return path


def report_to_frame(report):
    """flatten an AnalyticsReport into a long metric / category / value table."""
    rows = [
        ("length_km", "", report.length_km),
        ("total_cost", "", report.total_cost),
        ("estimated_cost", "", report.estimated_cost),
        ("average_cost_factor", "", report.average_cost_factor),
        ("elevation_min_m", "", report.elevation_min),
        ("elevation_max_m", "", report.elevation_max),
        ("elevation_avg_m", "", report.elevation_avg),
    ]
    rows.extend(("land_cover_pct", share.subcategory, share.percent) for share in report.land_cover)
    rows.extend(
        (f"{c.layer.value}_crossings", c.subcategory, c.count) for c in report.crossings
    )
    return pd.DataFrame(rows, columns=["metric", "category", "value"])


def cost_grid_to_frame(grid, crs, include_outside=False):
    """one polygon per grid cell with its cost components, in the grid's planar CRS."""
    mask = np.ones(grid.shape, dtype=bool) if include_outside else grid.in_aoi
    rows, cols = np.nonzero(mask)
    res = grid.resolution
    x0 = grid.origin_x + cols * res
    y1 = grid.origin_y - rows * res
    cells = shapely.box(x0, y1 - res, x0 + res, y1)

    classes = np.array(grid.land_cover_classes + ("",), dtype=object)
    codes = grid.land_cover[rows, cols]
    cost = grid.cost[rows, cols]
    return gpd.GeoDataFrame(
        {
            "row": rows,
            "col": cols,
            "cost": np.where(np.isfinite(cost), cost, np.nan),
            "passable": np.isfinite(cost),
            "land_cover": classes[codes],
            "corridor_factor": grid.corridor_factor[rows, cols],
            "barrier_penalty": grid.barrier_penalty[rows, cols],
            "hard_block": grid.hard_block[rows, cols],
        },
        geometry=cells,
        crs=crs,
    )
