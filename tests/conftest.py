import math

import pytest
from shapely.geometry import LineString, Polygon, box

from transmission_siting.config import DEFAULT_WEIGHT_PROFILES, RoutingConfig, WeightProfile
from transmission_siting.cost_surface import build_cost_grid
from transmission_siting.models import RoutingLayers
from transmission_siting.spatial_index import LayerIndexes

# UTM zone 17 central meridian, so the local frame is close to a true square
CENTER_LON = -81.0
CENTER_LAT = 40.0
HALF_SIDE_M = 5000.0

M_PER_DEG_LAT = 111320.0
M_PER_DEG_LON = 111320.0 * math.cos(math.radians(CENTER_LAT))


def offset(dx_m, dy_m):
    """(lon, lat) of a point dx_m east and dy_m north of the AOI centre."""
    return (CENTER_LON + dx_m / M_PER_DEG_LON, CENTER_LAT + dy_m / M_PER_DEG_LAT)


def square(half_side_m, cx_m=0.0, cy_m=0.0):
    sw = offset(cx_m - half_side_m, cy_m - half_side_m)
    ne = offset(cx_m + half_side_m, cy_m + half_side_m)
    return box(sw[0], sw[1], ne[0], ne[1])


def east_west_line(dy_m, x0_m=-7000.0, x1_m=7000.0):
    return LineString([offset(x0_m, dy_m), offset(x1_m, dy_m)])


def weights_with(*overrides):
    """default weight table with some rows replaced (later rows win)."""
    return tuple(DEFAULT_WEIGHT_PROFILES) + tuple(WeightProfile.model_validate(o) for o in overrides)


def planar_grid(layers=None, weights=DEFAULT_WEIGHT_PROFILES, aoi=None, **config):
    """
    cost grid over a 5 km planar square at 500 m, so cell (r, c) has its
    centre at (250 + 500c, 4750 - 500r).
    """
    aoi = aoi if aoi is not None else box(0, 0, 5000, 5000)
    layers = layers or RoutingLayers()
    cfg = RoutingConfig(**{"resolution_m": 500.0, **config})
    indexes = LayerIndexes.build(layers)
    return build_cost_grid(aoi, layers, weights, cfg, indexes=indexes), indexes, cfg


@pytest.fixture
def aoi():
    return square(HALF_SIDE_M)


@pytest.fixture
def config():
    return RoutingConfig(resolution_m=500.0)


@pytest.fixture
def fine_config():
    return RoutingConfig(resolution_m=250.0)


@pytest.fixture
def empty_layers():
    return RoutingLayers()


@pytest.fixture
def thin_neck_aoi():
    # two 2 km squares joined by a 40 m strip that holds no cell centre
    return Polygon([
        (0, 0), (2000, 0), (2000, 480), (3000, 480), (3000, 0), (5000, 0),
        (5000, 2000), (3000, 2000), (3000, 520), (2000, 520), (2000, 2000), (0, 2000),
    ])
