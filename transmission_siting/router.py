# router.py
# the public entry point: AOI + layers + weights + endpoint pair in, one
# CandidateRoute (or a typed failure / cancellation) out.
#
# pipeline: project to a local metric frame -> spatial indexes -> cost grid
# -> least-cost path -> simplification and metrics -> analytics report.
# every request builds its own frame, indexes and grid, so concurrent
# requests share no mutable state.

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError
from shapely.geometry import LineString, Point
from shapely.geometry.base import BaseGeometry

from transmission_siting.analytics import build_report
from transmission_siting.cancellation import check_cancelled
from transmission_siting.config import DEFAULT_WEIGHT_PROFILES, RoutingConfig, WeightTable
from transmission_siting.cost_surface import CostGrid, build_cost_grid, validate_aoi
from transmission_siting.exceptions import (
    Cancelled,
    InvalidEndpointError,
    ParameterError,
    PostProcessError,
    RouteError,
)
from transmission_siting.models import AreaOfInterest, CandidateRoute, PointKind, RoutePoint, RoutingLayers
from transmission_siting.postprocess import AOI_TOLERANCE_M, RoutePostProcessor
from transmission_siting.projection import LocalFrame
from transmission_siting.solver import get_solver
from transmission_siting.spatial_index import LayerIndexes

log = logging.getLogger(__name__)


class RouteStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RouteOutcome:
    status: RouteStatus
    route: Optional[CandidateRoute] = None
    error: Optional[RouteError] = None

    @classmethod
    def succeeded(cls, route):
        return cls(RouteStatus.OK, route=route)

    @classmethod
    def failed(cls, error):
        return cls(RouteStatus.FAILED, error=error)

    @classmethod
    def cancelled(cls):
        return cls(RouteStatus.CANCELLED)

    @property
    def ok(self):
        return self.status is RouteStatus.OK

    @property
    def is_cancelled(self):
        return self.status is RouteStatus.CANCELLED

    def unwrap(self):
        """the route, or re-raise the failure (Cancelled for a cancelled run)."""
        if self.status is RouteStatus.OK:
            return self.route
        if self.status is RouteStatus.CANCELLED:
            raise Cancelled("route computation cancelled")
        raise self.error


@dataclass(eq=False)
class CostSurface:
    """everything derived from AOI + layers + weights for one request."""

    frame: LocalFrame
    aoi: BaseGeometry
    layers: RoutingLayers
    indexes: LayerIndexes
    grid: CostGrid


def _polygon(aoi):
    if isinstance(aoi, AreaOfInterest):
        return aoi.polygon
    if isinstance(aoi, dict):
        return AreaOfInterest.from_geojson(aoi).polygon
    return aoi


def _layers(layers):
    if layers is None:
        return RoutingLayers()
    if isinstance(layers, RoutingLayers):
        return layers
    return RoutingLayers(
        land_cover=layers.get("land_cover", ()),
        transmission_lines=layers.get("transmission_lines", ()),
        railroads=layers.get("railroads", ()),
    )


def prepare_cost_surface(aoi, layers, weights=DEFAULT_WEIGHT_PROFILES, config=None, cancel=None):
    """project the inputs and build the indexes and cost grid for one AOI."""
    config = config or RoutingConfig()
    polygon = validate_aoi(_polygon(aoi))
    frame = LocalFrame.for_aoi(polygon, config.working_crs)
    log.debug(f"working frame: {frame.crs}")

    planar_aoi = validate_aoi(frame.to_planar([polygon])[0])
    planar_layers = frame.project_layers(_layers(layers).validated())
    indexes = LayerIndexes.build(planar_layers)
    check_cancelled(cancel)

    grid = build_cost_grid(planar_aoi, planar_layers, weights, config, indexes=indexes, cancel=cancel)
    return CostSurface(frame=frame, aoi=planar_aoi, layers=planar_layers, indexes=indexes, grid=grid)


def _parameters(config, resolution_m, weights):
    """resolve the effective config and weight table, as ParameterError on bad values."""
    try:
        config = (config or RoutingConfig()).with_resolution(resolution_m)
        table = weights if isinstance(weights, WeightTable) else WeightTable(weights)
    except ValidationError as e:
        raise ParameterError(f"invalid routing parameters: {e}") from e
    return config, table


def _edge_cell(surface, planar):
    """
    nearest passable cell within one cell of an AOI point whose own cell
    centre falls outside the AOI (points on or near the AOI boundary).

    only cells reachable by a straight segment inside the AOI qualify.
    """
    grid = surface.grid
    res = grid.resolution
    row = min(max(int(math.floor((grid.origin_y - planar.y) / res)), 0), grid.n_rows - 1)
    col = min(max(int(math.floor((planar.x - grid.origin_x) / res)), 0), grid.n_cols - 1)
    candidates = []
    for n_row in range(row - 1, row + 2):
        for n_col in range(col - 1, col + 2):
            if not grid.is_passable((n_row, n_col)):
                continue
            centre = Point(grid.cell_center(n_row, n_col))
            if LineString([planar, centre]).difference(surface.aoi).length > AOI_TOLERANCE_M:
                continue
            candidates.append((planar.distance(centre), (n_row, n_col)))
    return min(candidates)[1] if candidates else None


def _endpoint_cell(surface, point):
    name = point.kind.value
    grid = surface.grid
    planar = surface.frame.to_planar([point.geometry])[0]
    if not surface.aoi.covers(planar):
        raise InvalidEndpointError(f"{name} ({point.lon:.5f}, {point.lat:.5f}) lies outside the AOI", name)
    cell = grid.cell_of(planar.x, planar.y)
    if cell is not None and grid.in_aoi[cell]:
        if not grid.is_passable(cell):
            raise InvalidEndpointError(f"{name} falls on an impassable cell", name)
        return cell, (planar.x, planar.y)
    snapped = _edge_cell(surface, planar)
    if snapped is None:
        raise InvalidEndpointError(f"{name} has no passable cell within one cell of it", name)
    log.debug(f"{name} on the AOI edge attached to cell {snapped}")
    return snapped, (planar.x, planar.y)


def _route(aoi, layers, weights, origin, destination, config, elevation_sampler, cancel):
    origin = RoutePoint.coerce(origin, PointKind.ORIGIN)
    destination = RoutePoint.coerce(destination, PointKind.DESTINATION)

    surface = prepare_cost_surface(aoi, layers, weights, config, cancel)
    start, origin_xy = _endpoint_cell(surface, origin)
    goal, destination_xy = _endpoint_cell(surface, destination)

    path = get_solver(config.solver).solve(surface.grid, start, goal, cancel)
    check_cancelled(cancel)

    processor = RoutePostProcessor(surface.grid, surface.indexes, config, surface.frame, surface.aoi)
    metrics = processor.process(path, origin_xy, destination_xy, elevation_sampler)
    report = build_report(metrics, path, config)

    line = surface.frame.to_geographic([metrics.line])[0]
    coords = tuple((float(x), float(y)) for x, y, *_ in line.coords)
    # endpoints are reported exactly as supplied
    coords = ((origin.lon, origin.lat),) + coords[1:-1] + ((destination.lon, destination.lat),)
    log.info(f"route generated: {report.length_km:.2f} km, estimated cost {report.estimated_cost:,.0f}")
    return CandidateRoute(
        coordinates=coords,
        length_m=metrics.length_m,
        total_cost=path.cost,
        report=report,
        cells=path.cells,
    )


def generate_route(aoi, layers, weights=DEFAULT_WEIGHT_PROFILES, origin=None, destination=None,
                   resolution_m=None, elevation_sampler=None, cancellation_token=None, config=None):
    """
    compute the least-cost route between origin and destination inside an AOI.

    aoi is a WGS84 shapely Polygon, AreaOfInterest or GeoJSON mapping;
    layers is a RoutingLayers or a dict with land_cover / transmission_lines /
    railroads lists of (geometry, subcategory); origin and destination are
    RoutePoints, shapely Points or (lon, lat) pairs. resolution_m overrides
    config.resolution_m. elevation_sampler, if given, is called with WGS84
    shapely Points along the route.

    never raises for routing failures: returns a RouteOutcome whose status is
    OK (with route), FAILED (with the typed RouteError) or CANCELLED. out of
    range resolution or weights fail with ParameterError.
    """
    try:
        config, weights = _parameters(config, resolution_m, weights)
        if origin is None:
            raise InvalidEndpointError("no origin point supplied", PointKind.ORIGIN.value)
        if destination is None:
            raise InvalidEndpointError("no destination point supplied", PointKind.DESTINATION.value)
        route = _route(aoi, layers, weights, origin, destination, config, elevation_sampler,
                       cancellation_token)
    except Cancelled:
        log.info("route generation cancelled")
        return RouteOutcome.cancelled()
    except PostProcessError as e:
        log.exception("route post-processing violated an invariant")
        return RouteOutcome.failed(e)
    except RouteError as e:
        log.warning(f"route generation failed ({e.kind}): {e}")
        return RouteOutcome.failed(e)
    return RouteOutcome.succeeded(route)
