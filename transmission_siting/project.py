# project.py
# in-memory state of one routing project: a single AOI, at most one origin
# and one destination, the weight profiles, and the last successfully
# generated route. editing any input discards the stored route.

import logging

from transmission_siting.config import DEFAULT_WEIGHT_PROFILES, RoutingConfig, WeightProfile
from transmission_siting.exceptions import GeometryError, InvalidEndpointError
from transmission_siting.models import LAYER_LABELS, AreaOfInterest, LayerKind, PointKind, RoutePoint, RoutingLayers
from transmission_siting.router import RouteOutcome, generate_route

log = logging.getLogger(__name__)


class RoutingProject:

    def __init__(self, name, aoi=None, layers=None, weights=DEFAULT_WEIGHT_PROFILES, config=None):
        self.name = name
        self.layers = layers if layers is not None else RoutingLayers()
        self.config = config or RoutingConfig()
        self._aoi = None
        self._points = {}
        self._weights = tuple(DEFAULT_WEIGHT_PROFILES)
        self._route = None
        if aoi is not None:
            self.set_aoi(aoi)
        self.set_weights(weights)

    @property
    def aoi(self):
        return self._aoi

    @property
    def origin(self):
        return self._points.get(PointKind.ORIGIN)

    @property
    def destination(self):
        return self._points.get(PointKind.DESTINATION)

    @property
    def weights(self):
        return self._weights

    @property
    def route(self):
        return self._route

    def _invalidate(self, reason):
        if self._route is not None:
            log.debug(f"{self.name}: discarding route, {reason} changed")
        self._route = None

    def set_aoi(self, aoi):
        """replace the AOI; accepts a polygon, AreaOfInterest or GeoJSON mapping."""
        if isinstance(aoi, dict):
            aoi = AreaOfInterest.from_geojson(aoi)
        if not isinstance(aoi, AreaOfInterest):
            aoi = AreaOfInterest(aoi)
        self._aoi = aoi
        self._invalidate("aoi")

    def set_point(self, kind, value):
        """set the origin or destination, replacing any existing point of that kind."""
        point = RoutePoint.coerce(value, kind)
        self._points[point.kind] = point
        self._invalidate(point.kind.value)
        return point

    def set_origin(self, value):
        return self.set_point(PointKind.ORIGIN, value)

    def set_destination(self, value):
        return self.set_point(PointKind.DESTINATION, value)

    def clear_point(self, kind):
        kind = PointKind(kind)
        if self._points.pop(kind, None) is not None:
            self._invalidate(kind.value)

    def set_weights(self, profiles):
        self._weights = tuple(
            p if isinstance(p, WeightProfile) else WeightProfile.model_validate(p) for p in profiles
        )
        self._invalidate("weights")

    def update_weight(self, layer, subcategory, **changes):
        """change one parameter row; adds the row if the subcategory had none."""
        layer = LayerKind(LAYER_LABELS.get(layer, layer))
        rows = list(self._weights)
        for i, profile in enumerate(rows):
            if profile.layer is layer and profile.subcategory == subcategory:
                rows[i] = WeightProfile.model_validate({**profile.model_dump(), **changes})
                break
        else:
            rows.append(WeightProfile(layer=layer, subcategory=subcategory, **changes))
        self.set_weights(rows)

    def generate(self, resolution_m=None, elevation_sampler=None, cancellation_token=None):
        """run route generation; the route is kept only if it succeeds."""
        if self._aoi is None:
            return RouteOutcome.failed(GeometryError("project has no AOI"))
        for kind in PointKind:
            if kind not in self._points:
                return RouteOutcome.failed(InvalidEndpointError(f"project has no {kind.value} point", kind.value))

        outcome = generate_route(
            self._aoi,
            self.layers,
            self._weights,
            self.origin,
            self.destination,
            resolution_m=resolution_m,
            elevation_sampler=elevation_sampler,
            cancellation_token=cancellation_token,
            config=self.config,
        )
        if outcome.ok:
            self._route = outcome.route
        return outcome
