# models.py
# typed data model for the routing core: layers and their features, the
# area of interest, route points, and the immutable route / analytics
# results handed to persistence and presentation.
#
# all geographic inputs and outputs are WGS84 (lon, lat).

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from shapely.errors import ShapelyError
from shapely.geometry import LineString, Point, mapping, shape
from shapely.geometry.base import BaseGeometry

from transmission_siting.exceptions import GeometryError


class LayerKind(str, Enum):
    LAND_COVER = "land_cover"
    TRANSMISSION_LINE = "transmission_line"
    RAILROAD = "railroad"

    @property
    def is_linear(self):
        return self is not LayerKind.LAND_COVER


# display names used by the parameter table of the web application
LAYER_LABELS = {
    "Land Cover": LayerKind.LAND_COVER,
    "Transmission Lines": LayerKind.TRANSMISSION_LINE,
    "Railroads": LayerKind.RAILROAD,
}

_POLYGON_TYPES = {"Polygon", "MultiPolygon"}
_LINE_TYPES = {"LineString", "MultiLineString", "LinearRing"}


class PointKind(str, Enum):
    ORIGIN = "origin"
    DESTINATION = "destination"


@dataclass(frozen=True)
class LayerFeature:
    geometry: BaseGeometry
    subcategory: str


def _as_feature(item):
    if isinstance(item, LayerFeature):
        return item
    geometry, subcategory = item
    return LayerFeature(geometry, str(subcategory))


@dataclass(frozen=True)
class RoutingLayers:
    """reference layers already clipped to the project, keyed by layer kind."""

    land_cover: Tuple[LayerFeature, ...] = ()
    transmission_lines: Tuple[LayerFeature, ...] = ()
    railroads: Tuple[LayerFeature, ...] = ()

    def __post_init__(self):
        for name in ("land_cover", "transmission_lines", "railroads"):
            object.__setattr__(self, name, tuple(_as_feature(f) for f in getattr(self, name)))

    def features(self, kind):
        if kind is LayerKind.LAND_COVER:
            return self.land_cover
        if kind is LayerKind.TRANSMISSION_LINE:
            return self.transmission_lines
        return self.railroads

    def map_geometries(self, func):
        """return a copy with `func` applied to every geometry, preserving order."""
        return RoutingLayers(*[
            tuple(LayerFeature(g, f.subcategory) for f, g in zip(feats, func([f.geometry for f in feats])))
            for feats in (self.land_cover, self.transmission_lines, self.railroads)
        ])

    def validated(self):
        """
        check geometry types and repair invalid land-cover polygons.

        polygons are repaired with buffer(0); empty geometries are dropped.
        raises GeometryError on missing or wrongly-typed geometries.
        """
        cleaned = []
        for kind in LayerKind:
            expected = _POLYGON_TYPES if kind is LayerKind.LAND_COVER else _LINE_TYPES
            kept = []
            for idx, feature in enumerate(self.features(kind)):
                geom = feature.geometry
                if geom is None:
                    raise GeometryError(f"{kind.value} feature {idx} has no geometry")
                if geom.is_empty:
                    continue
                if geom.geom_type not in expected:
                    raise GeometryError(
                        f"{kind.value} feature {idx} is a {geom.geom_type}, "
                        f"expected one of {sorted(expected)}"
                    )
                if kind is LayerKind.LAND_COVER and not geom.is_valid:
                    geom = geom.buffer(0)
                    if geom.is_empty:
                        continue
                kept.append(LayerFeature(geom, feature.subcategory))
            cleaned.append(tuple(kept))
        return RoutingLayers(*cleaned)


@dataclass(frozen=True)
class AreaOfInterest:
    polygon: BaseGeometry

    @classmethod
    def from_geojson(cls, data):
        """accept a geometry, a Feature or a single-feature FeatureCollection."""
        if data.get("type") == "FeatureCollection":
            features = data.get("features") or []
            if len(features) != 1:
                raise GeometryError(f"AOI collection must hold exactly one feature, got {len(features)}")
            data = features[0]
        if data.get("type") == "Feature":
            data = data.get("geometry") or {}
        if not data.get("type"):
            raise GeometryError("AOI GeoJSON has no geometry")
        try:
            geom = shape(data)
        except (KeyError, TypeError, ValueError, ShapelyError) as e:
            raise GeometryError(f"invalid AOI GeoJSON: {e}") from e
        return cls(geom)


@dataclass(frozen=True)
class RoutePoint:
    lon: float
    lat: float
    kind: PointKind

    @property
    def geometry(self):
        return Point(self.lon, self.lat)

    @classmethod
    def coerce(cls, value, kind):
        """build a RoutePoint from a RoutePoint, shapely Point or (lon, lat) pair."""
        kind = PointKind(kind)
        if isinstance(value, RoutePoint):
            return cls(value.lon, value.lat, kind)
        if isinstance(value, Point):
            return cls(float(value.x), float(value.y), kind)
        lon, lat = value
        return cls(float(lon), float(lat), kind)


@dataclass(frozen=True)
class ProfilePoint:
    distance_m: float
    elevation_m: float


@dataclass(frozen=True)
class LandCoverShare:
    subcategory: str
    percent: float
    length_m: float


@dataclass(frozen=True)
class CrossingCount:
    layer: LayerKind
    subcategory: str
    count: int


@dataclass(frozen=True)
class AnalyticsReport:
    length_m: float
    total_cost: float
    estimated_cost: float
    average_cost_factor: float
    elevation_min: Optional[float] = None
    elevation_max: Optional[float] = None
    elevation_avg: Optional[float] = None
    elevation_profile: Tuple[ProfilePoint, ...] = ()
    land_cover: Tuple[LandCoverShare, ...] = ()
    crossings: Tuple[CrossingCount, ...] = ()

    @property
    def length_km(self):
        return self.length_m / 1000.0

    def land_cover_percent(self, subcategory):
        for share in self.land_cover:
            if share.subcategory == subcategory:
                return share.percent
        return 0.0

    def crossings_for(self, layer, subcategory=None):
        layer = LayerKind(layer)
        return sum(
            c.count for c in self.crossings
            if c.layer is layer and (subcategory is None or c.subcategory == subcategory)
        )

    def to_dict(self):
        return {
            "length_km": self.length_km,
            "total_cost": self.total_cost,
            "estimated_cost": self.estimated_cost,
            "average_cost_factor": self.average_cost_factor,
            "elevation": {
                "min": self.elevation_min,
                "max": self.elevation_max,
                "avg": self.elevation_avg,
                "profile": [[p.distance_m, p.elevation_m] for p in self.elevation_profile],
            },
            "land_cover": [
                {"type": s.subcategory, "percentage": s.percent, "length_m": s.length_m}
                for s in self.land_cover
            ],
            "crossings": [
                {"layer": c.layer.value, "subcategory": c.subcategory, "count": c.count}
                for c in self.crossings
            ],
        }


@dataclass(frozen=True)
class CandidateRoute:
    coordinates: Tuple[Tuple[float, float], ...]
    length_m: float
    total_cost: float
    report: AnalyticsReport
    cells: Tuple[Tuple[int, int], ...] = field(default=(), compare=True)

    @property
    def geometry(self):
        return LineString(self.coordinates)

    def to_feature(self):
        """GeoJSON Feature in the shape the routes table stores."""
        return {
            "type": "Feature",
            "geometry": mapping(self.geometry),
            "properties": {
                "length_km": self.length_m / 1000.0,
                "cost": self.report.estimated_cost,
                "total_cost": self.total_cost,
            },
        }
