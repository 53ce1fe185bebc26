# postprocess.py
# turns a solved cell path into a planar polyline and measures it: length,
# land-cover composition, crossings of transmission lines and railroads,
# and an elevation profile from a caller-supplied sampler.
#
# the staircase path is simplified with Douglas-Peucker. a simplified line
# is only accepted if it is simple, stays inside the AOI polygon and its
# interior never enters the interior of a hard-blocked cell; the tolerance
# is halved on failure down to the unsimplified path.

import logging
import math
from dataclasses import dataclass

import numpy as np
import shapely
from shapely import STRtree
from shapely.geometry import LineString

from transmission_siting.exceptions import PostProcessError
from transmission_siting.models import CrossingCount, LandCoverShare, LayerKind, ProfilePoint

log = logging.getLogger(__name__)

UNCLASSIFIED = "Unclassified"
SIMPLIFY_ATTEMPTS = 4
INTERIORS_INTERSECT = "T********"
# metres of slack when testing that a line stays inside the AOI
AOI_TOLERANCE_M = 1e-3


@dataclass(frozen=True)
class RouteMetrics:
    line: LineString
    length_m: float
    land_cover: tuple
    crossings: tuple
    elevation_profile: tuple


def _dedupe(coords):
    out = [coords[0]]
    for xy in coords[1:]:
        if xy != out[-1]:
            out.append(xy)
    if len(out) == 1:
        out.append(out[0])
    return out


def sample_spacing(length_m, interval_m):
    """split a route into n equal pieces no longer than interval_m."""
    n = max(1, math.ceil(length_m / interval_m)) if length_m > 0 else 1
    return n, (length_m / n)


class RoutePostProcessor:

    def __init__(self, grid, indexes, config, frame=None, aoi=None):
        self.grid = grid
        self.indexes = indexes
        self.config = config
        self.frame = frame
        self.aoi_zone = None
        if aoi is not None:
            self.aoi_zone = aoi.buffer(AOI_TOLERANCE_M)
            shapely.prepare(self.aoi_zone)

    def process(self, path, origin_xy, destination_xy, elevation_sampler=None):
        raw = self.raw_line(path.cells, origin_xy, destination_xy)
        line = self.simplify(raw)
        length = float(line.length)
        n, step = sample_spacing(length, self.config.sample_interval_m)
        return RouteMetrics(
            line=line,
            length_m=length,
            land_cover=self.land_cover_composition(line, n, step),
            crossings=self.count_crossings(line),
            elevation_profile=self.elevation_profile(line, n, step, elevation_sampler),
        )

    def raw_line(self, cells, origin_xy, destination_xy):
        """origin -> cell centres -> destination, without repeated vertices."""
        if len(cells) == 1:
            # both points share one (convex) cell
            return LineString(_dedupe([tuple(origin_xy), tuple(destination_xy)]))
        coords = [tuple(origin_xy)]
        coords.extend(self.grid.cell_center(row, col) for row, col in cells)
        coords.append(tuple(destination_xy))
        return LineString(_dedupe(coords))

    def simplify(self, raw):
        if raw.length == 0:
            return raw
        tolerance = self.config.simplify_tolerance * self.grid.resolution
        attempts = [tolerance / (2 ** i) for i in range(SIMPLIFY_ATTEMPTS)] if tolerance > 0 else []
        for tol in attempts:
            candidate = raw.simplify(tol, preserve_topology=False)
            if self.is_valid_route(candidate):
                return candidate
            log.debug(f"simplification at {tol:.1f} m leaves the passable area, retrying")
        if self.is_valid_route(raw):
            return raw
        raise PostProcessError("solved path cannot be drawn as a simple line inside the passable AOI")

    def is_valid_route(self, line):
        if len(line.coords) < 2 or not line.is_simple:
            return False
        if self.aoi_zone is not None and not self.aoi_zone.covers(line):
            return False
        return self.blocked_cells_entered(line) == 0

    def blocked_cells_entered(self, line):
        """number of hard-blocked cells whose interior the line's interior enters."""
        grid = self.grid
        res = grid.resolution
        minx, miny, maxx, maxy = line.bounds
        c0 = max(int(math.floor((minx - grid.origin_x) / res)) - 1, 0)
        c1 = min(int(math.floor((maxx - grid.origin_x) / res)) + 2, grid.n_cols)
        r0 = max(int(math.floor((grid.origin_y - maxy) / res)) - 1, 0)
        r1 = min(int(math.floor((grid.origin_y - miny) / res)) + 2, grid.n_rows)
        window = grid.hard_block[r0:r1, c0:c1]
        rows, cols = np.nonzero(window)
        if rows.size == 0:
            return 0
        rows, cols = rows + r0, cols + c0
        x0 = grid.origin_x + cols * res
        y1 = grid.origin_y - rows * res
        cells = shapely.box(x0, y1 - res, x0 + res, y1)

        tree = STRtree(cells)
        segments = self._segments(line)
        hits = tree.query(segments, predicate="intersects")
        if hits.shape[1] == 0:
            return 0
        entered = shapely.relate_pattern(segments[hits[0]], cells[hits[1]], INTERIORS_INTERSECT)
        return int(np.unique(hits[1][entered]).size)

    @staticmethod
    def _segments(line):
        coords = np.asarray(line.coords)[:, :2]
        return shapely.linestrings(np.stack([coords[:-1], coords[1:]], axis=1))

    def _samples(self, line, distances):
        return shapely.line_interpolate_point(line, np.asarray(distances, dtype=float))

    def land_cover_composition(self, line, n, step):
        """share of route length per land-cover subcategory, by midpoint sampling."""
        index = self.indexes.land_cover
        points = self._samples(line, (np.arange(n) + 0.5) * step)
        labels = [UNCLASSIFIED] * n
        pairs = index.query_many(points, predicate="within")
        if pairs.shape[1]:
            first_pt, first_at = np.unique(pairs[0], return_index=True)
            for pt, feature in zip(first_pt, pairs[1][first_at]):
                labels[pt] = index.labels[feature]

        counts = {}
        for name in labels:
            counts[name] = counts.get(name, 0) + 1
        shares = [
            LandCoverShare(subcategory=name, percent=100.0 * count / n, length_m=count * step)
            for name, count in counts.items()
        ]
        shares.sort(key=lambda s: (-s.percent, s.subcategory))
        return tuple(shares)

    def count_crossings(self, line):
        """
        per-subcategory crossings of every transmission line and railroad.

        a crossing is a point where the route meets a feature; stretches
        where the route runs along a feature are not counted.
        """
        segments = self._segments(line)
        results = []
        for kind in (LayerKind.TRANSMISSION_LINE, LayerKind.RAILROAD):
            index = self.indexes.for_kind(kind)
            counts = dict.fromkeys(index.subcategories, 0)
            pairs = index.query_many(segments, predicate="intersects")
            for feature in np.unique(pairs[1]):
                overlap = line.intersection(index.geometries[feature])
                if overlap.is_empty:
                    continue
                parts = shapely.get_parts(overlap)
                counts[index.labels[feature]] += int(np.count_nonzero(shapely.get_dimensions(parts) == 0))
            results.extend(CrossingCount(kind, name, counts[name]) for name in index.subcategories)
        return tuple(results)

    def elevation_profile(self, line, n, step, sampler):
        if sampler is None:
            return ()
        distances = np.arange(n + 1) * step
        points = self._samples(line, distances)
        if self.frame is not None:
            points = self.frame.to_geographic(points)
        return tuple(
            ProfilePoint(distance_m=float(d), elevation_m=float(sampler(pt)))
            for d, pt in zip(distances, points)
        )
