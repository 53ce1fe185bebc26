# cost_surface.py
# rasterizes the AOI into a regular grid and scores every cell with a
# traversal cost from land cover, corridor discounts and railroad barriers.
#
# cost model per cell (applied in this order, so identical inputs always
# give identical grids):
#   1. land cover   baseline + sum(weight * general_weight_scale) over the
#                   distinct subcategories whose polygons contain the centre
#   2. corridors    cost * prod(1 - corridor_weight * decay(distance)),
#                   strongest factor per (layer, subcategory), floored
#   3. barriers     + barrier_weight * barrier_penalty_scale on cells a
#                   railroad passes through; above the hard-block
#                   threshold the cell becomes impassable
# cells whose centre lies outside the AOI are always impassable.
#
# row 0 is the northern edge; x grows with columns, y shrinks with rows.

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
import shapely
from shapely.geometry import box
from shapely.validation import make_valid

from transmission_siting.cancellation import check_cancelled
from transmission_siting.config import WeightTable
from transmission_siting.exceptions import EmptyAOIError, GeometryError
from transmission_siting.models import LayerKind
from transmission_siting.spatial_index import LayerIndexes

log = logging.getLogger(__name__)

IMPASSABLE = np.inf
NO_LAND_COVER = -1


@dataclass(eq=False)
class CostGrid:
    origin_x: float
    origin_y: float
    resolution: float
    cost: np.ndarray
    in_aoi: np.ndarray
    land_cover: np.ndarray
    corridor_factor: np.ndarray
    barrier_penalty: np.ndarray
    hard_block: np.ndarray
    land_cover_classes: tuple = ()

    @classmethod
    def allocate(cls, origin_x, origin_y, resolution, n_rows, n_cols, land_cover_classes=()):
        shape = (n_rows, n_cols)
        return cls(
            origin_x=origin_x,
            origin_y=origin_y,
            resolution=resolution,
            cost=np.full(shape, IMPASSABLE),
            in_aoi=np.zeros(shape, dtype=bool),
            land_cover=np.full(shape, NO_LAND_COVER, dtype=np.int32),
            corridor_factor=np.ones(shape),
            barrier_penalty=np.zeros(shape),
            hard_block=np.zeros(shape, dtype=bool),
            land_cover_classes=tuple(land_cover_classes),
        )

    @property
    def shape(self):
        return self.cost.shape

    @property
    def n_rows(self):
        return self.cost.shape[0]

    @property
    def n_cols(self):
        return self.cost.shape[1]

    @property
    def bounds(self):
        return (
            self.origin_x,
            self.origin_y - self.n_rows * self.resolution,
            self.origin_x + self.n_cols * self.resolution,
            self.origin_y,
        )

    @property
    def passable(self):
        return np.isfinite(self.cost)

    @property
    def traversable_count(self):
        return int(np.count_nonzero(self.passable))

    @property
    def min_cost(self):
        finite = self.cost[self.passable]
        return float(finite.min()) if finite.size else 0.0

    def contains_cell(self, cell):
        row, col = cell
        return 0 <= row < self.n_rows and 0 <= col < self.n_cols

    def is_passable(self, cell):
        return self.contains_cell(cell) and bool(np.isfinite(self.cost[cell]))

    def cell_center(self, row, col):
        return (
            self.origin_x + (col + 0.5) * self.resolution,
            self.origin_y - (row + 0.5) * self.resolution,
        )

    def cell_of(self, x, y):
        """(row, col) of the cell containing a planar coordinate, or None."""
        col = int(np.floor((x - self.origin_x) / self.resolution))
        row = int(np.floor((self.origin_y - y) / self.resolution))
        if self.contains_cell((row, col)):
            return row, col
        return None

    def cell_box(self, row, col):
        x, y = self.cell_center(row, col)
        half = self.resolution / 2
        return box(x - half, y - half, x + half, y + half)

    def land_cover_at(self, cell):
        code = self.land_cover[cell]
        return None if code == NO_LAND_COVER else self.land_cover_classes[code]

    def freeze(self):
        for arr in (self.cost, self.in_aoi, self.land_cover, self.corridor_factor,
                    self.barrier_penalty, self.hard_block):
            arr.setflags(write=False)


def validate_aoi(aoi):
    """return a usable single polygon or raise GeometryError."""
    if aoi is None or aoi.is_empty:
        raise GeometryError("AOI is empty")
    if aoi.geom_type != "Polygon":
        raise GeometryError(f"AOI must be a single polygon, got {aoi.geom_type}")
    if not aoi.is_valid:
        repaired = make_valid(aoi)
        if repaired.geom_type != "Polygon" or repaired.area <= 0:
            raise GeometryError("AOI self-intersects and cannot be repaired into a single polygon")
        log.debug("repaired invalid AOI polygon")
        aoi = repaired
    if aoi.area <= 0:
        raise GeometryError("AOI has zero area")
    return aoi


def _group_reduce(keys, values, reducer):
    """reduce `values` per unique key; returns (unique keys, reduced values)."""
    order = np.argsort(keys, kind="stable")
    keys, values = keys[order], values[order]
    unique, starts = np.unique(keys, return_index=True)
    return unique, reducer.reduceat(values, starts)


class _CellScorer:
    """scores row bands of a grid; bands are disjoint so workers never share writes."""

    def __init__(self, grid, aoi, indexes, weights, config):
        self.grid = grid
        self.aoi = aoi
        self.indexes = indexes
        self.config = config
        shapely.prepare(aoi)

        lc = indexes.land_cover
        self.general_by_code = np.array(
            [weights.general(name, config.land_cover_polarity) * config.general_weight_scale
             for name in lc.subcategories]
        )
        self.corridor_by_feature = {}
        for index in indexes.linear():
            by_code = np.array([weights.corridor(index.kind, name) for name in index.subcategories])
            self.corridor_by_feature[index.kind] = by_code[index.codes] if len(index) else np.empty(0)
        rail = indexes.railroads
        barrier_by_code = np.array([weights.barrier(name) for name in rail.subcategories])
        self.barrier_by_feature = barrier_by_code[rail.codes] if len(rail) else np.empty(0)

    def score_rows(self, row_start, row_stop, cancel=None):
        check_cancelled(cancel)
        grid, config = self.grid, self.config
        res = grid.resolution
        xs = grid.origin_x + (np.arange(grid.n_cols) + 0.5) * res
        ys = grid.origin_y - (np.arange(row_start, row_stop) + 0.5) * res
        X, Y = np.meshgrid(xs, ys)

        inside = shapely.contains_xy(self.aoi, X, Y)
        band = slice(row_start, row_stop)
        grid.in_aoi[band] = inside

        flat = np.flatnonzero(inside)
        if flat.size == 0:
            return 0
        px, py = X.ravel()[flat], Y.ravel()[flat]
        points = shapely.points(px, py)

        cost = np.full(flat.size, config.baseline_cost)
        land_cover = self._land_cover(points, cost)
        factor = self._corridors(points)
        cost = np.maximum(cost * factor, config.min_cost_floor)
        penalty, blocked = self._barriers(px, py)
        cost = cost + penalty
        cost[blocked] = IMPASSABLE

        rows, cols = np.unravel_index(flat, inside.shape)
        rows = rows + row_start
        grid.cost[rows, cols] = cost
        grid.land_cover[rows, cols] = land_cover
        grid.corridor_factor[rows, cols] = factor
        grid.barrier_penalty[rows, cols] = penalty
        grid.hard_block[rows, cols] = blocked
        log.debug(f"scored rows {row_start}-{row_stop}: {flat.size} cells in AOI")
        return int(flat.size)

    def _land_cover(self, points, cost):
        index = self.indexes.land_cover
        labels = np.full(points.size, NO_LAND_COVER, dtype=np.int32)
        pairs = index.query_many(points, predicate="within")
        if pairs.shape[1] == 0:
            return labels

        # first containing feature in input order names the cell
        first_pt, first_at = np.unique(pairs[0], return_index=True)
        labels[first_pt] = index.codes[pairs[1][first_at]]

        # each distinct covering subcategory adds its weight once
        n_codes = len(index.subcategories)
        keys = np.unique(pairs[0] * n_codes + index.codes[pairs[1]])
        pt, code = np.divmod(keys, n_codes)
        np.add.at(cost, pt, self.general_by_code[code])
        return labels

    def _corridors(self, points):
        config = self.config
        factor = np.ones(points.size)
        for index in self.indexes.linear():
            weights = self.corridor_by_feature[index.kind]
            if len(index) == 0 or not np.any(weights > 0):
                continue
            pairs = index.query_many(points, predicate="dwithin", distance=config.corridor_buffer_m)
            pairs = pairs[:, weights[pairs[1]] > 0]
            if pairs.shape[1] == 0:
                continue
            if config.corridor_decay == "linear":
                dist = index.distances(points, pairs)
                decay = np.clip(1.0 - dist / config.corridor_buffer_m, 0.0, 1.0)
            else:
                decay = np.ones(pairs.shape[1])
            pair_factor = 1.0 - weights[pairs[1]] * decay

            # strongest discount per (cell, subcategory), compounded across subcategories
            n_codes = len(index.subcategories)
            keys = pairs[0] * n_codes + index.codes[pairs[1]]
            keys, best = _group_reduce(keys, pair_factor, np.minimum)
            np.multiply.at(factor, keys // n_codes, best)
        return factor

    def _barriers(self, px, py):
        config = self.config
        index = self.indexes.railroads
        penalty = np.zeros(px.size)
        blocked = np.zeros(px.size, dtype=bool)
        weights = self.barrier_by_feature
        if len(index) == 0 or not np.any(weights > 0):
            return penalty, blocked

        half = self.grid.resolution / 2
        cells = shapely.box(px - half, py - half, px + half, py + half)
        pairs = index.query_many(cells, predicate="intersects")
        pairs = pairs[:, weights[pairs[1]] > 0]
        if pairs.shape[1] == 0:
            return penalty, blocked

        n_codes = len(index.subcategories)
        keys = pairs[0] * n_codes + index.codes[pairs[1]]
        keys, worst = _group_reduce(keys, weights[pairs[1]], np.maximum)
        pt = keys // n_codes
        np.add.at(penalty, pt, worst * config.barrier_penalty_scale)
        blocked[pt[worst > config.hard_block_threshold]] = True
        return penalty, blocked


def build_cost_grid(aoi, layers, weights, config, indexes=None, cancel=None):
    """
    build the CostGrid for a planar AOI polygon.

    `layers` are RoutingLayers in the same planar frame as `aoi`; `indexes`
    may be passed in when the caller already built them. row bands are
    scored on `config.workers` threads, checking `cancel` between bands.
    raises GeometryError for a degenerate AOI and EmptyAOIError when no
    cell centre falls inside it.
    """
    aoi = validate_aoi(aoi)
    res = config.resolution_m
    minx, miny, maxx, maxy = aoi.bounds
    n_cols = int((maxx - minx) / res) + 1
    n_rows = int((maxy - miny) / res) + 1
    if n_rows * n_cols > config.max_cells:
        raise GeometryError(
            f"AOI needs {n_rows * n_cols} cells at {res} m, more than the limit of {config.max_cells}"
        )
    log.info(f"cost grid dimensions: {n_rows} x {n_cols} at {res} m")

    if indexes is None:
        indexes = LayerIndexes.build(layers)
    if not isinstance(weights, WeightTable):
        weights = WeightTable(weights)

    grid = CostGrid.allocate(minx, maxy, res, n_rows, n_cols, indexes.land_cover.subcategories)
    scorer = _CellScorer(grid, aoi, indexes, weights, config)
    bands = [(r, min(r + config.chunk_rows, n_rows)) for r in range(0, n_rows, config.chunk_rows)]

    if config.workers > 1 and len(bands) > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            futures = [pool.submit(scorer.score_rows, r0, r1, cancel) for r0, r1 in bands]
            try:
                for future in futures:
                    future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
    else:
        for r0, r1 in bands:
            scorer.score_rows(r0, r1, cancel)

    n_inside = int(np.count_nonzero(grid.in_aoi))
    if n_inside == 0:
        raise EmptyAOIError(f"no cell centre of the {res} m grid falls inside the AOI")
    grid.freeze()
    log.info(
        f"cells in AOI: {n_inside}, traversable: {grid.traversable_count}, "
        f"hard-blocked: {int(np.count_nonzero(grid.hard_block))}"
    )
    return grid
