# spatial_index.py
# bounding-box tree (shapely STRtree) over one reference layer. queries
# return candidate indices from the tree envelope test, refined by an exact
# predicate. an index built from no geometries never matches anything.

import numpy as np
import shapely
from shapely import STRtree
from shapely.geometry import box

from transmission_siting.models import LayerKind

_NO_PAIRS = np.empty((2, 0), dtype=np.intp)
_NO_HITS = np.empty(0, dtype=np.intp)


class SpatialIndex:
    """
    index over the features of a single layer.

    each indexed geometry keeps its subcategory label; `codes[i]` is the
    position of feature i's label in `subcategories` (sorted, unique) so
    per-subcategory arrays can be gathered with numpy fancy indexing.
    """

    def __init__(self, geometries, labels=None, kind=None):
        self.kind = kind
        self.geometries = np.asarray(list(geometries), dtype=object)
        if labels is None:
            labels = [""] * len(self.geometries)
        self.labels = tuple(labels)
        if len(self.labels) != len(self.geometries):
            raise ValueError("labels must match geometries one to one")
        self.subcategories = tuple(sorted(set(self.labels)))
        lookup = {name: i for i, name in enumerate(self.subcategories)}
        self.codes = np.array([lookup[name] for name in self.labels], dtype=np.intp)
        self._tree = STRtree(self.geometries) if len(self.geometries) else None

    @classmethod
    def from_features(cls, features, kind=None):
        features = list(features)
        return cls([f.geometry for f in features], [f.subcategory for f in features], kind=kind)

    def __len__(self):
        return len(self.geometries)

    @property
    def is_empty(self):
        return self._tree is None

    def query_bbox(self, bounds):
        """indices of geometries whose envelope intersects (minx, miny, maxx, maxy)."""
        if self._tree is None:
            return _NO_HITS
        return np.sort(self._tree.query(box(*bounds)))

    def query(self, geometry, predicate="intersects"):
        """indices of geometries satisfying predicate(geometry, indexed geometry)."""
        if self._tree is None:
            return _NO_HITS
        return np.sort(self._tree.query(geometry, predicate=predicate))

    def intersects(self, geometry):
        return self.query(geometry).size > 0

    def query_many(self, geometries, predicate="intersects", distance=None):
        """
        bulk query for an array of input geometries.

        returns a (2, n) array of (input index, indexed geometry index)
        pairs, sorted by input then by indexed geometry.
        """
        if self._tree is None or len(geometries) == 0:
            return _NO_PAIRS
        if predicate == "dwithin":
            pairs = self._tree.query(geometries, predicate=predicate, distance=distance)
        else:
            pairs = self._tree.query(geometries, predicate=predicate)
        order = np.lexsort((pairs[1], pairs[0]))
        return pairs[:, order]

    def distances(self, geometries, pairs):
        """exact distance for each (input, indexed) pair from query_many."""
        if pairs.shape[1] == 0:
            return np.empty(0)
        return shapely.distance(geometries[pairs[0]], self.geometries[pairs[1]])


class LayerIndexes:
    """the three per-request indexes, built once and shared read-only."""

    def __init__(self, land_cover, transmission_lines, railroads):
        self.land_cover = land_cover
        self.transmission_lines = transmission_lines
        self.railroads = railroads

    @classmethod
    def build(cls, layers):
        return cls(
            SpatialIndex.from_features(layers.land_cover, LayerKind.LAND_COVER),
            SpatialIndex.from_features(layers.transmission_lines, LayerKind.TRANSMISSION_LINE),
            SpatialIndex.from_features(layers.railroads, LayerKind.RAILROAD),
        )

    def for_kind(self, kind):
        if kind is LayerKind.LAND_COVER:
            return self.land_cover
        if kind is LayerKind.TRANSMISSION_LINE:
            return self.transmission_lines
        return self.railroads

    def linear(self):
        return (self.transmission_lines, self.railroads)
