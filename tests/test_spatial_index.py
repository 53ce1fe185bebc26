import numpy as np
import shapely
from shapely.geometry import LineString, Point, box

from transmission_siting.models import LayerKind, RoutingLayers
from transmission_siting.spatial_index import LayerIndexes, SpatialIndex


def test_empty_index_matches_nothing():
    index = SpatialIndex([])
    assert index.is_empty
    assert len(index) == 0
    assert index.query(box(0, 0, 10, 10)).size == 0
    assert index.query_bbox((0, 0, 10, 10)).size == 0
    assert index.query_many(shapely.points([0, 1], [0, 1])).shape == (2, 0)


def test_bbox_candidates_refined_by_predicate():
    """A diagonal line's envelope covers a point the line itself misses."""
    index = SpatialIndex([LineString([(0, 0), (10, 10)])], ["a"])
    probe = box(8, 0, 9, 1)
    assert index.query_bbox(probe.bounds).tolist() == [0]
    assert index.query(probe).size == 0
    assert not index.intersects(probe)
    assert index.intersects(Point(5, 5).buffer(0.1))


def test_subcategory_codes():
    index = SpatialIndex([box(0, 0, 1, 1), box(2, 0, 3, 1), box(4, 0, 5, 1)],
                         ["Forest", "Developed", "Forest"], kind=LayerKind.LAND_COVER)
    assert index.subcategories == ("Developed", "Forest")
    assert index.codes.tolist() == [1, 0, 1]


def test_query_many_sorted_pairs():
    index = SpatialIndex([box(0, 0, 10, 10), box(5, 5, 15, 15)], ["x", "y"])
    points = shapely.points([12, 7, -1], [12, 7, -1])
    pairs = index.query_many(points, predicate="within")
    assert pairs.tolist() == [[0, 1, 1], [1, 0, 1]]


def test_query_many_dwithin_and_distances():
    index = SpatialIndex([LineString([(0, 0), (100, 0)])], ["line"])
    points = shapely.points([50, 50, 50], [20, 60, 150])
    pairs = index.query_many(points, predicate="dwithin", distance=100)
    assert pairs[0].tolist() == [0, 1]
    assert np.allclose(index.distances(points, pairs), [20, 60])


def test_layer_indexes():
    layers = RoutingLayers(
        land_cover=[(box(0, 0, 1, 1), "Forest")],
        railroads=[(LineString([(0, 0), (1, 1)]), "Low Speed")],
    )
    indexes = LayerIndexes.build(layers)
    assert len(indexes.for_kind(LayerKind.LAND_COVER)) == 1
    assert indexes.for_kind(LayerKind.TRANSMISSION_LINE).is_empty
    assert indexes.for_kind(LayerKind.RAILROAD).kind is LayerKind.RAILROAD
    assert [i.kind for i in indexes.linear()] == [LayerKind.TRANSMISSION_LINE, LayerKind.RAILROAD]
