import pytest
from shapely.geometry import LineString, MultiLineString, box

from conftest import planar_grid, weights_with
from transmission_siting.exceptions import PostProcessError
from transmission_siting.models import LayerKind, RoutingLayers
from transmission_siting.postprocess import UNCLASSIFIED, RoutePostProcessor, sample_spacing
from transmission_siting.solver import AStarSolver, GridPath

BLOCKING = weights_with({"layer": "railroad", "subcategory": "High Speed", "barrier_weight": 1.0})


def processor_for(layers=None, weights=None, aoi=None, **config):
    kwargs = {} if weights is None else {"weights": weights}
    aoi = aoi if aoi is not None else box(0, 0, 5000, 5000)
    grid, indexes, cfg = planar_grid(layers, aoi=aoi, **kwargs, **config)
    return RoutePostProcessor(grid, indexes, cfg, aoi=aoi), grid


def test_sample_spacing():
    assert sample_spacing(1000, 100) == (10, 100.0)
    n, step = sample_spacing(1050, 100)
    assert n == 11
    assert step == pytest.approx(1050 / 11)
    assert sample_spacing(0, 100) == (1, 0.0)


def test_straight_path_simplifies_to_two_points():
    processor, grid = processor_for()
    path = AStarSolver().solve(grid, (5, 1), (5, 8))
    metrics = processor.process(path, (700, 2250), (4300, 2250))
    assert list(metrics.line.coords) == [(700, 2250), (4300, 2250)]
    assert metrics.length_m == pytest.approx(3600)


def test_collinear_cell_centres_collapse():
    processor, grid = processor_for()
    path = AStarSolver().solve(grid, (9, 0), (0, 9))
    raw = processor.raw_line(path.cells, (250, 250), (4750, 4750))
    line = processor.simplify(raw)
    assert len(line.coords) == 2
    assert line.length <= raw.length


def test_single_cell_path():
    processor, grid = processor_for()
    path = GridPath(cells=((4, 4),), cost=0.0, steps=0.0)
    metrics = processor.process(path, (2100, 2600), (2400, 2900))
    assert len(metrics.line.coords) == 2
    assert metrics.length_m == pytest.approx((300 ** 2 + 300 ** 2) ** 0.5)


def test_land_cover_composition():
    layers = RoutingLayers(land_cover=[(box(0, 0, 2500, 5000), "Developed")])
    processor, _ = processor_for(layers)
    line = LineString([(500, 2250), (4500, 2250)])
    shares = processor.land_cover_composition(line, *sample_spacing(line.length, 100))
    by_name = {s.subcategory: s for s in shares}
    assert by_name["Developed"].percent == pytest.approx(50.0)
    assert by_name[UNCLASSIFIED].percent == pytest.approx(50.0)
    assert by_name["Developed"].length_m == pytest.approx(2000.0)
    assert sum(s.percent for s in shares) == pytest.approx(100.0)


def test_crossing_counts():
    layers = RoutingLayers(
        transmission_lines=[
            (LineString([(2600, 0), (2600, 5000)]), "> 230kV"),
            (LineString([(1000, 0), (1000, 3000), (3000, 3000), (3000, 0)]), "100-230kV"),
            (LineString([(0, 4900), (5000, 4900)]), "< 100kV"),
        ],
        railroads=[(LineString([(3500, 0), (3500, 5000)]), "Low Speed")],
    )
    processor, _ = processor_for(layers)
    line = LineString([(500, 2250), (4500, 2250)])
    counts = {(c.layer, c.subcategory): c.count for c in processor.count_crossings(line)}
    assert counts[(LayerKind.TRANSMISSION_LINE, "> 230kV")] == 1
    assert counts[(LayerKind.TRANSMISSION_LINE, "100-230kV")] == 2
    assert counts[(LayerKind.TRANSMISSION_LINE, "< 100kV")] == 0
    assert counts[(LayerKind.RAILROAD, "Low Speed")] == 1


def test_blocked_cells_detected():
    rail = LineString([(0, 2250), (5000, 2250)])
    processor, _ = processor_for(RoutingLayers(railroads=[(rail, "High Speed")]), BLOCKING)
    crossing = LineString([(2250, 4750), (2250, 250)])
    assert processor.blocked_cells_entered(crossing) == 1
    assert not processor.is_valid_route(crossing)
    alongside = LineString([(250, 3750), (4750, 3750)])
    assert processor.is_valid_route(alongside)


def test_route_through_blocked_cells_is_an_error():
    rail = LineString([(0, 2250), (5000, 2250)])
    processor, _ = processor_for(RoutingLayers(railroads=[(rail, "High Speed")]), BLOCKING)
    forced = GridPath(cells=tuple((r, 4) for r in range(10)), cost=0.0, steps=9.0)
    with pytest.raises(PostProcessError):
        processor.process(forced, (2250, 4750), (2250, 250))


def test_simplified_route_stays_out_of_blocked_cells():
    """Cutting the corner of a blocked block is rejected in favour of a finer line."""
    rail = LineString([(2000, 2250), (5000, 2250)])
    processor, grid = processor_for(RoutingLayers(railroads=[(rail, "High Speed")]), BLOCKING)
    path = AStarSolver().solve(grid, (9, 8), (0, 8))
    metrics = processor.process(path, (4250, 250), (4250, 4750))
    assert processor.blocked_cells_entered(metrics.line) == 0
    assert metrics.line.is_simple


def test_elevation_profile():
    processor, grid = processor_for()
    path = AStarSolver().solve(grid, (5, 1), (5, 8))
    metrics = processor.process(path, (700, 2250), (4300, 2250), elevation_sampler=lambda pt: pt.x / 10)
    profile = metrics.elevation_profile
    assert len(profile) == 37
    assert profile[0].distance_m == 0.0
    assert profile[-1].distance_m == pytest.approx(3600)
    assert profile[0].elevation_m == pytest.approx(70)
    assert profile[-1].elevation_m == pytest.approx(430)


def test_no_sampler_no_profile():
    processor, grid = processor_for()
    path = AStarSolver().solve(grid, (5, 1), (5, 8))
    assert processor.process(path, (700, 2250), (4300, 2250)).elevation_profile == ()


def test_line_across_aoi_notch_is_rejected():
    l_shape = box(0, 0, 5000, 5000).difference(box(2500, 2500, 5000, 5000))
    processor, grid = processor_for(aoi=l_shape)
    shortcut = LineString([(750, 4250), (4250, 2250)])
    assert processor.blocked_cells_entered(shortcut) == 0
    assert not processor.is_valid_route(shortcut)

    path = AStarSolver().solve(grid, (1, 1), (5, 8))
    metrics = processor.process(path, (750, 4250), (4250, 2250))
    assert metrics.line.difference(l_shape).length == pytest.approx(0.0, abs=1e-6)
    assert metrics.length_m > shortcut.length


def test_running_along_a_line_is_not_a_crossing():
    layers = RoutingLayers(
        transmission_lines=[(LineString([(1000, 2250), (3000, 2250)]), "> 230kV")],
        railroads=[(LineString([(2000, 0), (2000, 2250), (4000, 2250)]), "Low Speed")],
    )
    processor, _ = processor_for(layers)
    line = LineString([(500, 2250), (4500, 2250)])
    counts = {(c.layer, c.subcategory): c.count for c in processor.count_crossings(line)}
    assert counts[(LayerKind.TRANSMISSION_LINE, "> 230kV")] == 0
    assert counts[(LayerKind.RAILROAD, "Low Speed")] == 0


def test_multipart_railroad_crossed_per_part():
    rail = MultiLineString([[(0, 1250), (5000, 1250)], [(0, 3250), (5000, 3250)]])
    processor, _ = processor_for(RoutingLayers(railroads=[(rail, "Low Speed")]))
    line = LineString([(2250, 4750), (2250, 250)])
    counts = {(c.layer, c.subcategory): c.count for c in processor.count_crossings(line)}
    assert counts[(LayerKind.RAILROAD, "Low Speed")] == 2
