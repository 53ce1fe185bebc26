import pytest

from conftest import offset
from transmission_siting.config import DEFAULT_WEIGHT_PROFILES, RoutingConfig
from transmission_siting.exceptions import GeometryError, InvalidEndpointError
from transmission_siting.models import LayerKind, PointKind
from transmission_siting.project import RoutingProject
from transmission_siting.router import RouteStatus


@pytest.fixture
def project(aoi):
    return RoutingProject("test", aoi=aoi, config=RoutingConfig(resolution_m=500.0))


def test_new_project_defaults(project):
    assert project.weights == tuple(DEFAULT_WEIGHT_PROFILES)
    assert project.origin is None
    assert project.destination is None
    assert project.route is None


def test_generate_requires_aoi():
    outcome = RoutingProject("empty").generate()
    assert outcome.status is RouteStatus.FAILED
    assert isinstance(outcome.error, GeometryError)


def test_generate_requires_both_points(project):
    project.set_origin(offset(-3000, 0))
    outcome = project.generate()
    assert isinstance(outcome.error, InvalidEndpointError)
    assert outcome.error.endpoint == "destination"
    assert project.route is None


def test_setting_a_point_replaces_it(project):
    project.set_origin(offset(-3000, 0))
    project.set_origin(offset(-2000, 0))
    assert project.origin.lon == pytest.approx(offset(-2000, 0)[0])
    assert project.origin.kind is PointKind.ORIGIN


def test_route_stored_and_invalidated(project):
    project.set_origin(offset(-3000, 0))
    project.set_destination(offset(3000, 0))
    outcome = project.generate()
    assert outcome.ok
    assert project.route is outcome.route

    project.update_weight("Land Cover", "Forest", general_weight=0.1)
    assert project.route is None
    assert project.generate().ok

    project.set_destination(offset(3000, 1000))
    assert project.route is None


def test_failed_generation_keeps_no_route(project):
    project.set_origin(offset(-3000, 0))
    project.set_destination(offset(9000, 0))
    outcome = project.generate()
    assert not outcome.ok
    assert project.route is None


def test_update_weight_adds_missing_row(project):
    project.update_weight(LayerKind.LAND_COVER, "Barren", general_weight=0.7)
    added = [p for p in project.weights if p.subcategory == "Barren"]
    assert len(added) == 1
    assert added[0].general_weight == 0.7
    assert len(project.weights) == len(DEFAULT_WEIGHT_PROFILES) + 1


def test_update_weight_validates(project):
    with pytest.raises(ValueError):
        project.update_weight("Railroads", "High Speed", barrier_weight=2.0)
