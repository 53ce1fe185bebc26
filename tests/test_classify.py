import geopandas as gpd
import pytest
from shapely.geometry import LineString, box

from transmission_siting.classify import (
    classify_features,
    classify_land_cover,
    classify_rail_speed,
    classify_voltage,
    combine_layers,
)
from transmission_siting.models import LayerKind


@pytest.mark.parametrize("kv, expected", [
    (69, "< 100kV"),
    (100, "100-230kV"),
    (138, "100-230kV"),
    (230, "100-230kV"),
    (345, "> 230kV"),
    (765, "> 230kV"),
    (-999, None),
    (None, None),
])
def test_classify_voltage(kv, expected):
    assert classify_voltage(kv) == expected


@pytest.mark.parametrize("mph, expected", [
    (10, "Low Speed"),
    (60, "Low Speed"),
    (79, "Medium Speed"),
    (110, "Medium Speed"),
    (150, "High Speed"),
    (-1, None),
])
def test_classify_rail_speed(mph, expected):
    assert classify_rail_speed(mph) == expected


def test_classify_land_cover():
    assert classify_land_cover(23) == "Developed"
    assert classify_land_cover(42) == "Forest"
    assert classify_land_cover(82) == "Cropland"
    assert classify_land_cover(95) == "Wetlands"
    assert classify_land_cover(11) is None


def test_classify_features_drops_unusable_rows():
    frame = gpd.GeoDataFrame(
        {"VOLTAGE": ["345", "n/a", 69, -999]},
        geometry=[LineString([(0, i), (1, i)]) for i in range(4)],
        crs="EPSG:4326",
    )
    classified = classify_features(frame, "VOLTAGE", "transmission_line")
    assert classified["subcategory"].tolist() == ["> 230kV", "< 100kV"]
    assert len(frame) == 4


def test_classify_land_cover_frame():
    frame = gpd.GeoDataFrame({"gridcode": [41, 90, 11]}, geometry=[box(i, 0, i + 1, 1) for i in range(3)])
    classified = classify_features(frame, "gridcode", LayerKind.LAND_COVER)
    assert classified["subcategory"].tolist() == ["Forest", "Wetlands"]


def test_combine_layers():
    a = gpd.GeoDataFrame({"MAXSPEED": [40]}, geometry=[LineString([(0, 0), (1, 1)])], crs="EPSG:4326")
    b = gpd.GeoDataFrame({"MAXSPEED": [90]}, geometry=[LineString([(500000, 4400000), (501000, 4401000)])],
                         crs="EPSG:32617")
    combined = combine_layers([a, b])
    assert len(combined) == 2
    assert combined.crs == a.crs
    with pytest.raises(ValueError):
        combine_layers([a.iloc[0:0]])
