import pytest

from mapdata.geojson import parse_geojson
from mapdata.types import (
    GeometryCollection,
    LineStringGeometry,
    PointGeometry,
    PolygonGeometry,
)


def test_feature_properties_flow_to_leaves():
    data = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"stroke": "#ff0000"},
                "geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
            },
            {
                "type": "Feature",
                "properties": {"marker-size": "large"},
                "geometry": {"type": "Point", "coordinates": [5, 6]},
            },
        ],
    }
    leaves = parse_geojson(data).leaves()
    assert isinstance(leaves[0], LineStringGeometry)
    assert leaves[0].props == {"stroke": "#ff0000"}
    assert isinstance(leaves[1], PointGeometry)
    assert (leaves[1].lon, leaves[1].lat) == (5.0, 6.0)
    assert leaves[1].props["marker-size"] == "large"


def test_multi_geometries_become_collections():
    tree = parse_geojson(
        [
            {
                "type": "MultiPolygon",
                "coordinates": [
                    [[[0, 0], [1, 0], [1, 1], [0, 0]]],
                    [[[2, 2], [3, 2], [3, 3], [2, 2]]],
                ],
            }
        ]
    )
    (child,) = tree.children
    assert isinstance(child, GeometryCollection)
    assert all(isinstance(leaf, PolygonGeometry) for leaf in tree.leaves())
    assert len(tree.leaves()) == 2


def test_list_of_objects_and_unknown_types():
    tree = parse_geojson(
        [
            {"type": "Point", "coordinates": [1, 2]},
            {"type": "Bogus", "coordinates": [1, 2]},
            {"type": "Point"},
        ]
    )
    assert len(tree.leaves()) == 1


@pytest.mark.parametrize(
    "data",
    [
        {"type": "Point", "coordinates": 5},
        {"type": "Point", "coordinates": "13.4,52.5"},
        {"type": "Point", "coordinates": ["13.4"]},
        {"type": "LineString", "coordinates": [5, "x", [0, 0]]},
        {"type": "Polygon", "coordinates": 7},
        {"type": "Polygon", "coordinates": [5]},
        {"type": "MultiPoint", "coordinates": [3, [1, 2]]},
        {"type": "MultiPolygon", "coordinates": [4, [[[0, 0], [1, 0], [1, 1]]]]},
        {"type": "FeatureCollection", "features": 5},
        {"type": "GeometryCollection", "geometries": "x"},
        {"type": "Feature", "properties": [1], "geometry": {"type": "Point", "coordinates": [1, 2]}},
    ],
)
def test_malformed_coordinates_are_skipped(data):
    tree = parse_geojson(data)
    assert isinstance(tree, GeometryCollection)
    for leaf in tree.leaves():
        assert leaf.bounds().is_valid


def test_scalar_position_yields_no_geometry():
    assert parse_geojson({"type": "Point", "coordinates": 5}).leaves() == []
    (line,) = parse_geojson({"type": "LineString", "coordinates": [5, "x", [0, 0]]}).leaves()
    assert line.coords == [(0.0, 0.0)]


def test_polygon_holes_and_bounds():
    tree = parse_geojson(
        {
            "type": "Polygon",
            "coordinates": [
                [[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]],
                [[2, 2], [4, 2], [4, 4], [2, 4], [2, 2]],
            ],
        }
    )
    (poly,) = tree.leaves()
    assert len(poly.holes) == 1
    hole = poly.hole_bounds()
    assert (hole.min_lon, hole.max_lat) == (2.0, 4.0)
    b = tree.bounds()
    assert (b.min_lat, b.min_lon, b.max_lat, b.max_lon) == (0.0, 0.0, 10.0, 10.0)
    assert poly.to_shapely().area == 100.0 - 4.0
