import pytest

from geo.mercator import fit_bounds
from mapdata.geojson import parse_geojson
from snapshot.autoposition import MAX_AUTO_ZOOM, auto_position, get_valid_bounds


def _polygon(min_lon, min_lat, max_lon, max_lat, holes=()):
    outer = [
        [min_lon, min_lat],
        [max_lon, min_lat],
        [max_lon, max_lat],
        [min_lon, max_lat],
        [min_lon, min_lat],
    ]
    return {"type": "Polygon", "coordinates": [outer, *holes]}


BERLIN = _polygon(13.0, 52.0, 14.0, 53.0)


def test_auto_zoom_frames_features_and_is_capped():
    pos = auto_position(600, 400, "auto", parse_geojson(BERLIN))
    lat, lon = pos.center
    assert 52.0 < lat < 53.0
    assert 13.0 < lon < 14.0
    assert isinstance(pos.zoom, int)
    assert 0 <= pos.zoom <= MAX_AUTO_ZOOM


def test_single_point_uses_max_auto_zoom():
    pos = auto_position(
        300, 300, "auto", parse_geojson({"type": "Point", "coordinates": [13.4, 52.5]})
    )
    assert pos.zoom == MAX_AUTO_ZOOM
    assert pos.center == (52.5, 13.4)


def test_out_of_world_geometries_are_ignored():
    data = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {}, "geometry": BERLIN},
            {
                "type": "Feature",
                "properties": {},
                "geometry": {"type": "Point", "coordinates": [0.0, 95.0]},
            },
        ],
    }
    with_outlier = auto_position(600, 400, "auto", parse_geojson(data))
    without = auto_position(600, 400, "auto", parse_geojson(BERLIN))
    assert with_outlier == without


def test_mask_polygon_contributes_its_hole():
    hole = [[13.0, 52.0], [14.0, 52.0], [14.0, 53.0], [13.0, 53.0], [13.0, 52.0]]
    mask = _polygon(-360.0, -95.0, 360.0, 95.0, holes=[hole])
    bounds = get_valid_bounds(parse_geojson(mask))
    assert bounds == get_valid_bounds(parse_geojson(BERLIN))
    assert auto_position(600, 400, "auto", parse_geojson(mask)) == auto_position(
        600, 400, "auto", parse_geojson(BERLIN)
    )


def test_no_valid_bounds_frames_world():
    outlier = {"type": "Point", "coordinates": [0.0, 95.0]}
    pos = auto_position(600, 400, "auto", parse_geojson(outlier))
    center, zoom = fit_bounds(600, 400, None)
    assert pos.zoom == int(zoom)
    assert pos.center == pytest.approx(center)


def test_concrete_zoom_is_kept():
    pos = auto_position(600, 400, 7, parse_geojson(BERLIN))
    assert pos.zoom == 7
    assert 52.0 < pos.center[0] < 53.0
