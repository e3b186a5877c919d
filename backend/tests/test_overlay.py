import asyncio
import io

import pytest
from PIL import Image

from mapdata.geojson import parse_geojson
from render.overlay import OverlayTileSource, create_overlay_source, overlay_url
from render.stitch import RenderError


def _square(min_lon, min_lat, max_lon, max_lat):
    return [
        [min_lon, min_lat],
        [max_lon, min_lat],
        [max_lon, max_lat],
        [min_lon, max_lat],
        [min_lon, min_lat],
    ]


def _feature(coordinates, **props):
    return {
        "type": "Feature",
        "properties": props,
        "geometry": {"type": "Polygon", "coordinates": coordinates},
    }


def _pixel(data: bytes, xy):
    with Image.open(io.BytesIO(data)) as im:
        return im.convert("RGBA").getpixel(xy)


def test_polygon_fill_and_transparent_background():
    src = OverlayTileSource(
        parse_geojson(
            _feature(
                [_square(-90, -60, 90, 60)],
                fill="#ff0000",
                **{"fill-opacity": 1, "stroke-width": 0},
            )
        )
    )
    data = src.render_tile(0, 0, 0)
    assert _pixel(data, (128, 128)) == (255, 0, 0, 255)
    assert _pixel(data, (2, 2))[3] == 0


def test_polygon_hole_is_not_filled():
    src = OverlayTileSource(
        parse_geojson(
            _feature(
                [_square(-90, -60, 90, 60), _square(-30, -20, 30, 20)],
                fill="#ff0000",
                **{"fill-opacity": 1, "stroke-width": 0},
            )
        )
    )
    data = src.render_tile(0, 0, 0)
    assert _pixel(data, (128, 128))[3] == 0
    assert _pixel(data, (70, 128))[3] == 255


def test_default_fill_opacity():
    src = OverlayTileSource(parse_geojson(_feature([_square(-90, -60, 90, 60)])))
    r, g, b, a = _pixel(src.render_tile(0, 0, 0), (128, 128))
    assert abs(a - 153) <= 1
    assert all(abs(c - 85) <= 1 for c in (r, g, b))


def test_tiles_without_features_are_empty():
    src = OverlayTileSource(parse_geojson(_feature([_square(-90, -60, 90, 60)])))
    data = src.render_tile(2, 3, 3)
    with Image.open(io.BytesIO(data)) as im:
        assert im.size == (256, 256)
        assert im.convert("RGBA").getextrema()[3] == (0, 0)


def test_marker_and_line_are_drawn():
    data = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"marker-color": "#00ff00"},
                "geometry": {"type": "Point", "coordinates": [0, 0]},
            },
            {
                "type": "Feature",
                "properties": {"stroke": "#0000ff", "stroke-width": 4},
                "geometry": {"type": "LineString", "coordinates": [[-170, -45], [-10, -45]]},
            },
        ],
    }
    src = OverlayTileSource(parse_geojson(data))
    tile = src.render_tile(0, 0, 0)
    assert _pixel(tile, (128, 128)) == (0, 255, 0, 255)
    r, g, b, a = _pixel(tile, (60, 128 + 36))
    assert (b, a) == (255, 255)


def test_overlay_url_roundtrip_and_scale():
    geojson = {"type": "Point", "coordinates": [13.4, 52.5]}
    assert overlay_url(geojson, scale=2).startswith("overlaydata://2x:")
    src = create_overlay_source(overlay_url(geojson, scale=2))
    assert src.tile_size == 512
    src = create_overlay_source(overlay_url(geojson))
    assert src.tile_size == 256
    assert len(src.leaves) == 1


def test_create_overlay_source_rejects_bad_payload():
    with pytest.raises(RenderError):
        create_overlay_source("overlaydata://{not json")
    with pytest.raises(RenderError):
        create_overlay_source("https://example.org")


def test_get_tile_is_png():
    src = OverlayTileSource(parse_geojson(_feature([_square(-90, -60, 90, 60)])))
    data, headers = asyncio.run(src.get_tile(0, 0, 0))
    assert headers["Content-Type"] == "image/png"
    assert data.startswith(b"\x89PNG")
