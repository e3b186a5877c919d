import asyncio
import io
from dataclasses import replace

import pytest
from PIL import Image

from geo.tiles import tile_bbox_4326, tiles_for_view
from render.stitch import RenderError, RenderParams, ViewCenter, reduce_headers, render_snapshot


def _params(tiles, *, zoom=3, lat=40.0, lon=-74.0, width=300, height=200, fmt="png"):
    return RenderParams(
        zoom=zoom,
        scale=1,
        center=ViewCenter(lat=lat, lon=lon, width=width, height=height),
        format=fmt,
        tiles=tiles,
    )


def test_tile_bbox_4326_z0_covers_world():
    b = tile_bbox_4326(0, 0, 0)
    assert b.min_lon == -180.0
    assert b.max_lon == 180.0
    assert b.max_lat == pytest.approx(85.0511287798)
    assert b.min_lat == pytest.approx(-85.0511287798)


def test_tiles_for_view_wraps_columns_and_drops_rows():
    placements = tiles_for_view(0, -0.1, 0.1, 600, 400)
    assert {p.x for p in placements} == {0}
    assert {p.y for p in placements} == {0}
    assert sorted(p.px for p in placements) == [-84, 172, 428]
    assert {p.py for p in placements} == {72}


def test_tiles_for_view_covers_viewport():
    placements = tiles_for_view(5, 40.0, -74.0, 600, 400)
    assert placements
    for p in placements:
        assert p.px < 600 and p.px + 256 > 0
        assert p.py < 400 and p.py + 256 > 0
    assert len({(p.x, p.y) for p in placements}) == len(placements)


def test_render_snapshot_stitches_tiles(solid_tiles):
    tiles = solid_tiles(color=(10, 120, 200, 255))
    result = asyncio.run(render_snapshot(_params(tiles)))

    assert result.headers["Content-Type"] == "image/png"
    assert tiles.requested
    with Image.open(io.BytesIO(result.data)) as im:
        assert im.size == (300, 200)
        assert im.convert("RGBA").getpixel((150, 100)) == (10, 120, 200, 255)


def test_render_snapshot_jpeg(solid_tiles):
    result = asyncio.run(render_snapshot(_params(solid_tiles(), fmt="jpeg")))
    assert result.headers["Content-Type"] == "image/jpeg"
    with Image.open(io.BytesIO(result.data)) as im:
        assert im.format == "JPEG"


def test_tile_fetches_are_bounded(make_png):
    class SlowTiles:
        def __init__(self):
            self.in_flight = 0
            self.peak = 0
            self.count = 0

        async def get_tile(self, z, x, y):
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            self.count += 1
            await asyncio.sleep(0.005)
            self.in_flight -= 1
            return make_png((256, 256), (0, 0, 0, 255)), {}

    tiles = SlowTiles()
    params = replace(_params(tiles, zoom=5, width=1024, height=1024), max_fetches=3)
    asyncio.run(render_snapshot(params))

    assert tiles.count >= 16
    assert tiles.peak == 3


def test_missing_tiles_leave_transparent_gap(solid_tiles):
    tiles = solid_tiles(missing={(0, 0, 0)})
    result = asyncio.run(render_snapshot(_params(tiles, zoom=0, lat=-0.1, lon=0.1)))
    with Image.open(io.BytesIO(result.data)) as im:
        assert im.convert("RGBA").getpixel((10, 10))[3] == 0


def test_tile_fetch_error_fails_render(failing_tiles):
    with pytest.raises(RenderError):
        asyncio.run(render_snapshot(_params(failing_tiles(RenderError("upstream down")))))


def test_invalid_tile_bytes_fail_render():
    class GarbageTiles:
        async def get_tile(self, z, x, y):
            return b"not an image", {}

    with pytest.raises(RenderError):
        asyncio.run(render_snapshot(_params(GarbageTiles())))


def test_reduce_headers():
    headers = reduce_headers(
        [
            {"ETag": '"a"', "Last-Modified": "Mon, 01 Jan 2024 00:00:00 GMT"},
            {
                "etag": '"b"',
                "last-modified": "Tue, 02 Jan 2024 00:00:00 GMT",
                "Cache-Control": "max-age=300",
            },
        ],
        "png",
    )
    assert headers["Content-Type"] == "image/png"
    assert headers["Last-Modified"] == "Tue, 02 Jan 2024 00:00:00 GMT"
    assert headers["Cache-Control"] == "max-age=300"
    assert headers["ETag"].startswith('"') and len(headers["ETag"]) == 34


def test_reduce_headers_skips_partial_etags():
    headers = reduce_headers([{"ETag": '"a"'}, {}], "jpeg")
    assert "ETag" not in headers
    assert headers == {"Content-Type": "image/jpeg"}
