from __future__ import annotations

import math
from dataclasses import dataclass

from geo.bounds import Bounds
from geo.mercator import TILE_SIZE, project


@dataclass(frozen=True)
class TilePlacement:
    """
    A slippy tile and where its top-left corner lands on the snapshot canvas.

    `x` is already wrapped into [0, 2**z); `px`/`py` may be negative.
    """

    z: int
    x: int
    y: int
    px: int
    py: int


def tile_bbox_4326(zoom: int, x: int, y: int) -> Bounds:
    """
    Slippy tile (z/x/y) bounds as a WGS84 bbox.
    """
    z = int(zoom)
    n = 2**z
    x = int(x)
    y = int(y)

    lon_left = x / n * 360.0 - 180.0
    lon_right = (x + 1) / n * 360.0 - 180.0

    def lat_from_tile_y(tile_y: int) -> float:
        # https://wiki.openstreetmap.org/wiki/Slippy_map_tilenames
        t = math.pi * (1.0 - 2.0 * tile_y / n)
        return math.degrees(math.atan(math.sinh(t)))

    return Bounds(
        min_lat=lat_from_tile_y(y + 1),
        min_lon=lon_left,
        max_lat=lat_from_tile_y(y),
        max_lon=lon_right,
    )


def tiles_for_view(
    zoom: int,
    lat: float,
    lon: float,
    width: int,
    height: int,
    *,
    scale: float = 1,
) -> list[TilePlacement]:
    """
    Tiles covering a width x height view centered on lat/lon.

    Columns wrap around the antimeridian; rows outside the world are dropped.
    """
    z = int(zoom)
    n = 2**z
    tile_size = int(round(TILE_SIZE * scale))

    cx, cy = project(lat, lon, z, tile_size=tile_size)
    left = int(math.floor(cx - width / 2.0))
    top = int(math.floor(cy - height / 2.0))

    x0 = int(math.floor(left / tile_size))
    y0 = int(math.floor(top / tile_size))
    x1 = int(math.floor((left + width - 1) / tile_size))
    y1 = int(math.floor((top + height - 1) / tile_size))

    out: list[TilePlacement] = []
    for ty in range(y0, y1 + 1):
        if ty < 0 or ty >= n:
            continue
        for tx in range(x0, x1 + 1):
            out.append(
                TilePlacement(
                    z=z,
                    x=tx % n,
                    y=ty,
                    px=tx * tile_size - left,
                    py=ty * tile_size - top,
                )
            )
    return out
