"""
Overlay rendering engine.

Draws GeoJSON onto transparent tiles so the overlay can be stitched exactly
like a base-map source. Styling follows the simplestyle properties
(`stroke`, `stroke-width`, `stroke-opacity`, `fill`, `fill-opacity`,
`marker-color`, `marker-size`).
"""
from __future__ import annotations

import asyncio
import io
import json
from functools import lru_cache
from typing import Any

from PIL import Image, ImageColor, ImageDraw
from shapely.geometry import box as shapely_box
from shapely.strtree import STRtree

from geo.mercator import TILE_SIZE, project_coords
from geo.tiles import tile_bbox_4326
from mapdata.geojson import parse_geojson
from mapdata.types import (
    GeometryCollection,
    LeafGeometry,
    LineStringGeometry,
    PointGeometry,
    PolygonGeometry,
    Ring,
)
from render.stitch import RenderError


OVERLAY_SCHEME = "overlaydata://"

_DEFAULT_STROKE = "#555555"
_DEFAULT_FILL = "#555555"
_DEFAULT_MARKER = "#7e7e7e"
_MARKER_RADIUS = {"small": 5, "medium": 7, "large": 10}
# Extra margin around each tile so strokes and markers that straddle the edge
# are drawn on both neighbours.
_TILE_MARGIN_PX = 16


def overlay_url(geojson: Any, *, scale: float = 1) -> str:
    prefix = "2x:" if scale == 2 else ""
    return OVERLAY_SCHEME + prefix + json.dumps(geojson, separators=(",", ":"))


def create_overlay_source(url: str) -> "OverlayTileSource":
    """
    Build a tile source from an `overlaydata://[2x:]<geojson>` payload.
    """
    if not url.startswith(OVERLAY_SCHEME):
        raise RenderError(f"Not an overlay payload: {url[:32]}")
    payload = url[len(OVERLAY_SCHEME):]
    scale = 1
    if payload.startswith("2x:"):
        scale = 2
        payload = payload[3:]
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise RenderError("Overlay payload is not valid JSON") from exc
    return OverlayTileSource(parse_geojson(data), scale=scale)


def _color(value: Any, default: str, opacity: float) -> tuple[int, int, int, int]:
    try:
        rgb = ImageColor.getrgb(str(value)) if value else ImageColor.getrgb(default)
    except ValueError:
        rgb = ImageColor.getrgb(default)
    alpha = int(round(255 * max(0.0, min(1.0, opacity))))
    return rgb[0], rgb[1], rgb[2], alpha


def _float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@lru_cache(maxsize=4)
def _empty_tile(size: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (size, size), (0, 0, 0, 0)).save(buf, format="PNG")
    return buf.getvalue()


class OverlayTileSource:
    """
    Tile source over an in-memory geometry tree.

    Geometries are indexed once with an STRtree; each tile only draws what
    intersects its (padded) bbox, in input order.
    """

    def __init__(self, features: GeometryCollection, *, scale: int = 1):
        self.scale = scale
        self.tile_size = TILE_SIZE * scale
        self.leaves: list[LeafGeometry] = features.leaves()
        self._shapes = [leaf.to_shapely() for leaf in self.leaves]
        self._tree = STRtree(self._shapes)

    async def get_tile(self, z: int, x: int, y: int) -> tuple[bytes, dict[str, str]]:
        data = await asyncio.to_thread(self.render_tile, z, x, y)
        return data, {"Content-Type": "image/png"}

    def _hits(self, z: int, x: int, y: int) -> list[int]:
        tb = tile_bbox_4326(z, x, y)
        pad_lon = (tb.max_lon - tb.min_lon) * _TILE_MARGIN_PX / self.tile_size
        pad_lat = (tb.max_lat - tb.min_lat) * _TILE_MARGIN_PX / self.tile_size
        query = shapely_box(
            tb.min_lon - pad_lon,
            tb.min_lat - pad_lat,
            tb.max_lon + pad_lon,
            tb.max_lat + pad_lat,
        )
        return sorted(int(i) for i in self._tree.query(query))

    def render_tile(self, z: int, x: int, y: int) -> bytes:
        hits = self._hits(z, x, y)
        if not hits:
            return _empty_tile(self.tile_size)

        size = (self.tile_size, self.tile_size)
        origin = (x * self.tile_size, y * self.tile_size)
        tile = Image.new("RGBA", size, (0, 0, 0, 0))
        for i in hits:
            leaf = self.leaves[i]
            if isinstance(leaf, PolygonGeometry):
                self._draw_polygon(tile, leaf, z, origin)
            elif isinstance(leaf, LineStringGeometry):
                self._draw_line(tile, leaf.coords, leaf.props, z, origin)
            elif isinstance(leaf, PointGeometry):
                self._draw_marker(tile, leaf, z, origin)

        buf = io.BytesIO()
        tile.save(buf, format="PNG")
        return buf.getvalue()

    def _to_pixels(self, ring: Ring, z: int, origin: tuple[int, int]) -> list[tuple[float, float]]:
        pts = project_coords(ring, z, tile_size=TILE_SIZE) * self.scale
        pts[:, 0] -= origin[0]
        pts[:, 1] -= origin[1]
        return [(float(px), float(py)) for px, py in pts]

    def _draw_polygon(
        self, tile: Image.Image, poly: PolygonGeometry, z: int, origin: tuple[int, int]
    ) -> None:
        props = poly.props
        if len(poly.outer) >= 3:
            mask = Image.new("L", tile.size, 0)
            draw = ImageDraw.Draw(mask)
            draw.polygon(self._to_pixels(poly.outer, z, origin), fill=255)
            for hole in poly.holes:
                if len(hole) >= 3:
                    draw.polygon(self._to_pixels(hole, z, origin), fill=0)
            fill = _color(
                props.get("fill"), _DEFAULT_FILL, _float(props.get("fill-opacity"), 0.6)
            )
            layer = Image.new("RGBA", tile.size, fill)
            clear = Image.new("RGBA", tile.size, (0, 0, 0, 0))
            tile.alpha_composite(Image.composite(layer, clear, mask))

        for ring in [poly.outer, *poly.holes]:
            self._draw_line(tile, ring, props, z, origin, closed=True)

    def _draw_line(
        self,
        tile: Image.Image,
        coords: Ring,
        props: dict[str, Any],
        z: int,
        origin: tuple[int, int],
        *,
        closed: bool = False,
    ) -> None:
        if len(coords) < 2:
            return
        width = _float(props.get("stroke-width"), 2.0)
        if width <= 0:
            return
        stroke = _color(
            props.get("stroke"), _DEFAULT_STROKE, _float(props.get("stroke-opacity"), 1.0)
        )
        pts = self._to_pixels(coords, z, origin)
        if closed and pts[0] != pts[-1]:
            pts.append(pts[0])
        layer = Image.new("RGBA", tile.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).line(
            pts, fill=stroke, width=max(1, int(round(width * self.scale))), joint="curve"
        )
        tile.alpha_composite(layer)

    def _draw_marker(
        self, tile: Image.Image, point: PointGeometry, z: int, origin: tuple[int, int]
    ) -> None:
        props = point.props
        radius = _MARKER_RADIUS.get(str(props.get("marker-size") or "medium"), 7)
        radius *= self.scale
        (px, py), = self._to_pixels([(point.lon, point.lat)], z, origin)
        fill = _color(props.get("marker-color"), _DEFAULT_MARKER, 1.0)
        layer = Image.new("RGBA", tile.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).ellipse(
            (px - radius, py - radius, px + radius, py + radius),
            fill=fill,
            outline=(255, 255, 255, 255),
            width=max(1, self.scale),
        )
        tile.alpha_composite(layer)
