from __future__ import annotations

import asyncio
import hashlib
import io
from dataclasses import dataclass
from datetime import timezone
from email.utils import format_datetime, parsedate_to_datetime

from PIL import Image

from geo.mercator import TILE_SIZE
from geo.tiles import TilePlacement, tiles_for_view
from render.image import EncoderProfile, encode_pil
from sources.tiles import TileNotFound, TileSource


_CONTENT_TYPES = {"png": "image/png", "jpeg": "image/jpeg"}

# Upper bound on in-flight tile requests per render.
MAX_TILE_FETCHES = 16


class RenderError(Exception):
    pass


@dataclass(frozen=True)
class ViewCenter:
    lat: float
    lon: float
    width: int
    height: int


@dataclass(frozen=True)
class RenderParams:
    """
    Everything the tile stitcher needs for one snapshot.
    """

    zoom: int
    scale: float
    center: ViewCenter
    format: str
    tiles: TileSource
    jpeg_quality: int = 90
    max_fetches: int = MAX_TILE_FETCHES


@dataclass(frozen=True)
class RenderResult:
    data: bytes
    headers: dict[str, str]


async def _fetch(
    tiles: TileSource, placement: TilePlacement, semaphore: asyncio.Semaphore
) -> tuple[TilePlacement, bytes | None, dict[str, str]]:
    try:
        async with semaphore:
            data, headers = await tiles.get_tile(placement.z, placement.x, placement.y)
    except TileNotFound:
        return placement, None, {}
    return placement, data, headers


async def render_snapshot(params: RenderParams) -> RenderResult:
    """
    Render a snapshot by fetching the covering tiles and stitching them.

    Tiles are fetched concurrently, at most `max_fetches` at a time; the
    first fetch error fails the render.
    Missing tiles leave a transparent gap.
    """
    out_w = int(round(params.center.width * params.scale))
    out_h = int(round(params.center.height * params.scale))
    placements = tiles_for_view(
        params.zoom,
        params.center.lat,
        params.center.lon,
        out_w,
        out_h,
        scale=params.scale,
    )
    semaphore = asyncio.Semaphore(max(1, params.max_fetches))
    fetched = await asyncio.gather(
        *(_fetch(params.tiles, p, semaphore) for p in placements)
    )
    tile_size = int(round(TILE_SIZE * params.scale))
    return await asyncio.to_thread(
        _stitch, fetched, out_w, out_h, tile_size, params.format, params.jpeg_quality
    )


def _stitch(
    fetched: list[tuple[TilePlacement, bytes | None, dict[str, str]]],
    width: int,
    height: int,
    tile_size: int,
    fmt: str,
    jpeg_quality: int,
) -> RenderResult:
    if fmt not in _CONTENT_TYPES:
        raise RenderError(f"Unsupported snapshot format: {fmt}")

    canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    tile_headers: list[dict[str, str]] = []
    for placement, data, headers in fetched:
        if data is None:
            continue
        try:
            with Image.open(io.BytesIO(data)) as im:
                tile = im.convert("RGBA")
        except (OSError, ValueError) as exc:
            raise RenderError(
                f"Tile {placement.z}/{placement.x}/{placement.y} is not a valid image"
            ) from exc
        if tile.size != (tile_size, tile_size):
            tile = tile.resize((tile_size, tile_size))
        canvas.paste(tile, (placement.px, placement.py))
        tile_headers.append(headers)

    profile = EncoderProfile.parse(fmt, quality=jpeg_quality)
    return RenderResult(
        data=encode_pil(canvas, profile), headers=reduce_headers(tile_headers, fmt)
    )


def reduce_headers(tile_headers: list[dict[str, str]], fmt: str) -> dict[str, str]:
    """
    Merge per-tile response headers into one set for the snapshot.

    - Content-Type follows the snapshot format.
    - Last-Modified is the latest of the tiles.
    - ETag hashes the tile ETags (only when every tile has one).
    - Cache-Control is taken from the first tile that sends it.
    """
    out = {"Content-Type": _CONTENT_TYPES[fmt]}
    lowered = [{k.lower(): v for k, v in h.items()} for h in tile_headers]

    modified = []
    for h in lowered:
        value = h.get("last-modified")
        if not value:
            continue
        try:
            dt = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        modified.append(dt.astimezone(timezone.utc))
    if modified:
        out["Last-Modified"] = format_datetime(max(modified), usegmt=True)

    etags = [h["etag"] for h in lowered if h.get("etag")]
    if etags and len(etags) == len(lowered):
        digest = hashlib.md5("".join(etags).encode("utf-8")).hexdigest()
        out["ETag"] = f'"{digest}"'

    for h in lowered:
        if h.get("cache-control"):
            out["Cache-Control"] = h["cache-control"]
            break
    return out
