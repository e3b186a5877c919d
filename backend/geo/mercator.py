from __future__ import annotations

import math
from functools import lru_cache

import numpy as np
from pyproj import Transformer

from geo.bounds import WORLD, Bounds


TILE_SIZE = 256
MAX_MERCATOR_LAT = 85.0511287798

# Half the EPSG:3857 world width in meters.
_HALF_WORLD_M = 20037508.342789244


@lru_cache(maxsize=1)
def transformer_4326_to_3857() -> Transformer:
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


@lru_cache(maxsize=1)
def transformer_3857_to_4326() -> Transformer:
    return Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


def world_size(zoom: float, *, tile_size: int = TILE_SIZE) -> float:
    return tile_size * (2.0 ** zoom)


def project(
    lat: float, lon: float, zoom: float, *, tile_size: int = TILE_SIZE
) -> tuple[float, float]:
    """
    lat/lon -> global pixel (x, y) at zoom; y grows southwards.
    """
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, float(lat)))
    x_m, y_m = transformer_4326_to_3857().transform(float(lon), lat)
    size = world_size(zoom, tile_size=tile_size)
    x = (x_m + _HALF_WORLD_M) / (2.0 * _HALF_WORLD_M) * size
    y = (_HALF_WORLD_M - y_m) / (2.0 * _HALF_WORLD_M) * size
    return x, y


def unproject(
    x: float, y: float, zoom: float, *, tile_size: int = TILE_SIZE
) -> tuple[float, float]:
    """
    Global pixel (x, y) at zoom -> (lat, lon).
    """
    size = world_size(zoom, tile_size=tile_size)
    x_m = float(x) / size * (2.0 * _HALF_WORLD_M) - _HALF_WORLD_M
    y_m = _HALF_WORLD_M - float(y) / size * (2.0 * _HALF_WORLD_M)
    lon, lat = transformer_3857_to_4326().transform(x_m, y_m)
    return float(lat), float(lon)


def scale_zoom(scale: float, from_zoom: float) -> float:
    """
    Zoom at which the map is `scale` times larger than at `from_zoom`.
    """
    if scale <= 0:
        return -math.inf
    if math.isinf(scale):
        return math.inf
    return from_zoom + math.log2(scale)


def bounds_zoom(bounds: Bounds, width: int, height: int, *, from_zoom: float = 0.0) -> float:
    """
    Largest zoom at which `bounds` fits inside a width x height viewport.

    Snaps values within 1% of an integer level before flooring. A degenerate
    bounds (zero extent on both axes) has no limit and returns +inf.
    """
    nw_x, nw_y = project(bounds.max_lat, bounds.min_lon, from_zoom)
    se_x, se_y = project(bounds.min_lat, bounds.max_lon, from_zoom)
    span_x = abs(se_x - nw_x)
    span_y = abs(se_y - nw_y)

    scale_x = width / span_x if span_x > 0 else math.inf
    scale_y = height / span_y if span_y > 0 else math.inf
    zoom = scale_zoom(min(scale_x, scale_y), from_zoom)
    if math.isinf(zoom):
        return zoom
    zoom = round(zoom * 100.0) / 100.0
    return max(0.0, float(math.floor(zoom)))


def fit_bounds(
    width: int, height: int, bounds: Bounds | None
) -> tuple[tuple[float, float], float]:
    """
    Center (lat, lon) and zoom that frame `bounds` in a width x height viewport.

    Empty or missing bounds frame the whole world. The center is the pixel
    midpoint of the bounds at the fitted zoom; when the zoom is unbounded it is
    the arithmetic center instead.
    """
    if bounds is None or not bounds.is_valid:
        bounds = WORLD

    zoom = bounds_zoom(bounds, width, height)
    if math.isinf(zoom):
        return bounds.center(), zoom

    sw_x, sw_y = project(bounds.min_lat, bounds.min_lon, zoom)
    ne_x, ne_y = project(bounds.max_lat, bounds.max_lon, zoom)
    center = unproject((sw_x + ne_x) / 2.0, (sw_y + ne_y) / 2.0, zoom)
    return center, zoom


def project_coords(
    coords: list[tuple[float, float]], zoom: float, *, tile_size: int = TILE_SIZE
) -> np.ndarray:
    """
    Vectorized `project` for [(lon, lat), ...]; returns an (n, 2) pixel array.
    """
    if not coords:
        return np.empty((0, 2), dtype=np.float64)
    arr = np.asarray(coords, dtype=np.float64)
    lats = np.clip(arr[:, 1], -MAX_MERCATOR_LAT, MAX_MERCATOR_LAT)
    x_m, y_m = transformer_4326_to_3857().transform(arr[:, 0], lats)
    size = world_size(zoom, tile_size=tile_size)
    px = (np.asarray(x_m) + _HALF_WORLD_M) / (2.0 * _HALF_WORLD_M) * size
    py = (_HALF_WORLD_M - np.asarray(y_m)) / (2.0 * _HALF_WORLD_M) * size
    return np.column_stack([px, py])
