"""
Pick a center and zoom that frame a set of map features.

Only geometries that lie entirely inside the world extent count towards the
framed area. A polygon that fails that test may still contribute through its
first hole: a "mask" covers the whole globe and cuts out the area of interest.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from geo.bounds import WORLD, Bounds
from geo.mercator import fit_bounds
from mapdata.types import Geometry, GeometryCollection, PolygonGeometry
from snapshot.params import AUTO


MAX_AUTO_ZOOM = 13

_LOGGER = logging.getLogger("snapshot.autoposition")


@dataclass(frozen=True)
class AutoPosition:
    center: tuple[float, float]  # (lat, lon)
    zoom: int | str


def validate_bounds(geom: Geometry) -> Bounds:
    """
    The bounds a single leaf contributes, or the empty bounds for an outlier.
    """
    bounds = geom.bounds()
    if WORLD.contains(bounds):
        return bounds
    if isinstance(geom, PolygonGeometry):
        hole = geom.hole_bounds()
        if hole is not None and WORLD.contains(hole):
            return hole
    return Bounds.empty()


def get_valid_bounds(geom: Geometry) -> Bounds:
    if isinstance(geom, GeometryCollection):
        out = Bounds.empty()
        for child in geom.children:
            out = out.extend(get_valid_bounds(child))
        return out
    return validate_bounds(geom)


def auto_position(
    width: int, height: int, zoom: int | str, data: GeometryCollection
) -> AutoPosition:
    """
    With zoom "auto" both center and zoom come from the fit (zoom capped at
    MAX_AUTO_ZOOM, center kept as fitted). Otherwise the requested zoom is
    kept and only the center is used.
    """
    bounds = get_valid_bounds(data)
    center, fit_zoom = fit_bounds(width, height, bounds if bounds.is_valid else None)

    if zoom == AUTO:
        zoom = MAX_AUTO_ZOOM if math.isinf(fit_zoom) else int(min(fit_zoom, MAX_AUTO_ZOOM))

    _LOGGER.debug(
        "auto position bounds_valid=%s center=%s zoom=%s", bounds.is_valid, center, zoom
    )
    return AutoPosition(center=center, zoom=zoom)
