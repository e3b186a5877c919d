from __future__ import annotations

from typing import Any

from mapdata.types import (
    Geometry,
    GeometryCollection,
    LineStringGeometry,
    PointGeometry,
    PolygonGeometry,
    Ring,
)


def parse_geojson(data: Any, *, props: dict[str, Any] | None = None) -> GeometryCollection:
    """
    Convert GeoJSON (an object, or a list of objects) into a geometry tree.

    Feature properties are copied onto every leaf produced from that feature.
    Multi* geometries become collections of their single-part counterparts.
    Unknown types and coordinate-less geometries are skipped.
    """
    node = _parse_node(data, props or {})
    if isinstance(node, GeometryCollection):
        return node
    return GeometryCollection(children=[node] if node is not None else [])


def _parse_node(obj: Any, props: dict[str, Any]) -> Geometry | None:
    if isinstance(obj, list):
        return GeometryCollection(children=_compact(_parse_node(o, props) for o in obj))
    if not isinstance(obj, dict):
        return None
    gtype = obj.get("type")

    if gtype == "FeatureCollection":
        return _parse_node(obj.get("features") or [], props)
    if gtype == "Feature":
        own = obj.get("properties")
        feature_props = {**props, **(own if isinstance(own, dict) else {})}
        return _parse_node(obj.get("geometry"), feature_props)
    if gtype == "GeometryCollection":
        return _parse_node(obj.get("geometries") or [], props)

    coords = obj.get("coordinates")
    if not isinstance(coords, (list, tuple)):
        return None

    if gtype == "Point":
        p = _to_coord(coords)
        if p is None:
            return None
        return PointGeometry(lon=p[0], lat=p[1], props=props)
    if gtype == "MultiPoint":
        return GeometryCollection(
            children=_compact(
                _parse_node({"type": "Point", "coordinates": c}, props) for c in coords
            )
        )
    if gtype == "LineString":
        return _to_line(coords, props)
    if gtype == "MultiLineString":
        return GeometryCollection(
            children=_compact(_to_line(c, props) for c in coords)
        )
    if gtype == "Polygon":
        return _to_polygon(coords, props)
    if gtype == "MultiPolygon":
        return GeometryCollection(
            children=_compact(_to_polygon(c, props) for c in coords)
        )
    return None


def _to_line(coords: Any, props: dict[str, Any]) -> LineStringGeometry | None:
    ring = _to_ring(coords)
    if not ring:
        return None
    return LineStringGeometry(coords=ring, props=props)


def _to_polygon(rings: Any, props: dict[str, Any]) -> PolygonGeometry | None:
    if not isinstance(rings, (list, tuple)):
        return None
    parsed = [_to_ring(r) for r in rings]
    if not parsed or not parsed[0]:
        return None
    return PolygonGeometry(outer=parsed[0], holes=parsed[1:], props=props)


def _to_ring(ring: Any) -> Ring:
    out: Ring = []
    if not isinstance(ring, (list, tuple)):
        return out
    for p in ring:
        c = _to_coord(p)
        if c is not None:
            out.append(c)
    return out


def _to_coord(p: Any) -> tuple[float, float] | None:
    if not isinstance(p, (list, tuple)) or len(p) < 2:
        return None
    try:
        return float(p[0]), float(p[1])
    except (TypeError, ValueError):
        return None


def _compact(nodes) -> list[Geometry]:
    return [n for n in nodes if n is not None]
