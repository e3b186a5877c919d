from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, Union

from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.base import BaseGeometry

from geo.bounds import Bounds


Coord: TypeAlias = tuple[float, float]  # (lon, lat), GeoJSON axis order
Ring: TypeAlias = list[Coord]


@dataclass(frozen=True)
class PointGeometry:
    lon: float
    lat: float
    props: dict[str, Any] = field(default_factory=dict)
    kind: Literal["point"] = "point"

    def bounds(self) -> Bounds:
        return Bounds.of_point(self.lat, self.lon)

    def to_shapely(self) -> BaseGeometry:
        return Point(self.lon, self.lat)


@dataclass(frozen=True)
class LineStringGeometry:
    coords: Ring
    props: dict[str, Any] = field(default_factory=dict)
    kind: Literal["linestring"] = "linestring"

    def bounds(self) -> Bounds:
        return Bounds.of_coords(self.coords)

    def to_shapely(self) -> BaseGeometry:
        if not self.coords:
            return LineString()
        if len(self.coords) == 1:
            return Point(self.coords[0])
        return LineString(self.coords)


@dataclass(frozen=True)
class PolygonGeometry:
    """
    Outer ring plus optional hole rings.

    A polygon covering the whole world with a single hole is a "mask": the hole
    marks the area of interest.
    """

    outer: Ring
    holes: list[Ring] = field(default_factory=list)
    props: dict[str, Any] = field(default_factory=dict)
    kind: Literal["polygon"] = "polygon"

    def bounds(self) -> Bounds:
        return Bounds.of_coords(self.outer)

    def hole_bounds(self) -> Bounds | None:
        if not self.holes or not self.holes[0]:
            return None
        return Bounds.of_coords(self.holes[0])

    def to_shapely(self) -> BaseGeometry:
        if len(self.outer) < 3:
            return LineStringGeometry(coords=self.outer).to_shapely()
        return Polygon(self.outer, [h for h in self.holes if len(h) >= 3])


@dataclass(frozen=True)
class GeometryCollection:
    children: list["Geometry"] = field(default_factory=list)
    kind: Literal["collection"] = "collection"

    def bounds(self) -> Bounds:
        out = Bounds.empty()
        for child in self.children:
            out = out.extend(child.bounds())
        return out

    def leaves(self) -> list["LeafGeometry"]:
        out: list[LeafGeometry] = []
        for child in self.children:
            if isinstance(child, GeometryCollection):
                out.extend(child.leaves())
            else:
                out.append(child)
        return out


LeafGeometry: TypeAlias = Union[PointGeometry, LineStringGeometry, PolygonGeometry]
Geometry: TypeAlias = Union[LeafGeometry, GeometryCollection]
