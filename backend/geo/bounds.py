from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Bounds:
    """
    WGS84 bounding box in lat/lon degrees.

    The empty bounds (min > max) is the "invalid" box: nothing contributed to it.
    Extending it with a valid box yields that box unchanged.
    """

    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @classmethod
    def empty(cls) -> "Bounds":
        return cls(
            min_lat=math.inf, min_lon=math.inf, max_lat=-math.inf, max_lon=-math.inf
        )

    @classmethod
    def of_point(cls, lat: float, lon: float) -> "Bounds":
        return cls(min_lat=lat, min_lon=lon, max_lat=lat, max_lon=lon)

    @classmethod
    def of_coords(cls, coords: list[tuple[float, float]]) -> "Bounds":
        """
        Bounds of a [(lon, lat), ...] sequence (GeoJSON axis order).
        """
        if not coords:
            return cls.empty()
        lons = [float(c[0]) for c in coords]
        lats = [float(c[1]) for c in coords]
        return cls(min_lat=min(lats), min_lon=min(lons), max_lat=max(lats), max_lon=max(lons))

    @property
    def is_valid(self) -> bool:
        return self.min_lat <= self.max_lat and self.min_lon <= self.max_lon

    def extend(self, other: "Bounds") -> "Bounds":
        if not other.is_valid:
            return self
        if not self.is_valid:
            return other
        return Bounds(
            min_lat=min(self.min_lat, other.min_lat),
            min_lon=min(self.min_lon, other.min_lon),
            max_lat=max(self.max_lat, other.max_lat),
            max_lon=max(self.max_lon, other.max_lon),
        )

    def contains(self, other: "Bounds") -> bool:
        if not (self.is_valid and other.is_valid):
            return False
        return (
            other.min_lat >= self.min_lat
            and other.max_lat <= self.max_lat
            and other.min_lon >= self.min_lon
            and other.max_lon <= self.max_lon
        )

    def center(self) -> tuple[float, float]:
        """
        Arithmetic (lat, lon) center. Only meaningful for valid bounds.
        """
        return (
            (self.min_lat + self.max_lat) / 2.0,
            (self.min_lon + self.max_lon) / 2.0,
        )


WORLD = Bounds(min_lat=-90.0, min_lon=-180.0, max_lat=90.0, max_lon=180.0)
