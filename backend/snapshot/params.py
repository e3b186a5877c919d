from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from sources.registry import Source, SourceRegistry, UnknownSourceError
from snapshot.errors import ErrorKind, SnapshotError
from snapshot.route import RawSnapshotRequest


AUTO = "auto"
ALLOWED_FORMATS = ("png", "jpeg")
TITLE_DELIMITER = "|"

_LOGGER = logging.getLogger("snapshot.params")

_INT_RE = re.compile(r"^-?\d+$")


def str_to_int(value: str | int | None) -> int | None:
    if isinstance(value, int):
        return value
    if value is None or not _INT_RE.match(value.strip()):
        return None
    return int(value)


def str_to_float(value: str | float | None) -> float | None:
    """
    Finite float or None.
    """
    if value is None:
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def validate_zoom(zoom: str | int, source: Source) -> int:
    z = str_to_int(zoom)
    cfg = source.config
    if z is None or z < cfg.minzoom or z > cfg.maxzoom:
        raise SnapshotError(
            ErrorKind.invalid_zoom,
            f"Invalid zoom {zoom}: must be an integer in [{cfg.minzoom}, {cfg.maxzoom}]",
        )
    return z


def normalize_scale(requested: str | None) -> float:
    """
    The effective render scale. Always 1.

    Overlays only come in 1x and 2x, so the request is snapped to one of
    those. A 2x overlay composited onto its base map lands off position,
    so snapshots render at 1x whatever was asked for.
    """
    scale = str_to_float(requested)
    snapped = 1.0 if not scale or scale < 1.5 else 2.0
    if snapped != 1.0:
        _LOGGER.debug("scale %s requested, rendering at 1x", requested)
    return 1.0


def clamp_lat(lat: float) -> float:
    return min(85.0, max(-85.0, lat))


def clamp_lon(lon: float) -> float:
    return min(180.0, max(-180.0, lon))


@dataclass(frozen=True)
class OverlayRequest:
    domain: str
    title: str
    groups: str | None = None


@dataclass(frozen=True)
class SnapshotParams:
    """
    Validated request.

    On the direct path zoom/lat/lon are concrete. On the overlay path they may
    still be "auto" (or unparsed strings) until the map data is loaded.
    """

    source: Source
    zoom: int | str
    lat: float | str
    lon: float | str
    width: int
    height: int
    scale: float
    format: str
    overlay: OverlayRequest | None = None

    @property
    def needs_auto_position(self) -> bool:
        return AUTO in (self.zoom, self.lat, self.lon)


def validate_request(
    raw: RawSnapshotRequest, sources: SourceRegistry, *, overlays_enabled: bool
) -> SnapshotParams:
    """
    Validate a raw request and select the render path.

    Raises SnapshotError before any I/O happens.
    """
    try:
        source = sources.get_public(raw.src)
    except UnknownSourceError as exc:
        raise SnapshotError(ErrorKind.unknown_source, str(exc)) from exc
    cfg = source.config

    scale = normalize_scale(raw.scale)

    if not cfg.static:
        raise SnapshotError(
            ErrorKind.static_disabled,
            "Static snapshot images are not enabled for this source",
        )
    if raw.format not in ALLOWED_FORMATS or raw.format not in cfg.formats:
        raise SnapshotError(
            ErrorKind.format_not_allowed,
            f"Format {raw.format} is not allowed for static images",
        )

    width = str_to_int(raw.w)
    height = str_to_int(raw.h)
    if width is None or height is None or width <= 0 or height <= 0:
        raise SnapshotError(
            ErrorKind.size_not_integer,
            "The width and height params must be positive integers for static images",
        )
    if width > cfg.maxwidth or height > cfg.maxheight:
        raise SnapshotError(ErrorKind.size_too_large, "Requested image is too big")

    if not raw.wants_overlay:
        zoom = validate_zoom(raw.zoom, source)
        lat = str_to_float(raw.lat)
        lon = str_to_float(raw.lon)
        if lat is None or lon is None:
            raise SnapshotError(
                ErrorKind.coords_not_numeric,
                "The lat and lon coordinates must be numeric for static images",
            )
        return SnapshotParams(
            source=source,
            zoom=zoom,
            lat=lat,
            lon=lon,
            width=width,
            height=height,
            scale=scale,
            format=raw.format,
        )

    if not overlays_enabled:
        raise SnapshotError(
            ErrorKind.overlays_disabled,
            "Snapshot overlays are disabled, allowedDomains is not configured",
        )
    if not raw.domain or not raw.title:
        raise SnapshotError(
            ErrorKind.missing_domain_or_title, "Both domain and title params are required"
        )
    if raw.format != "png":
        raise SnapshotError(
            ErrorKind.overlay_format_not_png,
            "Only png format is allowed for images with overlays",
        )
    if TITLE_DELIMITER in raw.title:
        raise SnapshotError(
            ErrorKind.title_contains_delimiter,
            'title param may not contain pipe "|" symbol',
        )

    return SnapshotParams(
        source=source,
        zoom=raw.zoom,
        lat=raw.lat,
        lon=raw.lon,
        width=width,
        height=height,
        scale=scale,
        format=raw.format,
        overlay=OverlayRequest(domain=raw.domain, title=raw.title, groups=raw.groups),
    )
