from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from mapdata.domains import DomainNotAllowedError, DomainResolver
from mapdata.geojson import parse_geojson
from render import image as codec
from render.overlay import create_overlay_source, overlay_url
from render.stitch import RenderParams, RenderResult, ViewCenter, render_snapshot
from snapshot.autoposition import auto_position
from snapshot.errors import ErrorKind, SnapshotError
from snapshot.params import (
    OverlayRequest,
    SnapshotParams,
    clamp_lat,
    clamp_lon,
    str_to_float,
    validate_zoom,
)
from sources.registry import Source
from sources.tiles import TileSource


_LOGGER = logging.getLogger("snapshot.orchestrator")

T = TypeVar("T")

Renderer = Callable[[RenderParams], Awaitable[RenderResult]]
OverlayFactory = Callable[[str], TileSource]


class MapdataLoaderFn(Protocol):
    async def __call__(
        self, protocol: str, domain: str, title: str, groups: str | None = None
    ) -> dict[str, Any]: ...


def make_render_params(
    *,
    zoom: int,
    lat: float,
    lon: float,
    width: int,
    height: int,
    scale: float,
    format: str,
    tiles: TileSource,
    source: Source,
) -> RenderParams:
    return RenderParams(
        zoom=zoom,
        scale=scale,
        center=ViewCenter(
            lat=clamp_lat(lat), lon=clamp_lon(lon), width=width, height=height
        ),
        format=format,
        tiles=tiles,
        jpeg_quality=source.config.jpegQuality,
    )


async def fork_join(first: Awaitable[T], second: Awaitable[Any]) -> tuple[T, Any]:
    """
    Run two awaitables concurrently and return both results.

    The first failure wins: the other task is cancelled and its outcome
    dropped, and the error propagates unchanged.
    """
    tasks = [asyncio.ensure_future(first), asyncio.ensure_future(second)]
    try:
        done, _pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        # Read every finished task's exception so none is reported as unretrieved.
        errors = [t.exception() for t in tasks if t in done]
        for err in errors:
            if err is not None:
                raise err
        return tasks[0].result(), tasks[1].result()
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()


@dataclass(frozen=True)
class SnapshotResult:
    data: bytes
    headers: dict[str, str]
    zoom: int


class RenderOrchestrator:
    """
    Drives one validated snapshot request down the direct or overlay path.
    """

    def __init__(
        self,
        *,
        domains: DomainResolver | None,
        loader: MapdataLoaderFn | None,
        renderer: Renderer = render_snapshot,
        overlay_factory: OverlayFactory = create_overlay_source,
    ):
        self.domains = domains
        self.loader = loader
        self.renderer = renderer
        self.overlay_factory = overlay_factory

    @property
    def overlays_enabled(self) -> bool:
        return self.domains is not None and self.loader is not None

    async def render(self, params: SnapshotParams) -> SnapshotResult:
        if params.overlay is None:
            return await self.render_direct(params)
        return await self.render_with_overlay(params, params.overlay)

    async def render_direct(self, params: SnapshotParams) -> SnapshotResult:
        _LOGGER.debug("direct render %s z%s", params.source.id, params.zoom)
        rp = make_render_params(
            zoom=int(params.zoom),
            lat=float(params.lat),
            lon=float(params.lon),
            width=params.width,
            height=params.height,
            scale=params.scale,
            format=params.format,
            tiles=params.source.tiles,
            source=params.source,
        )
        result = await self.renderer(rp)
        return SnapshotResult(data=result.data, headers=result.headers, zoom=rp.zoom)

    async def render_with_overlay(
        self, params: SnapshotParams, overlay: OverlayRequest
    ) -> SnapshotResult:
        if not self.overlays_enabled:
            raise SnapshotError(
                ErrorKind.overlays_disabled,
                "Snapshot overlays are disabled, allowedDomains is not configured",
            )
        try:
            protocol = self.domains.protocol_for(overlay.domain)  # type: ignore[union-attr]
        except DomainNotAllowedError as exc:
            raise SnapshotError(ErrorKind.domain_not_allowed, "Domain is not allowed") from exc

        geojson = await self.loader(  # type: ignore[misc]
            protocol, overlay.domain, overlay.title, overlay.groups
        )

        if params.needs_auto_position:
            pos = auto_position(
                params.width, params.height, params.zoom, parse_geojson(geojson)
            )
            lat, lon = pos.center
            zoom_value: int | str = pos.zoom
        else:
            lat = str_to_float(params.lat)
            lon = str_to_float(params.lon)
            if lat is None or lon is None:
                raise SnapshotError(
                    ErrorKind.coords_not_numeric,
                    "The lat and lon coordinates must be numeric for static images",
                )
            zoom_value = params.zoom
        zoom = validate_zoom(zoom_value, params.source)

        common = dict(
            zoom=zoom,
            lat=lat,
            lon=lon,
            width=params.width,
            height=params.height,
            scale=params.scale,
            format=params.format,
            source=params.source,
        )
        base_params = make_render_params(tiles=params.source.tiles, **common)

        async def render_overlay() -> RenderResult:
            tiles = self.overlay_factory(overlay_url(geojson, scale=params.scale))
            return await self.renderer(make_render_params(tiles=tiles, **common))

        base, over = await fork_join(self.renderer(base_params), render_overlay())

        data = await asyncio.to_thread(_composite_png, base.data, over.data)
        return SnapshotResult(data=data, headers=base.headers, zoom=zoom)


def _composite_png(base_data: bytes, overlay_data: bytes) -> bytes:
    base = codec.premultiply(codec.decode(base_data))
    over = codec.premultiply(codec.decode(overlay_data))
    return codec.encode(codec.composite(base, over), codec.PNG8_PROFILE)
