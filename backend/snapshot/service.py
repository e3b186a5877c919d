from __future__ import annotations

import logging
import time

from fastapi.responses import Response

from mapdata.domains import DomainResolver
from mapdata.loader import MapdataLoader
from snapshot.errors import error_response, report_request_error
from snapshot.orchestrator import MapdataLoaderFn, RenderOrchestrator
from snapshot.params import str_to_float, str_to_int, validate_request
from snapshot.response import build_response
from snapshot.route import RawSnapshotRequest
from sources.registry import SourceRegistry, build_sources
from sources.types import ServiceConfig
from telemetry.metrics import Metrics, timing_metric_name


_LOGGER = logging.getLogger("snapshot.service")


def _event_zoom(zoom: str) -> int | None:
    # Unvalidated input; keep it inside the events.zoom INTEGER column.
    z = str_to_int(zoom)
    return z if z is not None and 0 <= z <= 64 else None


class SnapshotService:
    """
    Request handler for static snapshots.

    Sources, allow-lists and the map-data loader are fixed at construction and
    shared read-only by all requests.
    """

    def __init__(
        self,
        *,
        sources: SourceRegistry,
        orchestrator: RenderOrchestrator,
        metrics: Metrics | None = None,
    ):
        self.sources = sources
        self.orchestrator = orchestrator
        self.metrics = metrics or Metrics()

    @classmethod
    def from_config(cls, cfg: ServiceConfig) -> "SnapshotService":
        domains: DomainResolver | None = None
        loader: MapdataLoaderFn | None = None
        if cfg.allowedDomains is not None:
            domains = DomainResolver.from_lists(
                cfg.allowedDomains.https, cfg.allowedDomains.http
            )
            loader = MapdataLoader(
                api_path=cfg.mapdata.apiPath,
                timeout_s=cfg.mapdata.timeoutS,
                user_agent=cfg.mapdata.userAgent,
            )
        _LOGGER.info(
            "snapshot service: %d sources, overlays %s",
            len(cfg.sources),
            "enabled" if domains is not None else "disabled",
        )
        return cls(
            sources=SourceRegistry(build_sources(cfg)),
            orchestrator=RenderOrchestrator(domains=domains, loader=loader),
        )

    async def handle(self, raw: RawSnapshotRequest) -> Response:
        start = time.perf_counter()
        try:
            params = validate_request(
                raw, self.sources, overlays_enabled=self.orchestrator.overlays_enabled
            )
            result = await self.orchestrator.render(params)
        except Exception as err:
            reported = report_request_error(err, self.metrics)
            self.metrics.record_timing(
                reported.metric,
                start,
                source_id=raw.src,
                zoom=_event_zoom(raw.zoom),
                format=raw.format,
                scale=str_to_float(raw.scale),
                status=reported.status,
            )
            return error_response(reported)

        response = build_response(result, params.source)
        self.metrics.end_timing(
            timing_metric_name(params.source.id, result.zoom, params.format, params.scale),
            start,
            source_id=params.source.id,
            zoom=result.zoom,
            format=params.format,
            scale=params.scale,
        )
        return response

    async def close(self) -> None:
        await self.sources.close()
        close = getattr(self.orchestrator.loader, "close", None)
        if close is not None:
            await close()
