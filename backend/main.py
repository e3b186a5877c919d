import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from snapshot.route import parse_snapshot_path
from snapshot.service import SnapshotService
from sources.registry import load_config
from telemetry.singleton import get_store, reset_store


logging.basicConfig(
    level=(os.getenv("SNAPSHOT_LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@lru_cache(maxsize=1)
def get_service() -> SnapshotService:
    return SnapshotService.from_config(load_config())


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    if get_service.cache_info().currsize:
        await get_service().close()
        get_service.cache_clear()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.get("/img/{snapshot}")
async def get_snapshot(
    snapshot: str,
    domain: str | None = None,
    title: str | None = None,
    groups: str | None = None,
    service: SnapshotService = Depends(get_service),
) -> Response:
    raw = parse_snapshot_path(snapshot, domain=domain, title=title, groups=groups)
    if raw is None:
        raise HTTPException(status_code=404, detail="Not found")
    return await service.handle(raw)


@app.get("/sources")
def get_sources(service: SnapshotService = Depends(get_service)):
    return [
        {
            "id": src.id,
            "static": src.config.static,
            "formats": src.config.formats,
            "maxwidth": src.config.maxwidth,
            "maxheight": src.config.maxheight,
            "minzoom": src.config.minzoom,
            "maxzoom": src.config.maxzoom,
        }
        for src in service.sources
        if src.config.public
    ]


@app.get("/telemetry/summary")
def telemetry_summary(source_id: str | None = None, since_ms: int | None = None):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": store.summary(source_id=source_id, since_ms=since_ms)}


@app.get("/telemetry/slowest")
def telemetry_slowest(source_id: str | None = None, limit: int = 25):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": store.slowest(source_id=source_id, limit=limit)}


@app.post("/telemetry/reset")
def telemetry_reset():
    reset_store()
    return {"ok": True}


@app.get("/metrics/counters")
def metrics_counters(service: SnapshotService = Depends(get_service)):
    return service.metrics.counters()
