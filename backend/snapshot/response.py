from __future__ import annotations

from fastapi.responses import Response

from snapshot.orchestrator import SnapshotResult
from sources.registry import Source


def response_headers(source: Source, data_headers: dict[str, str]) -> dict[str, str]:
    """
    Source-configured headers first, then the render's own headers on top.
    """
    out: dict[str, str] = {}
    seen: dict[str, str] = {}
    for headers in (source.config.headers, data_headers):
        for key, value in (headers or {}).items():
            previous = seen.get(key.lower())
            if previous is not None:
                out.pop(previous, None)
            seen[key.lower()] = key
            out[key] = value
    return out


def build_response(result: SnapshotResult, source: Source) -> Response:
    return Response(content=result.data, headers=response_headers(source, result.headers))
