from __future__ import annotations

import logging
from enum import Enum

import httpx
from fastapi.responses import JSONResponse
from PIL import UnidentifiedImageError

from mapdata.loader import MapdataError
from render.stitch import RenderError
from telemetry.metrics import Metrics


_LOGGER = logging.getLogger("snapshot.errors")


class ErrorKind(str, Enum):
    unknown_source = "UnknownSource"
    invalid_zoom = "InvalidZoom"
    domain_not_allowed = "DomainNotAllowed"
    static_disabled = "StaticDisabled"
    format_not_allowed = "FormatNotAllowed"
    size_not_integer = "SizeNotInteger"
    size_too_large = "SizeTooLarge"
    coords_not_numeric = "CoordsNotNumeric"
    overlays_disabled = "OverlaysDisabled"
    missing_domain_or_title = "MissingDomainOrTitle"
    overlay_format_not_png = "OverlayFormatNotPng"
    title_contains_delimiter = "TitleContainsDelimiter"
    mapdata_error = "MapdataError"
    render_error = "RenderError"


# kind -> (metric name, HTTP status)
_KIND_INFO: dict[ErrorKind, tuple[str, int]] = {
    ErrorKind.unknown_source: ("err.req.source", 404),
    ErrorKind.invalid_zoom: ("err.req.zoom", 400),
    ErrorKind.domain_not_allowed: ("err.req.domain", 400),
    ErrorKind.static_disabled: ("err.req.static", 403),
    ErrorKind.format_not_allowed: ("err.req.stformat", 400),
    ErrorKind.size_not_integer: ("err.req.stsize", 400),
    ErrorKind.size_too_large: ("err.req.stsizebig", 400),
    ErrorKind.coords_not_numeric: ("err.req.stcoords", 400),
    ErrorKind.overlays_disabled: ("err.req.stdisabled", 403),
    ErrorKind.missing_domain_or_title: ("err.req.stboth", 400),
    ErrorKind.overlay_format_not_png: ("err.req.stnonpng", 400),
    ErrorKind.title_contains_delimiter: ("err.req.stpipe", 400),
    ErrorKind.mapdata_error: ("err.mapdata", 502),
    ErrorKind.render_error: ("err.render", 502),
}


class SnapshotError(Exception):
    """
    A request failure with a machine-readable kind.

    The kind decides the metric that gets incremented and the HTTP status.
    """

    def __init__(self, kind: ErrorKind, message: str, *, status: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        metric, default_status = _KIND_INFO[kind]
        self.metric = metric
        self.status = status if status is not None else default_status


def classify_error(err: Exception) -> SnapshotError | None:
    """
    Map known failures onto a SnapshotError; None means "unexpected".
    """
    if isinstance(err, SnapshotError):
        return err
    if isinstance(err, MapdataError):
        return SnapshotError(ErrorKind.mapdata_error, str(err), status=err.status)
    if isinstance(err, (RenderError, UnidentifiedImageError)):
        return SnapshotError(ErrorKind.render_error, str(err) or "Render failed")
    if isinstance(err, httpx.HTTPError):
        return SnapshotError(
            ErrorKind.render_error, f"Upstream request failed: {type(err).__name__}: {err}"
        )
    return None


def report_request_error(err: Exception, metrics: Metrics) -> SnapshotError:
    """
    Count and log a request failure, returning its classified form.

    Unexpected errors are re-raised so FastAPI's generic handler deals with them.
    """
    reported = classify_error(err)
    if reported is None:
        metrics.increment("err.unknown")
        raise err

    metrics.increment(reported.metric)
    if reported.status >= 500:
        _LOGGER.error("%s: %s", reported.kind.value, reported.message, exc_info=err)
    else:
        _LOGGER.warning("%s: %s", reported.kind.value, reported.message)
    return reported


def error_response(reported: SnapshotError) -> JSONResponse:
    return JSONResponse(
        status_code=reported.status,
        content={"error": reported.kind.value, "message": reported.message},
    )
