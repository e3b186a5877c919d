from __future__ import annotations

import logging
import threading
import time
from collections import Counter

from telemetry.singleton import get_store


_LOGGER = logging.getLogger("snapshot.metrics")


def timing_metric_name(source_id: str, zoom: int | str, fmt: str, scale: float | None) -> str:
    """
    `req.{src}.{zoom}.{format}.static[.{scale}]`

    The scale's decimal point becomes a comma: dots are the metric path separator.
    """
    name = f"req.{source_id}.{zoom}.{fmt}.static"
    if scale:
        name += "." + _format_scale(scale).replace(".", ",")
    return name


def _format_scale(scale: float) -> str:
    if float(scale).is_integer():
        return str(int(scale))
    return str(scale)


class Metrics:
    """
    Increment-only counters plus request timings.

    Timings go to the DuckDB telemetry store when telemetry is enabled.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def counters(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def end_timing(
        self,
        name: str,
        start: float,
        *,
        source_id: str,
        zoom: int | None,
        format: str,
        scale: float | None,
        status: int = 200,
    ) -> float:
        """
        Count a successful request under `name` and record the time elapsed
        since `start` (a `time.perf_counter()` value).
        """
        self.increment(name)
        return self.record_timing(
            name,
            start,
            source_id=source_id,
            zoom=zoom,
            format=format,
            scale=scale,
            status=status,
        )

    def record_timing(
        self,
        name: str,
        start: float,
        *,
        source_id: str,
        zoom: int | None,
        format: str,
        scale: float | None,
        status: int,
    ) -> float:
        """
        Store one request row. Counters are left alone.
        """
        duration_ms = (time.perf_counter() - start) * 1000.0
        _LOGGER.debug("%s took %.1fms", name, duration_ms)
        store = get_store()
        if store is not None:
            store.record(
                metric=name,
                source_id=source_id,
                zoom=zoom,
                format=format,
                scale=scale,
                status=status,
                duration_ms=duration_ms,
            )
        return duration_ms
