from __future__ import annotations

import re
from dataclasses import dataclass


# {src},{zoom|auto},{lat|auto},{lon|auto},{w}x{h}[@{scale}x].{format}
SNAPSHOT_PATH_RE = re.compile(
    r"^(?P<src>[A-Za-z][-A-Za-z0-9_]*),"
    r"(?P<zoom>\d+|auto),"
    r"(?P<lat>[-\d.]+|auto),"
    r"(?P<lon>[-\d.]+|auto),"
    r"(?P<w>\d+)x(?P<h>\d+)"
    r"(?:@(?P<scale>[\d.]+)x)?"
    r"\.(?P<format>\w+)$"
)


@dataclass(frozen=True)
class RawSnapshotRequest:
    """
    Unvalidated snapshot request, as strings straight from the URL.
    """

    src: str
    zoom: str
    lat: str
    lon: str
    w: str
    h: str
    format: str
    scale: str | None = None
    domain: str | None = None
    title: str | None = None
    groups: str | None = None

    @property
    def wants_overlay(self) -> bool:
        return bool(self.domain) or bool(self.title)


def parse_snapshot_path(
    path: str,
    *,
    domain: str | None = None,
    title: str | None = None,
    groups: str | None = None,
) -> RawSnapshotRequest | None:
    m = SNAPSHOT_PATH_RE.match(path)
    if m is None:
        return None
    return RawSnapshotRequest(
        src=m["src"],
        zoom=m["zoom"],
        lat=m["lat"],
        lon=m["lon"],
        w=m["w"],
        h=m["h"],
        scale=m["scale"],
        format=m["format"],
        domain=domain,
        title=title,
        groups=groups,
    )
