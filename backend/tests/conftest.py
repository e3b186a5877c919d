import io
import sys
from pathlib import Path

import pytest
from PIL import Image


# Ensure `backend/` is on sys.path so tests can import local modules
# like `snapshot.*`, `geo.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def _no_telemetry(monkeypatch):
    # Telemetry tests opt back in explicitly.
    monkeypatch.setenv("SNAPSHOT_TELEMETRY", "0")


def png_bytes(size: tuple[int, int], color: tuple[int, int, int, int]) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


class SolidTiles:
    """
    Tile source returning one solid colour for every tile, recording requests.
    """

    def __init__(self, color=(10, 120, 200, 255), headers=None, missing=()):
        self.color = color
        self.headers = headers if headers is not None else {"Content-Type": "image/png"}
        self.missing = set(missing)
        self.requested: list[tuple[int, int, int]] = []

    async def get_tile(self, z, x, y):
        from sources.tiles import TileNotFound

        self.requested.append((z, x, y))
        if (z, x, y) in self.missing:
            raise TileNotFound(f"{z}/{x}/{y}")
        return png_bytes((256, 256), self.color), dict(self.headers)


class FailingTiles:
    def __init__(self, exc: Exception):
        self.exc = exc

    async def get_tile(self, z, x, y):
        raise self.exc


@pytest.fixture
def solid_tiles():
    return SolidTiles


@pytest.fixture
def failing_tiles():
    return FailingTiles


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def make_source():
    from sources.registry import Source
    from sources.types import SourceConfig

    def _make(tiles=None, **overrides):
        cfg = {
            "id": "osm",
            "static": True,
            "formats": ["png", "jpeg"],
            "maxwidth": 1024,
            "maxheight": 1024,
            "minzoom": 0,
            "maxzoom": 18,
            "tiles": "https://tiles.example.org/{z}/{x}/{y}.png",
            "headers": {"Cache-Control": "public, max-age=60"},
        }
        cfg.update(overrides)
        return Source(config=SourceConfig.model_validate(cfg), tiles=tiles or SolidTiles())

    return _make


class RecordingLoader:
    """
    Map-data loader stub returning a fixed GeoJSON payload.
    """

    def __init__(self, geojson=None, exc: Exception | None = None):
        self.geojson = geojson if geojson is not None else {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {"fill": "#ff0000"},
                    "geometry": {
                        "type": "Polygon",
                        "coordinates": [
                            [[13.0, 52.0], [14.0, 52.0], [14.0, 53.0], [13.0, 53.0], [13.0, 52.0]]
                        ],
                    },
                }
            ],
        }
        self.exc = exc
        self.calls: list[tuple] = []

    async def __call__(self, protocol, domain, title, groups=None):
        self.calls.append((protocol, domain, title, groups))
        if self.exc is not None:
            raise self.exc
        return self.geojson


@pytest.fixture
def recording_loader():
    return RecordingLoader
