from __future__ import annotations

from typing import Protocol

import httpx


class TileNotFound(Exception):
    """
    The tile does not exist; the stitcher leaves its area blank.
    """


class TileSource(Protocol):
    """
    Anything that can produce an encoded tile image for z/x/y.

    Returns (bytes, headers).
    """

    async def get_tile(self, z: int, x: int, y: int) -> tuple[bytes, dict[str, str]]: ...


_PASSTHROUGH_HEADERS = ("content-type", "last-modified", "etag", "cache-control")


class HttpTileSource:
    """
    Fetches tiles from a `{z}/{x}/{y}` URL template over HTTP.
    """

    def __init__(
        self,
        url_template: str,
        *,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url_template = url_template
        self.timeout_s = timeout_s
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_s), follow_redirects=True
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def tile_url(self, z: int, x: int, y: int) -> str:
        return self.url_template.format(z=z, x=x, y=y)

    async def get_tile(self, z: int, x: int, y: int) -> tuple[bytes, dict[str, str]]:
        client = await self._get_client()
        resp = await client.get(self.tile_url(z, x, y))
        if resp.status_code in (204, 404):
            raise TileNotFound(f"Tile {z}/{x}/{y} does not exist")
        resp.raise_for_status()
        headers = {
            k: v for k, v in resp.headers.items() if k.lower() in _PASSTHROUGH_HEADERS
        }
        return resp.content, headers
