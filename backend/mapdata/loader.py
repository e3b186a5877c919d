from __future__ import annotations

import json
import logging
from typing import Any

import httpx


_LOGGER = logging.getLogger("snapshot.mapdata")


class MapdataError(Exception):
    """
    Map data could not be loaded. `status` is the HTTP status to report.
    """

    def __init__(self, message: str, *, status: int = 502):
        super().__init__(message)
        self.status = status


def parse_groups(groups: str | None) -> list[str]:
    return [g.strip() for g in (groups or "").split(",") if g.strip()]


class MapdataLoader:
    """
    Loads the GeoJSON attached to a wiki page through the MediaWiki API
    (`action=query&prop=mapdata`).

    The result is a FeatureCollection-like dict: {"type": "FeatureCollection",
    "features": [...]} holding every GeoJSON object of the requested groups.
    """

    def __init__(
        self,
        *,
        api_path: str = "/w/api.php",
        timeout_s: float = 10.0,
        user_agent: str = "snapshot-service",
        client: httpx.AsyncClient | None = None,
    ):
        self.api_path = api_path
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_s),
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def request_params(self, title: str, groups: str | None) -> dict[str, str]:
        params = {
            "action": "query",
            "format": "json",
            "formatversion": "2",
            "titles": title,
            "prop": "mapdata",
            "mpdlimit": "max",
        }
        group_ids = parse_groups(groups)
        if group_ids:
            params["mpdgroups"] = "|".join(group_ids)
        return params

    async def __call__(
        self, protocol: str, domain: str, title: str, groups: str | None = None
    ) -> dict[str, Any]:
        url = f"{protocol}://{domain}{self.api_path}"
        client = await self._get_client()
        _LOGGER.info("loading mapdata title=%r groups=%r from %s", title, groups, domain)

        try:
            resp = await client.get(url, params=self.request_params(title, groups))
        except httpx.TimeoutException as exc:
            raise MapdataError(f"Map data request timed out: {domain}", status=504) from exc
        except httpx.HTTPError as exc:
            raise MapdataError(
                f"Map data request failed: {domain}: {type(exc).__name__}"
            ) from exc
        if resp.status_code != 200:
            raise MapdataError(
                f"Map data request failed with HTTP {resp.status_code}: {domain}"
            )
        try:
            body = resp.json()
        except ValueError as exc:
            raise MapdataError("Map data response is not valid JSON") from exc

        return collect_features(body, title)


def collect_features(body: dict[str, Any], title: str) -> dict[str, Any]:
    """
    Flatten a `prop=mapdata` API response into one FeatureCollection.
    """
    if "error" in body:
        info = (body.get("error") or {}).get("info") or "unknown API error"
        raise MapdataError(f"Map data API error: {info}")

    pages = ((body.get("query") or {}).get("pages")) or []
    if not pages or pages[0].get("missing") or pages[0].get("invalid"):
        raise MapdataError(f"Title does not exist: {title}", status=404)

    features: list[Any] = []
    for blob in pages[0].get("mapdata") or []:
        try:
            groups = json.loads(blob) if isinstance(blob, str) else blob
        except ValueError as exc:
            raise MapdataError("Map data blob is not valid JSON") from exc
        if not isinstance(groups, dict):
            raise MapdataError("Map data blob is not a JSON object")
        for group_id, items in groups.items():
            if not isinstance(items, list):
                _LOGGER.warning("skipping malformed group %s", group_id)
                continue
            for item in items:
                if isinstance(item, dict) and item.get("type") == "ExternalData":
                    _LOGGER.warning("skipping ExternalData entry in group %s", group_id)
                    continue
                features.append(item)

    return {"type": "FeatureCollection", "features": features}
