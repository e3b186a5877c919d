import asyncio
import json

import httpx
import pytest

from mapdata.loader import MapdataError, MapdataLoader, collect_features, parse_groups


POINT = {"type": "Feature", "properties": {}, "geometry": {"type": "Point", "coordinates": [1, 2]}}
LINE = {"type": "LineString", "coordinates": [[0, 0], [1, 1]]}


def _api_body(*blobs):
    return {"query": {"pages": [{"title": "Berlin", "mapdata": [json.dumps(b) for b in blobs]}]}}


def _loader(handler):
    return MapdataLoader(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_request_params_and_groups():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json=_api_body({"g1": [POINT]}))

    out = asyncio.run(_loader(handler)("https", "en.wikipedia.org", "Berlin", "g1, g2"))

    url = seen["url"]
    assert url.scheme == "https"
    assert url.host == "en.wikipedia.org"
    assert url.path == "/w/api.php"
    assert url.params["prop"] == "mapdata"
    assert url.params["titles"] == "Berlin"
    assert url.params["mpdgroups"] == "g1|g2"
    assert out == {"type": "FeatureCollection", "features": [POINT]}


def test_without_groups_no_group_param():
    assert "mpdgroups" not in MapdataLoader().request_params("Berlin", None)
    assert parse_groups(" a,,b ") == ["a", "b"]


def test_http_error_status():
    loader = _loader(lambda request: httpx.Response(500, text="oops"))
    with pytest.raises(MapdataError) as exc:
        asyncio.run(loader("https", "en.wikipedia.org", "Berlin"))
    assert exc.value.status == 502


def test_invalid_json_body():
    loader = _loader(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(MapdataError):
        asyncio.run(loader("https", "en.wikipedia.org", "Berlin"))


def test_timeout_maps_to_504():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(MapdataError) as exc:
        asyncio.run(_loader(handler)("https", "en.wikipedia.org", "Berlin"))
    assert exc.value.status == 504


def test_connection_error_is_mapdata_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(MapdataError) as exc:
        asyncio.run(_loader(handler)("https", "en.wikipedia.org", "Berlin"))
    assert exc.value.status == 502
    assert isinstance(exc.value.__cause__, httpx.ConnectError)


def test_missing_page_is_404():
    with pytest.raises(MapdataError) as exc:
        collect_features({"query": {"pages": [{"title": "Nope", "missing": True}]}}, "Nope")
    assert exc.value.status == 404


def test_api_error():
    with pytest.raises(MapdataError, match="badvalue"):
        collect_features({"error": {"code": "x", "info": "badvalue"}}, "Berlin")


def test_groups_are_flattened_and_external_data_skipped():
    body = _api_body(
        {"g1": [POINT], "g2": [LINE]},
        {"g3": [{"type": "ExternalData", "service": "geoshape"}]},
    )
    out = collect_features(body, "Berlin")
    assert out["features"] == [POINT, LINE]
