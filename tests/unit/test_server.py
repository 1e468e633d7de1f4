"""HTTPサーバーのテスト"""
import pytest
from fakes import FakeHTTPClient, error_payload, regeo_payload
from fastapi.testclient import TestClient

from pawlink.features.bootstrap.service_container import ServiceContainer
from pawlink.infrastructure.config.settings import Settings
from pawlink.server import create_app


def _client(responder=None) -> tuple[TestClient, FakeHTTPClient]:
    http = FakeHTTPClient(responder or (lambda url, params: regeo_payload()))
    settings = Settings(_env_file=None, amap_api_key="0123456789abcdef")
    container = ServiceContainer(settings, http_client=http)
    return TestClient(create_app(container=container)), http


def test_health() -> None:
    client, _ = _client()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "api_key_configured": True}


def test_regeo_and_cache_stats() -> None:
    client, http = _client()

    first = client.get("/geocode/regeo", params={"location": "116.397428,39.90923"})
    client.get("/geocode/regeo", params={"location": "116.397428,39.90923"})
    stats = client.get("/cache/stats").json()

    assert first.status_code == 200
    assert first.json()["formatted_address"] == "北京市东城区东华门街道天安门"
    assert len(http.calls) == 1
    assert stats["size"] == 1
    assert stats["hits"] == 1

    cleared = client.delete("/cache").json()
    assert cleared == {"status": "cleared", "size": 0}


def test_vendor_error_maps_to_502() -> None:
    """ベンダーのエラーコードをそのまま返す"""
    client, _ = _client(lambda url, params: error_payload("10003", "DAILY_QUERY_OVER_LIMIT"))

    response = client.get("/geocode/regeo", params={"location": "116.397428,39.90923"})

    assert response.status_code == 502
    assert response.json()["code"] == "10003"
    assert response.json()["detail"] == "DAILY_QUERY_OVER_LIMIT"


@pytest.mark.parametrize("location", ["116.39", "abc,def", "200,39.9"])
def test_invalid_location_is_400(location: str) -> None:
    client, http = _client()

    response = client.get("/geocode/regeo", params={"location": location})

    assert response.status_code == 400
    assert http.calls == []


def test_convert_does_not_call_vendor() -> None:
    client, http = _client()

    response = client.get("/convert", params={"location": "116.4074,39.9042", "from": "gps", "to": "autonavi"})

    body = response.json()
    assert response.status_code == 200
    assert body["from"] == "gps"
    assert body["converted"] != body["source"]
    assert 100 < body["offset_meters"] < 1000
    assert http.calls == []


def test_direction_adds_duration_text() -> None:
    payload = {
        "status": "1",
        "route": {"paths": [{"distance": "5000", "duration": "3725", "polyline": "116.39,39.90;116.40,39.91"}]},
    }
    client, http = _client(lambda url, params: payload)

    response = client.get(
        "/direction/driving",
        params={"origin": "116.39,39.90", "destination": "116.40,39.91", "waypoints": "116.395,39.905"},
    )

    assert response.status_code == 200
    assert response.json()["duration_text"] == "1h2m5s"
    assert http.calls[0][1]["waypoints"] == "116.395,39.905"


def test_place_text_returns_pois() -> None:
    payload = {"status": "1", "pois": [{"id": "B1", "name": "宠物医院", "address": "朝阳路", "location": "116.48,39.92"}]}
    client, _ = _client(lambda url, params: payload)

    response = client.get("/place/text", params={"keywords": "宠物医院", "city": "北京"})

    assert response.json()["count"] == 1
    assert response.json()["pois"][0]["location"] == {"longitude": 116.48, "latitude": 39.92}
