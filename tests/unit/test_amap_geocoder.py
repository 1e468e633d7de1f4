"""高徳地図 API クライアントのテスト"""
import pytest

from pawlink.features.geocoding.domain.models import Coordinate
from pawlink.features.geocoding.providers.amap_geocoder import (
    BATCH_LIMIT,
    AmapGeocodingClient,
    parse_location,
    parse_polyline,
)
from pawlink.features.geocoding.providers.geocode_cache import GeocodeCache
from pawlink.shared.exceptions.errors import GeocodeError, RemoteServiceError, ValidationError

from fakes import FakeHTTPClient, error_payload, regeo_item, regeo_payload

TIANANMEN = Coordinate(longitude=116.397428, latitude=39.90923)


def _client(http: FakeHTTPClient, clock=None) -> AmapGeocodingClient:
    cache = GeocodeCache(clock=clock) if clock else GeocodeCache()
    return AmapGeocodingClient(
        api_key="test-api-key-123456",
        cache=cache,
        http_client=http,
        base_url="https://restapi.example.com/v3",
    )


def test_reverse_geocode_parses_address(geocoder, fake_http) -> None:
    """住所構成要素を AddressResult に変換する"""
    result = geocoder.reverse_geocode(TIANANMEN)

    assert result.formatted_address == "北京市东城区东华门街道天安门"
    assert result.province == "北京市"
    assert result.city == ""  # ベンダーは直轄市で [] を返す
    assert result.district == "东城区"
    assert result.township == "东华门街道"
    assert result.street_number == "东长安街"
    assert result.business_circle == "王府井"
    assert result.adcode == "110101"
    assert result.city_code == "010"
    assert result.source_coordinate == TIANANMEN

    url, params = fake_http.calls[0]
    assert url == "https://restapi.example.com/v3/geocode/regeo"
    assert params["key"] == "test-api-key-123456"
    assert params["location"] == "116.397428,39.90923"
    assert params["radius"] == 1000
    assert params["extensions"] == "all"
    assert params["roadlevel"] == 0


def test_reverse_geocode_twice_makes_one_call(geocoder, fake_http) -> None:
    """有効期間内に同じ量子化座標を2回引くと通信は1回"""
    first = geocoder.reverse_geocode(TIANANMEN)
    second = geocoder.reverse_geocode(Coordinate(longitude=116.3974281, latitude=39.9092301))

    assert len(fake_http.calls) == 1
    assert second == first


def test_reverse_geocode_after_ttl_calls_again(geocoder, fake_http, fake_clock) -> None:
    """有効期間を過ぎると再度問い合わせる"""
    geocoder.reverse_geocode(TIANANMEN)
    fake_clock.advance(3601)
    geocoder.reverse_geocode(TIANANMEN)

    assert len(fake_http.calls) == 2


def test_reverse_geocode_without_cache(geocoder, fake_http) -> None:
    """use_cache=False ではキャッシュを読み書きしない"""
    geocoder.reverse_geocode(TIANANMEN, use_cache=False)
    geocoder.reverse_geocode(TIANANMEN, use_cache=False)

    assert len(fake_http.calls) == 2
    assert len(geocoder.cache) == 0


def test_reverse_geocode_vendor_error_surfaces_code() -> None:
    """失敗ステータスではベンダーのコードとメッセージを持つ GeocodeError"""
    client = _client(FakeHTTPClient(lambda url, params: error_payload("10001", "INVALID_USER_KEY")))

    with pytest.raises(GeocodeError) as excinfo:
        client.reverse_geocode(TIANANMEN)

    assert excinfo.value.code == "10001"
    assert excinfo.value.message == "INVALID_USER_KEY"
    assert "10001" in str(excinfo.value)
    assert len(client.cache) == 0


def test_network_failure_becomes_remote_service_error(network_error) -> None:
    """通信失敗は NETWORK_ERROR コードの RemoteServiceError"""
    client = _client(FakeHTTPClient(lambda url, params: network_error))

    with pytest.raises(RemoteServiceError) as excinfo:
        client.search_poi("咖啡")

    assert excinfo.value.code == "NETWORK_ERROR"


def test_batch_of_45_issues_three_requests() -> None:
    """45件は 20 + 20 + 5 の3リクエスト"""

    def responder(url, params):
        count = len(params["location"].split("|"))
        return {"status": "1", "regeocodes": [regeo_item(f"addr-{i}") for i in range(count)]}

    http = FakeHTTPClient(responder)
    client = _client(http)
    coords = [Coordinate(116.3 + i * 0.001, 39.9) for i in range(45)]

    results = client.reverse_geocode_batch(coords)

    assert len(http.calls) == 3
    assert [len(p["location"].split("|")) for _, p in http.calls] == [BATCH_LIMIT, BATCH_LIMIT, 5]
    assert all(p["batch"] == "true" for _, p in http.calls)
    assert len(results) == 45
    assert results[44].source_coordinate == coords[44]


def test_batch_partial_failure_returns_successful_slices() -> None:
    """2番目のバッチが失敗しても1番目と3番目の結果は返る"""
    state = {"call": 0}

    def responder(url, params):
        state["call"] += 1
        if state["call"] == 2:
            return error_payload("10044", "USER_DAILY_QUERY_OVER_LIMIT")
        count = len(params["location"].split("|"))
        return {"status": "1", "regeocodes": [regeo_item() for _ in range(count)]}

    http = FakeHTTPClient(responder)
    client = _client(http)
    coords = [Coordinate(116.3 + i * 0.001, 39.9) for i in range(45)]

    results = client.reverse_geocode_batch(coords)

    assert len(http.calls) == 3
    assert len(results) == 25
    assert results[0].source_coordinate == coords[0]
    assert results[20].source_coordinate == coords[40]


def test_batch_results_populate_cache() -> None:
    """一括結果はキャッシュに入り、単体の逆ジオコーディングで再利用される"""

    def responder(url, params):
        count = len(params["location"].split("|"))
        return {"status": "1", "regeocodes": [regeo_item() for _ in range(count)]}

    http = FakeHTTPClient(responder)
    client = _client(http)
    coords = [TIANANMEN, Coordinate(121.4737, 31.2304)]

    client.reverse_geocode_batch(coords)
    client.reverse_geocode(TIANANMEN)

    assert len(http.calls) == 1


def test_input_suggest_drops_tips_without_location() -> None:
    """座標の無い候補は除外される"""
    payload = {
        "status": "1",
        "tips": [
            {"id": "B000A83M61", "name": "天安门", "address": "东长安街", "location": "116.397455,39.909187"},
            {"id": "", "name": "天安门广场", "address": [], "location": []},
            {"id": "B000A7BM4H", "name": "天安门东", "address": "地铁1号线"},
            {"id": "B000A7BM4I", "name": "天安门西", "address": "地铁1号线", "location": ""},
        ],
    }
    http = FakeHTTPClient(lambda url, params: payload)
    client = _client(http)

    tips = client.input_suggest("天安门")

    assert len(tips) == 1
    assert tips[0].name == "天安门"
    assert tips[0].location == Coordinate(116.397455, 39.909187)
    assert http.calls[0][0].endswith("/assistant/inputtips")
    assert http.calls[0][1]["datatype"] == "all"


def test_search_poi_builds_query_and_parses() -> None:
    """POI検索のクエリと結果の変換"""
    payload = {
        "status": "1",
        "count": "2",
        "pois": [
            {
                "id": "B0FFG",
                "name": "宠物医院",
                "address": "朝阳路1号",
                "location": "116.48,39.92",
                "distance": "350",
                "type": "医疗保健服务;动物医疗场所",
            },
            {"id": "B0FFH", "name": "宠物店", "address": [], "location": "116.49,39.93", "distance": []},
        ],
    }
    http = FakeHTTPClient(lambda url, params: payload)
    client = _client(http)

    pois = client.search_poi("　宠物   医院 ", city="北京", location=TIANANMEN)

    url, params = http.calls[0]
    assert url.endswith("/place/text")
    assert params["keywords"] == "宠物 医院"
    assert params["city"] == "北京"
    assert params["location"] == TIANANMEN.to_param()
    assert params["radius"] == 3000
    assert params["offset"] == 20
    assert params["page"] == 1

    assert [p.name for p in pois] == ["宠物医院", "宠物店"]
    assert pois[0].distance_meters == 350
    assert pois[1].distance_meters is None
    assert pois[1].address == ""


def test_search_poi_rejects_empty_keyword(geocoder, fake_http) -> None:
    """空のキーワードは送信せずにエラー"""
    with pytest.raises(ValidationError):
        geocoder.search_poi("   ")
    assert fake_http.calls == []


def test_plan_route_parses_first_path() -> None:
    """先頭の経路のpolylineを座標列に変換する"""
    payload = {
        "status": "1",
        "route": {
            "paths": [
                {
                    "distance": "1520",
                    "duration": "360",
                    "tolls": "0",
                    "traffic_lights": "4",
                    "polyline": "116.397,39.909;116.400,39.910;116.405,39.912",
                },
                {"distance": "9999", "duration": "9999", "polyline": "116.1,39.1"},
            ]
        },
    }
    http = FakeHTTPClient(lambda url, params: payload)
    client = _client(http)

    route = client.plan_route(
        TIANANMEN,
        Coordinate(116.405, 39.912),
        mode="walking",
        waypoints=[Coordinate(116.4, 39.91)],
    )

    url, params = http.calls[0]
    assert url.endswith("/direction/walking")
    assert params["waypoints"] == "116.4,39.91"
    assert route.distance_meters == 1520
    assert route.duration_seconds == 360
    assert route.traffic_light_count == 4
    assert route.path == [
        Coordinate(116.397, 39.909),
        Coordinate(116.400, 39.910),
        Coordinate(116.405, 39.912),
    ]


def test_plan_route_joins_step_polylines() -> None:
    """経路全体のpolylineが無い場合はステップを連結する"""
    payload = {
        "status": "1",
        "route": {
            "paths": [
                {
                    "distance": "100",
                    "duration": "60",
                    "steps": [{"polyline": "116.1,39.1;116.2,39.2"}, {"polyline": "116.3,39.3"}],
                }
            ]
        },
    }
    client = _client(FakeHTTPClient(lambda url, params: payload))

    route = client.plan_route(TIANANMEN, Coordinate(116.3, 39.3))

    assert len(route.path) == 3


def test_plan_route_rejects_unknown_mode(geocoder) -> None:
    with pytest.raises(ValidationError):
        geocoder.plan_route(TIANANMEN, TIANANMEN, mode="teleport")


def test_parse_helpers() -> None:
    """座標・polylineの解釈（不正な値は無視）"""
    assert parse_location("116.1,39.1") == Coordinate(116.1, 39.1)
    assert parse_location([]) is None
    assert parse_location("not,a-number") is None
    assert parse_polyline("116.1,39.1;bad;116.2,39.2") == [Coordinate(116.1, 39.1), Coordinate(116.2, 39.2)]
    assert parse_polyline("") == []


def test_close_closes_http_client(geocoder, fake_http) -> None:
    with geocoder:
        pass
    assert fake_http.closed


def test_regeo_payload_helper_is_well_formed() -> None:
    payload = regeo_payload(district="西城区")
    assert payload["regeocode"]["addressComponent"]["district"] == "西城区"
