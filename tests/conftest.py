"""テスト共通のフィクスチャ"""
import pytest
from fakes import FakeClock, FakeHTTPClient, RecordingTransport, regeo_payload

from pawlink.features.geocoding.providers.amap_geocoder import AmapGeocodingClient
from pawlink.features.geocoding.providers.geocode_cache import GeocodeCache
from pawlink.shared.exceptions.errors import HTTPError


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_http() -> FakeHTTPClient:
    return FakeHTTPClient(lambda url, params: regeo_payload())


@pytest.fixture
def geocoder(fake_http: FakeHTTPClient, fake_clock: FakeClock) -> AmapGeocodingClient:
    return AmapGeocodingClient(
        api_key="test-api-key-123456",
        cache=GeocodeCache(clock=fake_clock),
        http_client=fake_http,
        base_url="https://restapi.example.com/v3",
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def network_error() -> HTTPError:
    return HTTPError("Failed to GET https://restapi.example.com/v3: connection reset")
