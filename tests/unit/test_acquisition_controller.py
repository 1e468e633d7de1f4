"""測位コントローラーのテスト"""
import threading
import time
from typing import Optional, Union

import pytest
from fakes import FakeHTTPClient, error_payload, regeo_payload

from pawlink.features.coordinates.converter import to_vendor_datum
from pawlink.features.geocoding.domain.models import Coordinate
from pawlink.features.geocoding.providers.amap_geocoder import AmapGeocodingClient
from pawlink.features.location.domain.enums import AcquisitionStatus, Datum, FailureReason, ProviderRole
from pawlink.features.location.domain.models import Position, RetryPolicy
from pawlink.features.location.providers.base import LocationProvider
from pawlink.features.location.services.acquisition_controller import LocationAcquisitionController
from pawlink.shared.exceptions.errors import AcquisitionInProgressError, LocationError

GCJ_POSITION = Position(coordinate=Coordinate(116.403963, 39.915119), datum=Datum.GCJ02, accuracy=30.0)

Outcome = Union[Position, Exception]


class ScriptedProvider(LocationProvider):
    """決められた順に結果を返すプロバイダー"""

    def __init__(
        self,
        outcomes: Optional[list[Outcome]] = None,
        permission: bool = True,
        name: str = "scripted",
        datum: Datum = Datum.GCJ02,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.permission = permission
        self.name = name
        self._datum = datum
        self.position_calls = 0
        self.cancelled = 0

    @property
    def datum(self) -> Datum:
        return self._datum

    def request_permission(self) -> bool:
        return self.permission

    def get_current_position(self) -> Position:
        self.position_calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def cancel(self) -> None:
        self.cancelled += 1


class BlockingProvider(ScriptedProvider):
    """解放されるまで応答しないプロバイダー"""

    def __init__(self, release: threading.Event, started: Optional[threading.Event] = None) -> None:
        super().__init__(name="blocking")
        self.release = release
        self.started = started or threading.Event()

    def get_current_position(self) -> Position:
        self.position_calls += 1
        self.started.set()
        self.release.wait(5)
        return GCJ_POSITION


def _geocoder(responder=None) -> tuple[AmapGeocodingClient, FakeHTTPClient]:
    http = FakeHTTPClient(responder or (lambda url, params: regeo_payload()))
    return AmapGeocodingClient(api_key="test-api-key-123456", http_client=http), http


def _timeout() -> LocationError:
    return LocationError(FailureReason.TIMEOUT, "Get geolocation timeout.")


def test_two_timeouts_then_success_backs_off_one_and_two_seconds() -> None:
    """2回タイムアウトして3回目で成功すると、待機は 1s と 2s の2回"""
    sleeps: list[float] = []
    provider = ScriptedProvider([_timeout(), _timeout(), GCJ_POSITION])
    controller = LocationAcquisitionController(provider, sleep=sleeps.append)

    result = controller.request()

    assert result.status == AcquisitionStatus.SUCCEEDED
    assert sleeps == [1.0, 2.0]
    assert provider.position_calls == 3
    assert result.attempts == 3
    assert result.coordinate == GCJ_POSITION.coordinate


def test_permission_denied_fails_without_retry() -> None:
    """権限拒否は再試行せずに失敗"""
    sleeps: list[float] = []
    provider = ScriptedProvider(permission=False)
    controller = LocationAcquisitionController(provider, sleep=sleeps.append)

    result = controller.request()

    assert result.status == AcquisitionStatus.FAILED
    assert result.reason == FailureReason.PERMISSION_DENIED
    assert result.guidance == FailureReason.PERMISSION_DENIED.guidance
    assert sleeps == []
    assert provider.position_calls == 0


def test_permission_denied_error_from_provider_is_not_retried() -> None:
    """測位中の権限エラーも再試行しない"""
    sleeps: list[float] = []
    provider = ScriptedProvider([LocationError(FailureReason.PERMISSION_DENIED, "denied")] * 3)
    controller = LocationAcquisitionController(provider, sleep=sleeps.append)

    result = controller.request()

    assert result.reason == FailureReason.PERMISSION_DENIED
    assert provider.position_calls == 1
    assert sleeps == []


def test_exhausted_attempts_fail_with_last_reason() -> None:
    sleeps: list[float] = []
    provider = ScriptedProvider([_timeout(), ConnectionError("reset"), _timeout()])
    controller = LocationAcquisitionController(provider, sleep=sleeps.append)

    result = controller.request()

    assert result.status == AcquisitionStatus.FAILED
    assert result.reason == FailureReason.TIMEOUT
    assert sleeps == [1.0, 2.0]


def test_unexpected_provider_error_is_classified() -> None:
    """想定外の例外は外へ出さず ProviderUnavailable に分類"""
    provider = ScriptedProvider([RuntimeError("native module crashed")])
    controller = LocationAcquisitionController(provider, sleep=lambda s: None)

    result = controller.request()

    assert result.status == AcquisitionStatus.FAILED
    assert result.reason == FailureReason.PROVIDER_UNAVAILABLE


def test_switches_to_secondary_after_primary_denied() -> None:
    sleeps: list[float] = []
    primary = ScriptedProvider(permission=False, name="bridge")
    secondary = ScriptedProvider([GCJ_POSITION], name="device")
    controller = LocationAcquisitionController(primary, secondary=secondary, sleep=sleeps.append)

    result = controller.request()

    assert result.status == AcquisitionStatus.SUCCEEDED
    assert result.provider == ProviderRole.SECONDARY
    assert secondary.position_calls == 1
    assert sleeps == []


def test_switches_after_two_transient_failures() -> None:
    """プライマリの連続2回の一時失敗でセカンダリへ（切替は待機なし）"""
    sleeps: list[float] = []
    primary = ScriptedProvider([_timeout(), _timeout(), GCJ_POSITION], name="bridge")
    secondary = ScriptedProvider([GCJ_POSITION], name="device")
    controller = LocationAcquisitionController(primary, secondary=secondary, sleep=sleeps.append)

    result = controller.request()

    assert result.succeeded
    assert primary.position_calls == 2
    assert secondary.position_calls == 1
    assert sleeps == [1.0]


def test_race_timeout_abandons_slow_provider() -> None:
    """プロバイダーがタイムアウト内に応答しなければ TIMEOUT として扱い、結果は破棄する"""
    release = threading.Event()
    provider = BlockingProvider(release)
    policy = RetryPolicy(max_attempts=1, timeout_seconds=0.05)
    controller = LocationAcquisitionController(provider, policy=policy, sleep=lambda s: None)

    started = time.monotonic()
    result = controller.request()
    elapsed = time.monotonic() - started
    release.set()

    assert result.status == AcquisitionStatus.FAILED
    assert result.reason == FailureReason.TIMEOUT
    assert provider.cancelled == 1
    assert elapsed < 2.0


def test_concurrent_request_is_rejected() -> None:
    """実行中の再要求は AcquisitionInProgressError"""
    release = threading.Event()
    provider = BlockingProvider(release)
    controller = LocationAcquisitionController(provider, sleep=lambda s: None)
    results = []

    worker = threading.Thread(target=lambda: results.append(controller.request()))
    worker.start()
    assert provider.started.wait(2)

    with pytest.raises(AcquisitionInProgressError):
        controller.request()

    release.set()
    worker.join(2)
    assert results[0].succeeded
    assert not controller.in_progress


def test_device_position_is_converted_before_geocoding() -> None:
    """WGS84 の位置はベンダー測地系に変換してから逆ジオコーディングする"""
    geocoder, http = _geocoder()
    wgs = Coordinate(116.4074, 39.9042)
    provider = ScriptedProvider([Position(coordinate=wgs, datum=Datum.WGS84)], datum=Datum.WGS84)
    controller = LocationAcquisitionController(provider, geocoder=geocoder)

    result = controller.request()

    expected = to_vendor_datum(wgs)
    assert result.coordinate == expected
    assert http.calls[0][1]["location"] == expected.to_param()
    assert result.address is not None
    assert result.address_text == "北京市东城区东华门街道天安门"


def test_geocode_failure_returns_coordinate_only() -> None:
    """住所解決に失敗しても座標のみで成功"""
    geocoder, _ = _geocoder(lambda url, params: error_payload("10003", "DAILY_QUERY_OVER_LIMIT"))
    controller = LocationAcquisitionController(ScriptedProvider([GCJ_POSITION]), geocoder=geocoder)

    result = controller.request()

    assert result.status == AcquisitionStatus.SUCCEEDED
    assert result.coordinate == GCJ_POSITION.coordinate
    assert result.address is None
    assert "10003" in result.address_error
    assert result.to_dict()["address"] is None


def test_observers_see_every_state() -> None:
    seen: list[AcquisitionStatus] = []
    controller = LocationAcquisitionController(ScriptedProvider([GCJ_POSITION]))
    controller.add_observer(lambda state: seen.append(state.status))

    controller.request()

    assert seen == [
        AcquisitionStatus.REQUESTING_PERMISSION,
        AcquisitionStatus.ACQUIRING,
        AcquisitionStatus.RESOLVING_ADDRESS,
        AcquisitionStatus.SUCCEEDED,
    ]
