"""測位の状態機械のテスト"""
import pytest

from pawlink.features.geocoding.domain.models import Coordinate
from pawlink.features.location.domain import state_machine as sm
from pawlink.features.location.domain.enums import (
    AcquisitionStatus,
    Datum,
    FailureReason,
    ProviderRole,
    classify_error_code,
)
from pawlink.features.location.domain.models import AcquisitionState, Position, RetryPolicy
from pawlink.shared.exceptions.errors import InvalidTransitionError

POLICY = RetryPolicy(max_attempts=3, backoff_base_seconds=1.0, timeout_seconds=20.0, switch_after_transient_failures=2)
POSITION = Position(coordinate=Coordinate(116.4, 39.9), datum=Datum.GCJ02)


def _acquiring(has_secondary: bool = False) -> AcquisitionState:
    state = sm.transition(AcquisitionState(), sm.request(has_secondary), POLICY)
    return sm.transition(state, sm.permission_granted(), POLICY)


def test_happy_path() -> None:
    """要求 → 権限 → 測位 → 住所解決 → 成功"""
    state = AcquisitionState()
    state = sm.transition(state, sm.request(), POLICY)
    assert state.status == AcquisitionStatus.REQUESTING_PERMISSION

    state = sm.transition(state, sm.permission_granted(), POLICY)
    assert state.status == AcquisitionStatus.ACQUIRING
    assert state.attempt == 1

    state = sm.transition(state, sm.position_received(POSITION), POLICY)
    assert state.status == AcquisitionStatus.RESOLVING_ADDRESS
    assert state.position == POSITION

    state = sm.transition(state, sm.address_resolved(None), POLICY)
    assert state.status == AcquisitionStatus.SUCCEEDED
    assert state.is_terminal


def test_permission_denied_is_terminal_without_secondary() -> None:
    state = sm.transition(AcquisitionState(), sm.request(), POLICY)
    state = sm.transition(state, sm.permission_denied(), POLICY)

    assert state.status == AcquisitionStatus.FAILED
    assert state.reason == FailureReason.PERMISSION_DENIED
    assert state.total_attempts == 0


def test_permission_denied_switches_to_secondary() -> None:
    state = sm.transition(AcquisitionState(), sm.request(has_secondary=True), POLICY)
    state = sm.transition(state, sm.permission_denied(), POLICY)

    assert state.status == AcquisitionStatus.REQUESTING_PERMISSION
    assert state.provider == ProviderRole.SECONDARY

    # セカンダリでも拒否されたら失敗
    state = sm.transition(state, sm.permission_denied(), POLICY)
    assert state.status == AcquisitionStatus.FAILED
    assert state.reason == FailureReason.PERMISSION_DENIED


def test_timeouts_retry_with_linear_backoff() -> None:
    """タイムアウトは 1s, 2s の待機で再試行し、上限で失敗"""
    state = _acquiring()

    state = sm.transition(state, sm.attempt_failed(FailureReason.TIMEOUT), POLICY)
    assert state.status == AcquisitionStatus.ACQUIRING
    assert state.attempt == 2
    assert state.retry_delay == 1.0

    state = sm.transition(state, sm.attempt_failed(FailureReason.TIMEOUT), POLICY)
    assert state.attempt == 3
    assert state.retry_delay == 2.0

    state = sm.transition(state, sm.attempt_failed(FailureReason.TIMEOUT), POLICY)
    assert state.status == AcquisitionStatus.FAILED
    assert state.reason == FailureReason.TIMEOUT
    assert state.total_attempts == 3


def test_provider_unavailable_is_not_retried() -> None:
    state = sm.transition(_acquiring(), sm.attempt_failed(FailureReason.PROVIDER_UNAVAILABLE), POLICY)

    assert state.status == AcquisitionStatus.FAILED
    assert state.reason == FailureReason.PROVIDER_UNAVAILABLE


def test_provider_unavailable_switches_when_secondary_exists() -> None:
    state = sm.transition(_acquiring(True), sm.attempt_failed(FailureReason.PROVIDER_UNAVAILABLE), POLICY)

    assert state.provider == ProviderRole.SECONDARY
    assert state.status == AcquisitionStatus.REQUESTING_PERMISSION


def test_two_consecutive_transient_failures_switch_provider() -> None:
    """連続2回の一時失敗でセカンダリへ切替え、試行番号はリセット"""
    state = _acquiring(has_secondary=True)

    state = sm.transition(state, sm.attempt_failed(FailureReason.NETWORK_ERROR), POLICY)
    assert state.provider == ProviderRole.PRIMARY
    assert state.attempt == 2

    state = sm.transition(state, sm.attempt_failed(FailureReason.TIMEOUT), POLICY)
    assert state.provider == ProviderRole.SECONDARY
    assert state.status == AcquisitionStatus.REQUESTING_PERMISSION
    assert state.attempt == 0
    assert state.consecutive_transient_failures == 0

    state = sm.transition(state, sm.permission_granted(), POLICY)
    assert state.attempt == 1
    assert state.total_attempts == 3


def test_geocode_failure_still_succeeds() -> None:
    """住所解決の失敗は座標のみの成功"""
    state = sm.transition(_acquiring(), sm.position_received(POSITION), POLICY)
    state = sm.transition(state, sm.geocode_failed("[10001] INVALID_USER_KEY"), POLICY)

    assert state.status == AcquisitionStatus.SUCCEEDED
    assert state.address is None
    assert state.address_error == "[10001] INVALID_USER_KEY"


@pytest.mark.parametrize(
    "state,event",
    [
        (AcquisitionState(), sm.permission_granted()),
        (AcquisitionState(status=AcquisitionStatus.SUCCEEDED), sm.request()),
        (AcquisitionState(status=AcquisitionStatus.ACQUIRING, attempt=1), sm.address_resolved(None)),
    ],
)
def test_invalid_transitions_raise(state: AcquisitionState, event: sm.Event) -> None:
    with pytest.raises(InvalidTransitionError):
        sm.transition(state, event, POLICY)


@pytest.mark.parametrize(
    "code,message,expected",
    [
        ("PERMISSION_DENIED", None, FailureReason.PERMISSION_DENIED),
        (1, None, FailureReason.PERMISSION_DENIED),
        ("3", None, FailureReason.TIMEOUT),
        ("POSITION_UNAVAILABLE", None, FailureReason.PROVIDER_UNAVAILABLE),
        (None, "Geolocation permission denied", FailureReason.PERMISSION_DENIED),
        (None, "Get geolocation timeout.", FailureReason.TIMEOUT),
        (None, "Get ipLocation failed.", FailureReason.NETWORK_ERROR),
        (None, "定位失败", FailureReason.PROVIDER_UNAVAILABLE),
    ],
)
def test_classify_error_code(code, message, expected: FailureReason) -> None:
    assert classify_error_code(code, message) == expected


def test_failure_reasons_have_guidance() -> None:
    for reason in FailureReason:
        assert reason.guidance
    assert FailureReason.TIMEOUT.is_retryable
    assert not FailureReason.PERMISSION_DENIED.is_retryable
