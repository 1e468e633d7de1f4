"""
測位の状態機械

    Idle --request--> RequestingPermission
    RequestingPermission --granted--> Acquiring
    RequestingPermission --denied--> Failed(PermissionDenied) / セカンダリへ切替
    Acquiring --position received--> ResolvingAddress
    Acquiring --attempt failed--> Acquiring(リトライ) / 切替 / Failed(reason)
    ResolvingAddress --address resolved--> Succeeded
    ResolvingAddress --geocode failed--> Succeeded（座標のみ）

transition は副作用を持たない純粋関数で、待機時間やプロバイダー切替の判断も
戻り値の状態に含める。実際の待機・I/O はコントローラーが行う。
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from ....shared.exceptions.errors import InvalidTransitionError
from ...geocoding.domain.models import AddressResult
from .enums import AcquisitionStatus, FailureReason, ProviderRole
from .models import AcquisitionState, Position, RetryPolicy


class EventKind(str, Enum):
    """状態機械への入力イベント"""

    REQUEST = "request"
    PERMISSION_GRANTED = "permission_granted"
    PERMISSION_DENIED = "permission_denied"
    POSITION_RECEIVED = "position_received"
    ATTEMPT_FAILED = "attempt_failed"
    ADDRESS_RESOLVED = "address_resolved"
    GEOCODE_FAILED = "geocode_failed"


@dataclass(frozen=True)
class Event:
    """入力イベント"""

    kind: EventKind
    reason: Optional[FailureReason] = None
    position: Optional[Position] = None
    address: Optional[AddressResult] = None
    message: Optional[str] = None
    has_secondary: bool = False


def request(has_secondary: bool = False) -> Event:
    return Event(EventKind.REQUEST, has_secondary=has_secondary)


def permission_granted() -> Event:
    return Event(EventKind.PERMISSION_GRANTED)


def permission_denied() -> Event:
    return Event(EventKind.PERMISSION_DENIED, reason=FailureReason.PERMISSION_DENIED)


def position_received(position: Position) -> Event:
    return Event(EventKind.POSITION_RECEIVED, position=position)


def attempt_failed(reason: FailureReason, message: Optional[str] = None) -> Event:
    return Event(EventKind.ATTEMPT_FAILED, reason=reason, message=message)


def address_resolved(address: Optional[AddressResult]) -> Event:
    return Event(EventKind.ADDRESS_RESOLVED, address=address)


def geocode_failed(message: str) -> Event:
    return Event(EventKind.GEOCODE_FAILED, message=message)


def transition(
    state: AcquisitionState,
    event: Event,
    policy: RetryPolicy = RetryPolicy(),
) -> AcquisitionState:
    """
    現在の状態とイベントから次の状態を求める

    Args:
        state: 現在の状態
        event: 入力イベント
        policy: リトライ・切替方針

    Returns:
        AcquisitionState: 次の状態

    Raises:
        InvalidTransitionError: 現在の状態で受け付けないイベントの場合
    """
    status = state.status

    if status == AcquisitionStatus.IDLE and event.kind == EventKind.REQUEST:
        return AcquisitionState(
            status=AcquisitionStatus.REQUESTING_PERMISSION,
            provider=ProviderRole.PRIMARY,
            has_secondary=event.has_secondary,
        )

    if status == AcquisitionStatus.REQUESTING_PERMISSION:
        if event.kind == EventKind.PERMISSION_GRANTED:
            return replace(
                state,
                status=AcquisitionStatus.ACQUIRING,
                attempt=1,
                total_attempts=state.total_attempts + 1,
                retry_delay=0.0,
            )
        if event.kind == EventKind.PERMISSION_DENIED:
            if _can_switch(state):
                return _switch_provider(state)
            return _fail(state, FailureReason.PERMISSION_DENIED)
        if event.kind == EventKind.ATTEMPT_FAILED:
            # 権限要求そのものが失敗した（プロバイダーが応答しない等）
            if _can_switch(state):
                return _switch_provider(state)
            return _fail(state, event.reason or FailureReason.PROVIDER_UNAVAILABLE)

    if status == AcquisitionStatus.ACQUIRING:
        if event.kind == EventKind.POSITION_RECEIVED and event.position is not None:
            return replace(
                state,
                status=AcquisitionStatus.RESOLVING_ADDRESS,
                position=event.position,
                retry_delay=0.0,
            )
        if event.kind == EventKind.ATTEMPT_FAILED:
            return _on_attempt_failed(state, event.reason or FailureReason.PROVIDER_UNAVAILABLE, policy)

    if status == AcquisitionStatus.RESOLVING_ADDRESS:
        if event.kind == EventKind.ADDRESS_RESOLVED:
            return replace(state, status=AcquisitionStatus.SUCCEEDED, address=event.address)
        if event.kind == EventKind.GEOCODE_FAILED:
            # 住所は付加情報なので、座標のみで成功とする
            return replace(
                state,
                status=AcquisitionStatus.SUCCEEDED,
                address=None,
                address_error=event.message or "reverse geocoding failed",
            )

    raise InvalidTransitionError(f"Event {event.kind.value} is not allowed in state {status.value}")


def _on_attempt_failed(
    state: AcquisitionState,
    reason: FailureReason,
    policy: RetryPolicy,
) -> AcquisitionState:
    """試行失敗時の判断（リトライ / 切替 / 失敗）"""
    if reason == FailureReason.PERMISSION_DENIED:
        if _can_switch(state):
            return _switch_provider(state)
        return _fail(state, reason)

    if not reason.is_retryable:
        # 復旧見込みのないプロバイダー障害
        if _can_switch(state):
            return _switch_provider(state)
        return _fail(state, reason)

    consecutive = state.consecutive_transient_failures + 1
    if _can_switch(state) and consecutive >= policy.switch_after_transient_failures:
        return _switch_provider(state)

    if state.attempt < policy.max_attempts:
        return replace(
            state,
            attempt=state.attempt + 1,
            total_attempts=state.total_attempts + 1,
            consecutive_transient_failures=consecutive,
            retry_delay=policy.backoff_for(state.attempt),
        )

    return _fail(replace(state, consecutive_transient_failures=consecutive), reason)


def _can_switch(state: AcquisitionState) -> bool:
    return state.provider == ProviderRole.PRIMARY and state.has_secondary


def _switch_provider(state: AcquisitionState) -> AcquisitionState:
    """セカンダリへ切替（リトライではないので試行番号をリセット）"""
    return replace(
        state,
        status=AcquisitionStatus.REQUESTING_PERMISSION,
        provider=ProviderRole.SECONDARY,
        attempt=0,
        consecutive_transient_failures=0,
        retry_delay=0.0,
    )


def _fail(state: AcquisitionState, reason: FailureReason) -> AcquisitionState:
    return replace(state, status=AcquisitionStatus.FAILED, reason=reason, retry_delay=0.0)
