"""
測位コントローラー

状態機械（state_machine.transition）を駆動し、プロバイダーの呼び出し・
タイムアウト・待機・逆ジオコーディングといった副作用を担当する。
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

from ....shared.exceptions.errors import (
    AcquisitionInProgressError,
    HTTPError,
    LocationError,
    RemoteServiceError,
    ValidationError,
)
from ....shared.logging.config import get_logger
from ...coordinates.converter import to_vendor_datum
from ...geocoding.domain.models import Coordinate
from ...geocoding.providers.amap_geocoder import AmapGeocodingClient
from ..domain import state_machine as sm
from ..domain.enums import AcquisitionStatus, Datum, FailureReason, ProviderRole
from ..domain.models import AcquisitionState, LocationResult, Position, RetryPolicy
from ..providers.base import LocationProvider

logger = get_logger(__name__)

StateObserver = Callable[[AcquisitionState], None]


class LocationAcquisitionController:
    """
    測位コントローラー

    1つの呼び出し元に対して同時に実行できる測位は1件のみ。
    実行中に request() が呼ばれた場合は AcquisitionInProgressError を送出する。
    """

    def __init__(
        self,
        primary: LocationProvider,
        geocoder: Optional[AmapGeocodingClient] = None,
        secondary: Optional[LocationProvider] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            primary: プライマリプロバイダー（埋め込み地図経由）
            geocoder: 逆ジオコーディング用クライアント（Noneの場合は住所解決を省略）
            secondary: セカンダリプロバイダー（デバイスAPI）
            policy: リトライ・切替方針
            sleep: 待機関数（テストでは記録用の関数に差し替える）
        """
        self.primary = primary
        self.secondary = secondary
        self.geocoder = geocoder
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self._lock = threading.Lock()
        self._observers: list[StateObserver] = []

        logger.info(
            f"LocationAcquisitionController initialized: primary={primary.name}, "
            f"secondary={secondary.name if secondary else None}, "
            f"max_attempts={self.policy.max_attempts}, timeout={self.policy.timeout_seconds}s"
        )

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def add_observer(self, observer: StateObserver) -> None:
        """状態が変わるたびに呼ばれる関数を登録"""
        self._observers.append(observer)

    def request(self) -> LocationResult:
        """
        測位を1回実行

        失敗は例外ではなく status=FAILED の結果として返す。

        Returns:
            LocationResult: 測位結果（座標はベンダー測地系）

        Raises:
            AcquisitionInProgressError: 別の測位が実行中の場合
        """
        if not self._lock.acquire(blocking=False):
            raise AcquisitionInProgressError("Location acquisition already in progress")

        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> LocationResult:
        started = time.monotonic()
        state = self._apply(AcquisitionState(), sm.request(has_secondary=self.secondary is not None))

        while not state.is_terminal:
            provider = self._provider_for(state.provider)

            if state.status == AcquisitionStatus.REQUESTING_PERMISSION:
                state = self._apply(state, self._ask_permission(provider))

            elif state.status == AcquisitionStatus.ACQUIRING:
                if state.retry_delay > 0:
                    logger.info(f"Retrying {provider.name} in {state.retry_delay:.1f}s (attempt {state.attempt})")
                    self.sleep(state.retry_delay)
                state = self._apply(state, self._acquire(provider, state.attempt))

            elif state.status == AcquisitionStatus.RESOLVING_ADDRESS:
                state = self._apply(state, self._resolve_address(state.position))

        result = self._to_result(state)
        logger.info(
            f"Location acquisition finished: status={result.status.value}, "
            f"reason={result.reason.value if result.reason else None}, "
            f"attempts={result.attempts}, elapsed={time.monotonic() - started:.2f}s"
        )
        return result

    def _apply(self, state: AcquisitionState, event: sm.Event) -> AcquisitionState:
        next_state = sm.transition(state, event, self.policy)
        if next_state.provider != state.provider and state.status != AcquisitionStatus.IDLE:
            logger.warning(f"Switching location provider to {next_state.provider.value} after {event.kind.value}")
        for observer in self._observers:
            try:
                observer(next_state)
            except Exception as e:
                logger.error(f"State observer failed: {e}", exc_info=True)
        return next_state

    def _provider_for(self, role: ProviderRole) -> LocationProvider:
        if role == ProviderRole.SECONDARY and self.secondary is not None:
            return self.secondary
        return self.primary

    # ------------------------------------------------------------------
    # 副作用（プロバイダー呼び出し・住所解決）
    # ------------------------------------------------------------------

    def _ask_permission(self, provider: LocationProvider) -> sm.Event:
        try:
            granted = provider.request_permission()
        except Exception as e:
            reason = _classify(e)
            logger.warning(f"Permission request failed on {provider.name}: {reason.value}: {e}")
            return sm.attempt_failed(reason, str(e))

        if granted:
            return sm.permission_granted()
        logger.warning(f"Location permission denied on {provider.name}")
        return sm.permission_denied()

    def _acquire(self, provider: LocationProvider, attempt: int) -> sm.Event:
        """プロバイダーの測位とタイムアウトを競争させる（先に終わった方を採用）"""
        timeout = self.policy.timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"locate-{provider.name}")
        future = executor.submit(provider.get_current_position)
        try:
            position = future.result(timeout=timeout)
        except FutureTimeoutError:
            # プロバイダーに中断手段がない場合、呼び出しは放置して結果だけ破棄する
            logger.warning(
                f"Location attempt {attempt} on {provider.name} timed out after {timeout}s; "
                "abandoning the pending provider call"
            )
            provider.cancel()
            return sm.attempt_failed(FailureReason.TIMEOUT, f"timed out after {timeout}s")
        except Exception as e:
            reason = _classify(e)
            logger.warning(f"Location attempt {attempt} on {provider.name} failed: {reason.value}: {e}")
            return sm.attempt_failed(reason, str(e))
        finally:
            executor.shutdown(wait=False)

        logger.info(f"Position received from {provider.name} on attempt {attempt}")
        return sm.position_received(position)

    def _resolve_address(self, position: Optional[Position]) -> sm.Event:
        if self.geocoder is None:
            return sm.address_resolved(None)

        coordinate = _vendor_coordinate(position)
        try:
            return sm.address_resolved(self.geocoder.reverse_geocode(coordinate))
        except (RemoteServiceError, ValidationError) as e:
            logger.warning(f"Reverse geocoding failed; returning coordinate only: {e}")
            return sm.geocode_failed(str(e))

    def _to_result(self, state: AcquisitionState) -> LocationResult:
        position = state.position
        return LocationResult(
            status=state.status,
            coordinate=_vendor_coordinate(position) if position else None,
            address=state.address,
            accuracy=position.accuracy if position else None,
            reason=state.reason,
            address_error=state.address_error,
            provider=state.provider,
            attempts=state.total_attempts,
        )


def _vendor_coordinate(position: Position) -> Coordinate:
    """プロバイダーの座標をベンダー測地系に揃える"""
    if position.datum == Datum.WGS84:
        return to_vendor_datum(position.coordinate)
    return position.coordinate


def _classify(error: Exception) -> FailureReason:
    """プロバイダーの例外を失敗理由に分類"""
    if isinstance(error, LocationError) and isinstance(error.reason, FailureReason):
        return error.reason
    if isinstance(error, (TimeoutError, FutureTimeoutError)):
        return FailureReason.TIMEOUT
    if isinstance(error, (HTTPError, ConnectionError)):
        return FailureReason.NETWORK_ERROR
    return FailureReason.PROVIDER_UNAVAILABLE
