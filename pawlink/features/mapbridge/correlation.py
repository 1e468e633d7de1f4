"""
ブリッジ経由の測位リクエストと応答の対応付け

未完了のリクエストは同時に1件まで。実行中に再度要求された場合は
同じリクエストに合流させる。応答に requestId があれば ID で照合し、
無ければ（旧来の地図ページ）最も古い未完了リクエストに割り当てる。
"""
import threading
import uuid
from typing import Callable, Optional

from ...shared.exceptions.errors import LocationError
from ...shared.logging.config import get_logger
from ...shared.utils.text import vendor_float
from ..location.domain.enums import Datum, FailureReason, classify_error_code
from ..location.domain.models import Position
from .bridge import MapBridge
from .domain import messages
from .domain.messages import BridgeMessage, InboundType

logger = get_logger(__name__)


class PendingLocationRequest:
    """応答待ちの測位リクエスト"""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        self._done = threading.Event()
        self._position: Optional[Position] = None
        self._error: Optional[LocationError] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def resolve(self, position: Position) -> None:
        if self.done:
            return
        self._position = position
        self._done.set()

    def reject(self, error: LocationError) -> None:
        if self.done:
            return
        self._error = error
        self._done.set()

    def wait(self, timeout: Optional[float] = None) -> Position:
        """
        応答を待つ

        Raises:
            LocationError: 失敗応答、またはタイムアウトの場合
        """
        if not self._done.wait(timeout):
            raise LocationError(
                FailureReason.TIMEOUT, f"No location reply for request {self.request_id} within {timeout}s"
            )
        if self._error is not None:
            raise self._error
        return self._position


class LocationRequestTracker:
    """GET_LOCATION の送信と LOCATION_SUCCESS / LOCATION_ERROR の照合"""

    def __init__(
        self,
        bridge: MapBridge,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self.bridge = bridge
        self.id_factory = id_factory
        self._lock = threading.Lock()
        self._current: Optional[PendingLocationRequest] = None

        bridge.on(InboundType.LOCATION_SUCCESS, self._on_success)
        bridge.on(InboundType.LOCATION_ERROR, self._on_error)

    @property
    def outstanding(self) -> Optional[PendingLocationRequest]:
        with self._lock:
            if self._current is not None and not self._current.done:
                return self._current
            return None

    def request(self) -> PendingLocationRequest:
        """測位を要求（実行中なら既存のリクエストを返す）"""
        with self._lock:
            if self._current is not None and not self._current.done:
                logger.debug(f"Joining outstanding location request {self._current.request_id}")
                return self._current
            pending = PendingLocationRequest(self.id_factory())
            self._current = pending

        self.bridge.send(messages.request_location(pending.request_id))
        logger.info(f"Location requested via bridge: request_id={pending.request_id}")
        return pending

    def abandon(self, pending: PendingLocationRequest) -> None:
        """待ちを打ち切ったリクエストを手放す（遅れて届いた応答は破棄される）"""
        with self._lock:
            if self._current is pending:
                self._current = None
        pending.reject(LocationError(FailureReason.TIMEOUT, f"Location request {pending.request_id} abandoned"))
        logger.info(f"Abandoned location request {pending.request_id}")

    def _take(self, data: dict) -> Optional[PendingLocationRequest]:
        request_id = data.get("requestId")
        with self._lock:
            current = self._current
            if current is None or current.done:
                logger.info("Location reply with no outstanding request; ignored")
                return None
            if request_id is not None and str(request_id) != current.request_id:
                logger.info(f"Stale location reply {request_id} (waiting for {current.request_id}); ignored")
                return None
            self._current = None
            return current

    def _on_success(self, message: BridgeMessage) -> None:
        coordinate = messages.coordinate_from_data(message.data)
        pending = self._take(message.data)
        if pending is None:
            return
        if coordinate is None:
            pending.reject(LocationError(FailureReason.PROVIDER_UNAVAILABLE, "Location reply has no valid coordinate"))
            return

        pending.resolve(
            Position(
                coordinate=coordinate,
                datum=Datum.GCJ02,
                accuracy=vendor_float(message.data.get("accuracy")),
                address=message.data.get("address") or None,
            )
        )

    def _on_error(self, message: BridgeMessage) -> None:
        pending = self._take(message.data)
        if pending is None:
            return
        detail = message.data.get("message") or "location failed"
        reason = classify_error_code(message.data.get("code"), detail)
        pending.reject(LocationError(reason, detail))
