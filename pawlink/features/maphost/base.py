"""
地図ホストアダプターの基底クラス

埋め込み地図（サンドボックス）とネイティブ地図の2つの実装で、
操作とイベントの契約を共通にする。画面側はどちらの実装かを意識しない。

イベント（利用者が関数を代入する）:
    on_ready()
    on_error(message: str)
    on_marker_tap(marker_id: str)
    on_location_resolved(coordinate: Coordinate, address: Optional[AddressResult])
    on_location_failed(reason: FailureReason)
    on_map_tap(coordinate: Coordinate)
    on_search_results(kind: str, results: list[PointOfInterest])
"""
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from ...shared.exceptions.errors import AcquisitionInProgressError
from ...shared.logging.config import get_logger
from ...shared.utils.text import normalize_keyword
from ..geocoding.domain.models import AddressResult, Coordinate, PointOfInterest
from ..location.domain.enums import FailureReason
from ..location.domain.models import LocationResult
from ..location.services.acquisition_controller import LocationAcquisitionController
from .map_config import location_zoom, style_url
from .markers import MapMarker, UserLocationMarker

logger = get_logger(__name__)

SEARCH_ADDRESS = "address"
SEARCH_POI = "poi"


class MapHostAdapter(ABC):
    """地図ホストアダプターの基底クラス"""

    backend: str = "base"

    def __init__(self, controller: Optional[LocationAcquisitionController] = None) -> None:
        """
        Args:
            controller: 測位コントローラー（Noneの場合は地図側の測位に任せる）
        """
        self.controller = controller
        self.markers: list[MapMarker] = []
        self.ready = False
        self.last_location: Optional[LocationResult] = None

        self.on_ready: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_marker_tap: Optional[Callable[[str], None]] = None
        self.on_location_resolved: Optional[Callable[[Coordinate, Optional[AddressResult]], None]] = None
        self.on_location_failed: Optional[Callable[[FailureReason], None]] = None
        self.on_map_tap: Optional[Callable[[Coordinate], None]] = None
        self.on_search_results: Optional[Callable[[str, list[PointOfInterest]], None]] = None

        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # 操作
    # ------------------------------------------------------------------

    def set_markers(self, markers: list[MapMarker]) -> None:
        """表示中のマーカーを置き換える"""
        self.markers = list(markers)
        self._render_markers(self.markers)
        logger.debug(f"{self.backend}: {len(self.markers)} markers set")

    def clear_markers(self) -> None:
        self.markers = []
        self._clear_markers()

    @abstractmethod
    def recenter(self, coordinate: Coordinate, zoom: Optional[int] = None) -> None:
        """地図の中心を移動（座標はベンダー測地系）"""
        pass

    def set_style(self, name: str) -> None:
        """
        地図スタイルを変更

        Raises:
            ConfigurationError: 未知のスタイル名の場合
        """
        self._apply_style(style_url(name))

    def request_location(self) -> Optional[Future]:
        """
        現在地の取得を開始

        結果は on_location_resolved / on_location_failed で通知する。
        コントローラーがある場合はバックグラウンドで実行し、その Future を返す。
        前回の測位が終わっていない場合は何もせず None を返す。
        """
        if self.controller is None:
            self._request_location_from_surface()
            return None

        with self._pending_lock:
            if self._pending is not None and not self._pending.done():
                logger.info(f"{self.backend}: location request already in progress; ignored")
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{self.backend}-location")
            self._pending = self._executor.submit(self._acquire_location)
            return self._pending

    def search_address(self, keyword: str) -> None:
        """住所検索（結果は on_search_results で通知）"""
        normalized = normalize_keyword(keyword)
        if not normalized:
            logger.debug("Empty address search keyword ignored")
            return
        self._search(SEARCH_ADDRESS, normalized, None)

    def search_poi(self, keyword: str, location: Optional[Coordinate] = None) -> None:
        """周辺POI検索（結果は on_search_results で通知）"""
        normalized = normalize_keyword(keyword)
        if not normalized:
            logger.debug("Empty POI search keyword ignored")
            return
        self._search(SEARCH_POI, normalized, location)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # ------------------------------------------------------------------
    # 実装ごとの描画・検索
    # ------------------------------------------------------------------

    @abstractmethod
    def _render_markers(self, markers: list[MapMarker]) -> None:
        pass

    @abstractmethod
    def _clear_markers(self) -> None:
        pass

    @abstractmethod
    def _render_user_location(self, marker: UserLocationMarker) -> None:
        pass

    @abstractmethod
    def _apply_style(self, url: str) -> None:
        pass

    @abstractmethod
    def _search(self, kind: str, keyword: str, location: Optional[Coordinate]) -> None:
        pass

    def _request_location_from_surface(self) -> None:
        logger.warning(f"{self.backend}: no location controller attached; location request ignored")

    def _restore_surface(self) -> None:
        """地図の(再)読み込み後に、マーカーと直近の現在地を描き直す"""
        if self.markers:
            self._render_markers(self.markers)
        if self.last_location is not None and self.last_location.succeeded:
            self._render_user_location(UserLocationMarker(self.last_location.coordinate))

    # ------------------------------------------------------------------
    # 測位
    # ------------------------------------------------------------------

    def _acquire_location(self) -> Optional[LocationResult]:
        try:
            result = self.controller.request()
        except AcquisitionInProgressError:
            logger.info(f"{self.backend}: location request already in progress; ignored")
            return None

        self.last_location = result
        if result.succeeded:
            self._render_user_location(UserLocationMarker(result.coordinate))
            self.recenter(result.coordinate, location_zoom())
            self._emit_location_resolved(result.coordinate, result.address)
        else:
            self._emit_location_failed(result.reason or FailureReason.PROVIDER_UNAVAILABLE)
        return result

    # ------------------------------------------------------------------
    # イベント通知
    # ------------------------------------------------------------------

    def _emit(self, name: str, *args: Any) -> None:
        handler = getattr(self, name, None)
        if handler is None:
            return
        try:
            handler(*args)
        except Exception as e:
            logger.error(f"{self.backend}: {name} handler failed: {e}", exc_info=True)

    def _emit_ready(self) -> None:
        self.ready = True
        self._emit("on_ready")

    def _emit_error(self, message: str) -> None:
        logger.error(f"{self.backend}: map error: {message}")
        self._emit("on_error", message)

    def _emit_marker_tap(self, marker_id: str) -> None:
        self._emit("on_marker_tap", marker_id)

    def _emit_location_resolved(self, coordinate: Coordinate, address: Optional[AddressResult]) -> None:
        self._emit("on_location_resolved", coordinate, address)

    def _emit_location_failed(self, reason: FailureReason) -> None:
        logger.warning(f"{self.backend}: location failed: {reason.value}")
        self._emit("on_location_failed", reason)

    def _emit_map_tap(self, coordinate: Coordinate) -> None:
        self._emit("on_map_tap", coordinate)

    def _emit_search_results(self, kind: str, results: list[PointOfInterest]) -> None:
        self._emit("on_search_results", kind, results)
