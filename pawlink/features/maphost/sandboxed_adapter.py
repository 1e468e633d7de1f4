"""埋め込み地図（サンドボックス）向けのアダプター"""
from typing import Any, Optional

from ...shared.logging.config import get_logger
from ...shared.utils.text import vendor_int, vendor_str
from ..geocoding.domain.models import Coordinate, PointOfInterest
from ..geocoding.providers.amap_geocoder import parse_location
from ..location.domain.enums import classify_error_code
from ..location.services.acquisition_controller import LocationAcquisitionController
from ..mapbridge.bridge import MapBridge
from ..mapbridge.domain import messages
from ..mapbridge.domain.messages import BridgeMessage, InboundType
from .base import SEARCH_ADDRESS, SEARCH_POI, MapHostAdapter
from .markers import MapMarker, UserLocationMarker

logger = get_logger(__name__)


class SandboxedMapHostAdapter(MapHostAdapter):
    """
    埋め込み地図向けのアダプター

    操作はすべてブリッジの送信メッセージに変換し、
    受信メッセージを契約上のイベントに変換する。
    """

    backend = "sandboxed"

    def __init__(
        self,
        bridge: MapBridge,
        controller: Optional[LocationAcquisitionController] = None,
    ) -> None:
        """
        Args:
            bridge: 埋め込み地図とのブリッジ
            controller: 測位コントローラー（Noneの場合は LOCATION_* を直接イベントに変換）
        """
        super().__init__(controller)
        self.bridge = bridge

        bridge.on(InboundType.MAP_LOADED, self._on_map_loaded)
        bridge.on(InboundType.MAP_ERROR, self._on_map_error)
        bridge.on(InboundType.MARKER_CLICK, self._on_marker_click)
        bridge.on(InboundType.MAP_CLICK, self._on_map_click)
        bridge.on(InboundType.LOCATION_SUCCESS, self._on_location_success)
        bridge.on(InboundType.LOCATION_ERROR, self._on_location_error)
        bridge.on(InboundType.ADDRESS_SEARCH_RESULT, self._on_address_results)
        bridge.on(InboundType.POI_SEARCH_RESULT, self._on_poi_results)

    def recenter(self, coordinate: Coordinate, zoom: Optional[int] = None) -> None:
        self.bridge.send(messages.recenter_map(coordinate, zoom))

    def _render_markers(self, markers: list[MapMarker]) -> None:
        self.bridge.send(messages.set_markers([m.to_bridge_dict() for m in markers]))

    def _clear_markers(self) -> None:
        self.bridge.send(messages.clear_markers())

    def _render_user_location(self, marker: UserLocationMarker) -> None:
        self.bridge.send(messages.set_user_location(marker.to_bridge_dict()))

    def _apply_style(self, url: str) -> None:
        self.bridge.send(messages.set_map_style(url))

    def _search(self, kind: str, keyword: str, location: Optional[Coordinate]) -> None:
        if kind == SEARCH_ADDRESS:
            self.bridge.send(messages.address_search(keyword))
        else:
            self.bridge.send(messages.poi_search(keyword, location))

    def _request_location_from_surface(self) -> None:
        # 照合なしの要求。応答は LOCATION_SUCCESS / LOCATION_ERROR で届く
        self.bridge.send(messages.request_location())

    # ------------------------------------------------------------------
    # 受信メッセージ → イベント
    # ------------------------------------------------------------------

    def _on_map_loaded(self, message: BridgeMessage) -> None:
        logger.info("Embedded map loaded")
        self._emit_ready()
        # 読み込み前に設定されたマーカーと現在地を再送する
        self._restore_surface()

    def _on_map_error(self, message: BridgeMessage) -> None:
        self._emit_error(vendor_str(message.data.get("message")) or "map failed to load")

    def _on_marker_click(self, message: BridgeMessage) -> None:
        marker_id = message.data.get("id")
        if marker_id is None:
            logger.warning("MARKER_CLICK without id ignored")
            return
        self._emit_marker_tap(str(marker_id))

    def _on_map_click(self, message: BridgeMessage) -> None:
        coordinate = messages.coordinate_from_data(message.data)
        if coordinate is None:
            logger.warning(f"MAP_CLICK with invalid coordinate ignored: {message.data}")
            return
        self._emit_map_tap(coordinate)

    def _on_location_success(self, message: BridgeMessage) -> None:
        if self.controller is not None:
            # コントローラー経由の測位ではプロバイダー側で処理される
            return
        coordinate = messages.coordinate_from_data(message.data)
        if coordinate is None:
            logger.warning(f"LOCATION_SUCCESS with invalid coordinate ignored: {message.data}")
            return
        self._emit_location_resolved(coordinate, None)

    def _on_location_error(self, message: BridgeMessage) -> None:
        if self.controller is not None:
            return
        self._emit_location_failed(classify_error_code(message.data.get("code"), message.data.get("message")))

    def _on_address_results(self, message: BridgeMessage) -> None:
        self._emit_search_results(SEARCH_ADDRESS, _parse_results(message.data))

    def _on_poi_results(self, message: BridgeMessage) -> None:
        self._emit_search_results(SEARCH_POI, _parse_results(message.data))


def _parse_results(data: dict[str, Any]) -> list[PointOfInterest]:
    """検索結果メッセージを POI の一覧に変換（座標の無い行は除外）"""
    results = data.get("results")
    if not isinstance(results, list):
        return []

    pois = []
    for item in results:
        if not isinstance(item, dict):
            continue
        location = messages.coordinate_from_data(item) or parse_location(item.get("location"))
        if location is None:
            continue
        distance = item.get("distance")
        pois.append(
            PointOfInterest(
                id=vendor_str(item.get("id")),
                name=vendor_str(item.get("name")),
                address=vendor_str(item.get("address")),
                location=location,
                distance_meters=vendor_int(distance) if distance not in (None, "", []) else None,
                type=vendor_str(item.get("type")) or None,
            )
        )
    return pois
