"""ネイティブ地図ウィジェット向けのアダプター"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ...shared.exceptions.errors import ConfigurationError, RemoteServiceError
from ...shared.logging.config import get_logger
from ..coordinates.converter import to_device_datum, to_vendor_datum
from ..geocoding.domain.models import Coordinate
from ..geocoding.providers.amap_geocoder import AmapGeocodingClient
from ..location.domain.enums import Datum
from ..location.services.acquisition_controller import LocationAcquisitionController
from .base import SEARCH_ADDRESS, MapHostAdapter
from .markers import MapMarker, UserLocationMarker

logger = get_logger(__name__)


@dataclass(frozen=True)
class NativeMarker:
    """ネイティブ地図に描画するマーカー（座標はウィジェットの測地系）"""

    id: str
    coordinate: Coordinate
    color: str
    icon: str
    title: str = ""
    emoji: str = ""


class NativeMapWidget(ABC):
    """ネイティブ地図ウィジェットの描画プリミティブ"""

    @property
    @abstractmethod
    def datum(self) -> Datum:
        """ウィジェットが扱う座標の測地系"""
        pass

    @abstractmethod
    def show_markers(self, markers: list[NativeMarker]) -> None:
        pass

    @abstractmethod
    def show_user_location(self, marker: NativeMarker) -> None:
        """現在地マーカーを表示（前回の現在地マーカーは置き換える）"""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def set_region(self, center: Coordinate, zoom: Optional[int]) -> None:
        pass

    @abstractmethod
    def set_style(self, url: str) -> None:
        pass


class NativeMapHostAdapter(MapHostAdapter):
    """
    ネイティブ地図ウィジェット向けのアダプター

    ブリッジを使わず、測位はコントローラー（デバイスのAPI）、
    検索は GeocodingClient で直接行う。ウィジェットの測地系が
    ベンダー測地系と異なる場合は、描画時とタップ時に座標を変換する。
    """

    backend = "native"

    def __init__(
        self,
        widget: NativeMapWidget,
        controller: LocationAcquisitionController,
        geocoder: Optional[AmapGeocodingClient] = None,
        auto_locate: bool = False,
    ) -> None:
        """
        Args:
            widget: ネイティブ地図ウィジェット
            controller: 測位コントローラー（必須）
            geocoder: 検索用クライアント（Noneの場合は検索不可）
            auto_locate: 地図の準備完了時に自動で測位するか
        """
        if controller is None:
            raise ConfigurationError("Native map host requires a location controller")
        super().__init__(controller)
        self.widget = widget
        self.geocoder = geocoder
        self.auto_locate = auto_locate

    def recenter(self, coordinate: Coordinate, zoom: Optional[int] = None) -> None:
        self.widget.set_region(self._to_widget(coordinate), zoom)

    def _render_markers(self, markers: list[MapMarker]) -> None:
        self.widget.show_markers(
            [
                NativeMarker(
                    id=m.id,
                    coordinate=self._to_widget(m.coordinate),
                    color=m.color,
                    icon=m.icon,
                    title=m.title,
                    emoji=m.emoji,
                )
                for m in markers
            ]
        )

    def _clear_markers(self) -> None:
        self.widget.clear()

    def _render_user_location(self, marker: UserLocationMarker) -> None:
        self.widget.show_user_location(
            NativeMarker(
                id=marker.id,
                coordinate=self._to_widget(marker.coordinate),
                color=marker.color,
                icon=marker.icon,
                title=marker.title,
            )
        )

    def _apply_style(self, url: str) -> None:
        self.widget.set_style(url)

    def _search(self, kind: str, keyword: str, location: Optional[Coordinate]) -> None:
        if self.geocoder is None:
            logger.warning("Native map host has no geocoder; search ignored")
            return

        try:
            if kind == SEARCH_ADDRESS:
                results = self.geocoder.input_suggest(keyword)
            else:
                results = self.geocoder.search_poi(keyword, location=location)
        except RemoteServiceError as e:
            self._emit_error(f"Search failed: {e}")
            return
        self._emit_search_results(kind, results)

    # ------------------------------------------------------------------
    # ウィジェットからの通知
    # ------------------------------------------------------------------

    def handle_map_ready(self) -> None:
        self._emit_ready()
        self._restore_surface()
        if self.auto_locate:
            self.request_location()

    def handle_map_press(self, coordinate: Coordinate) -> None:
        """ウィジェットの測地系でのタップ位置"""
        self._emit_map_tap(self._from_widget(coordinate))

    def handle_marker_press(self, marker_id: str) -> None:
        self._emit_marker_tap(marker_id)

    def handle_error(self, message: str) -> None:
        self._emit_error(message)

    def _to_widget(self, coordinate: Coordinate) -> Coordinate:
        if self.widget.datum == Datum.WGS84:
            return to_device_datum(coordinate)
        return coordinate

    def _from_widget(self, coordinate: Coordinate) -> Coordinate:
        if self.widget.datum == Datum.WGS84:
            return to_vendor_datum(coordinate)
        return coordinate
