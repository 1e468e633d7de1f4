"""
ブリッジメッセージの定義とエンコード/デコード

サンドボックス境界をまたぐため、すべてのメッセージは
{"type": <str>, "data": <object>} の平坦なJSONに文字列化して送受信する。
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ....shared.exceptions.errors import BridgeProtocolError, ValidationError
from ...geocoding.domain.models import Coordinate


class InboundType(str, Enum):
    """埋め込み地図 → ホスト"""

    MAP_LOADED = "MAP_LOADED"  # MapReady
    MAP_ERROR = "MAP_ERROR"  # MapError
    MARKER_CLICK = "MARKER_CLICK"  # MarkerTapped
    LOCATION_SUCCESS = "LOCATION_SUCCESS"  # LocationResolved
    LOCATION_ERROR = "LOCATION_ERROR"  # LocationFailed
    MAP_CLICK = "MAP_CLICK"  # MapTapped
    ADDRESS_SEARCH_RESULT = "ADDRESS_SEARCH_RESULT"
    POI_SEARCH_RESULT = "POI_SEARCH_RESULT"


class OutboundType(str, Enum):
    """ホスト → 埋め込み地図"""

    ADD_PETS = "ADD_PETS"  # SetMarkers
    CLEAR_PETS = "CLEAR_PETS"  # ClearMarkers
    CENTER_MAP = "CENTER_MAP"  # RecenterMap
    GET_LOCATION = "GET_LOCATION"  # RequestLocation
    SET_MAP_STYLE = "SET_MAP_STYLE"  # SetStyle
    ADDRESS_SEARCH = "ADDRESS_SEARCH"
    POI_SEARCH = "POI_SEARCH"
    SET_USER_LOCATION = "SET_USER_LOCATION"  # 現在地マーカー


@dataclass(frozen=True)
class BridgeMessage:
    """ブリッジを流れる1メッセージ"""

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def encode(self) -> str:
        """
        送信用の文字列に変換

        Raises:
            BridgeProtocolError: JSONに変換できない値を含む場合
        """
        try:
            return json.dumps({"type": self.type, "data": self.data}, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise BridgeProtocolError(f"Message {self.type} is not JSON-serializable: {e}") from e

    @classmethod
    def decode(cls, raw: str) -> "BridgeMessage":
        """
        受信文字列からメッセージを復元

        Raises:
            BridgeProtocolError: JSONでない、オブジェクトでない、typeが無い場合
        """
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise BridgeProtocolError(f"Bridge message is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise BridgeProtocolError("Bridge message must be a JSON object")

        message_type = payload.get("type")
        if not isinstance(message_type, str) or not message_type:
            raise BridgeProtocolError("Bridge message has no 'type'")

        data = payload.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise BridgeProtocolError(f"Bridge message {message_type} has non-object 'data'")

        return cls(type=message_type, data=data)


# ----------------------------------------------------------------------
# 送信メッセージの生成
# ----------------------------------------------------------------------


def set_markers(markers: list[dict[str, Any]]) -> BridgeMessage:
    return BridgeMessage(OutboundType.ADD_PETS.value, {"pets": markers})


def clear_markers() -> BridgeMessage:
    return BridgeMessage(OutboundType.CLEAR_PETS.value)


def set_user_location(marker: dict[str, Any]) -> BridgeMessage:
    return BridgeMessage(OutboundType.SET_USER_LOCATION.value, marker)


def recenter_map(coord: Coordinate, zoom: Optional[int] = None) -> BridgeMessage:
    data: dict[str, Any] = {"longitude": coord.longitude, "latitude": coord.latitude}
    if zoom is not None:
        data["zoom"] = zoom
    return BridgeMessage(OutboundType.CENTER_MAP.value, data)


def request_location(request_id: Optional[str] = None) -> BridgeMessage:
    data: dict[str, Any] = {}
    if request_id is not None:
        data["requestId"] = request_id
    return BridgeMessage(OutboundType.GET_LOCATION.value, data)


def set_map_style(style_url: str) -> BridgeMessage:
    return BridgeMessage(OutboundType.SET_MAP_STYLE.value, {"style": style_url})


def address_search(keyword: str) -> BridgeMessage:
    return BridgeMessage(OutboundType.ADDRESS_SEARCH.value, {"keyword": keyword})


def poi_search(keyword: str, location: Optional[Coordinate] = None) -> BridgeMessage:
    data: dict[str, Any] = {"keyword": keyword}
    if location is not None:
        data["longitude"] = location.longitude
        data["latitude"] = location.latitude
    return BridgeMessage(OutboundType.POI_SEARCH.value, data)


def coordinate_from_data(data: dict[str, Any]) -> Optional[Coordinate]:
    """data の longitude / latitude から座標を取り出す（不正ならNone）"""
    try:
        return Coordinate(longitude=float(data["longitude"]), latitude=float(data["latitude"]))
    except (KeyError, TypeError, ValueError, ValidationError):
        return None
