"""
地図マーカー

マーカーの色とアイコンは状態のみから決まる純粋関数で、
埋め込み地図とネイティブ地図の両方で同じ結果になる。
"""
import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..geocoding.domain.models import Coordinate
from .map_config import load_map_config


class PetStatus(str, Enum):
    """ペット情報の状態"""

    EMERGENCY = "emergency"  # 緊急
    NEEDS_RESCUE = "needs_rescue"  # 要救助
    FOR_ADOPTION = "for_adoption"  # 里親募集
    ADOPTED = "adopted"  # 譲渡済み


def marker_color(status: Optional[PetStatus]) -> str:
    """状態に対応するマーカー色（未知の状態は既定色）"""
    markers = load_map_config()["markers"]
    value = getattr(status, "value", status)
    return markers["status_colors"].get(value, markers["default_color"])


def marker_emoji(status: Optional[PetStatus]) -> str:
    """状態に対応する絵文字（吹き出し・一覧用。未知の状態は空文字）"""
    value = getattr(status, "value", status)
    return load_map_config()["markers"].get("status_icons", {}).get(value, "")


def user_location_color() -> str:
    markers = load_map_config()["markers"]
    return markers.get("user_location_color", markers["default_color"])


def marker_icon_data_url(status: Optional[PetStatus]) -> str:
    """マーカー用のSVGアイコン（data URL）"""
    size = int(load_map_config()["markers"].get("icon_size", 40))
    return svg_data_url(marker_color(status), size)


def user_location_icon_data_url() -> str:
    size = int(load_map_config()["markers"].get("icon_size", 40))
    return svg_data_url(user_location_color(), size)


def svg_data_url(color: str, size: int = 40) -> str:
    center = size // 2
    svg = (
        f'<svg width="{size}" height="{size}" xmlns="http://www.w3.org/2000/svg">'
        f'<circle cx="{center}" cy="{center}" r="{center - 2}" fill="{color}" stroke="white" stroke-width="2"/>'
        f'<circle cx="{center}" cy="{center}" r="{center - 8}" fill="white" opacity="0.3"/>'
        "</svg>"
    )
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class MapMarker:
    """地図に表示するマーカー（座標はベンダー測地系）"""

    id: str
    coordinate: Coordinate
    status: PetStatus
    title: str = ""

    @property
    def color(self) -> str:
        return marker_color(self.status)

    @property
    def icon(self) -> str:
        return marker_icon_data_url(self.status)

    @property
    def emoji(self) -> str:
        return marker_emoji(self.status)

    def to_bridge_dict(self) -> dict[str, Any]:
        """ADD_PETS メッセージの1要素"""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "longitude": self.coordinate.longitude,
            "latitude": self.coordinate.latitude,
            "color": self.color,
            "icon": self.icon,
            "emoji": self.emoji,
        }


USER_LOCATION_ID = "user-location"
USER_LOCATION_TITLE = "我的位置"


@dataclass(frozen=True)
class UserLocationMarker:
    """測位成功時に表示する現在地マーカー（座標はベンダー測地系）"""

    coordinate: Coordinate
    title: str = USER_LOCATION_TITLE

    id = USER_LOCATION_ID

    @property
    def color(self) -> str:
        return user_location_color()

    @property
    def icon(self) -> str:
        return user_location_icon_data_url()

    def to_bridge_dict(self) -> dict[str, Any]:
        """SET_USER_LOCATION メッセージの data"""
        return {
            "id": self.id,
            "title": self.title,
            "longitude": self.coordinate.longitude,
            "latitude": self.coordinate.latitude,
            "color": self.color,
            "icon": self.icon,
        }
