"""ジオコーディング機能のドメインモデル"""
from dataclasses import dataclass, field
from typing import Any, Optional

from ....shared.exceptions.errors import ValidationError

# キャッシュキーの量子化桁数（小数点以下6桁 ≒ 0.11m）
QUANTIZE_DIGITS = 6


@dataclass(frozen=True)
class Coordinate:
    """
    座標（経度・緯度）

    どの測地系（デバイスのWGS84 / ベンダーのGCJ-02）で表現されているかは
    呼び出し側の文脈で決まる。測地系の異なる座標を混在させる場合は
    必ず converter を経由すること。
    """

    longitude: float  # 経度
    latitude: float  # 緯度

    def __post_init__(self) -> None:
        if not (-180 <= self.longitude <= 180):
            raise ValidationError(f"longitude must be between -180 and 180, got {self.longitude}")
        if not (-90 <= self.latitude <= 90):
            raise ValidationError(f"latitude must be between -90 and 90, got {self.latitude}")

    def to_param(self) -> str:
        """ベンダーAPIのクエリ形式 "lon,lat" に変換"""
        return f"{self.longitude},{self.latitude}"

    def quantized_key(self, digits: int = QUANTIZE_DIGITS) -> str:
        """キャッシュキー用に量子化した文字列を返す"""
        return f"{self.longitude:.{digits}f},{self.latitude:.{digits}f}"

    @classmethod
    def from_param(cls, value: str) -> "Coordinate":
        """
        "lon,lat" 形式の文字列から生成

        Raises:
            ValidationError: 形式が不正な場合
        """
        parts = value.split(",") if value else []
        if len(parts) != 2:
            raise ValidationError(f"Invalid coordinate string: {value!r}")
        try:
            return cls(longitude=float(parts[0]), latitude=float(parts[1]))
        except ValueError as e:
            raise ValidationError(f"Invalid coordinate string: {value!r}") from e

    def to_dict(self) -> dict[str, float]:
        return {"longitude": self.longitude, "latitude": self.latitude}


@dataclass(frozen=True)
class AddressResult:
    """逆ジオコーディング結果（生成後は不変）"""

    formatted_address: str  # 整形済み住所
    province: str  # 省
    city: str  # 市
    district: str  # 区
    adcode: str  # 行政区画コード
    city_code: str  # 都市コード
    source_coordinate: Coordinate  # 問い合わせ座標（ベンダー測地系）
    township: Optional[str] = None  # 郷鎮・街道
    street_number: Optional[str] = None  # 通り名
    business_circle: Optional[str] = None  # 商圏

    def to_dict(self) -> dict[str, Any]:
        return {
            "formatted_address": self.formatted_address,
            "province": self.province,
            "city": self.city,
            "district": self.district,
            "township": self.township,
            "street_number": self.street_number,
            "business_circle": self.business_circle,
            "adcode": self.adcode,
            "city_code": self.city_code,
            "source_coordinate": self.source_coordinate.to_dict(),
        }


@dataclass(frozen=True)
class PointOfInterest:
    """POI検索・入力補完の結果行"""

    id: str
    name: str
    address: str
    location: Optional[Coordinate]
    distance_meters: Optional[int] = None
    type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "location": self.location.to_dict() if self.location else None,
            "distance_meters": self.distance_meters,
            "type": self.type,
        }


@dataclass(frozen=True)
class RouteResult:
    """経路計画の結果"""

    distance_meters: int
    duration_seconds: int
    path: list[Coordinate] = field(default_factory=list)
    toll_fare: int = 0  # 通行料（元）
    traffic_light_count: int = 0
    strategy: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "distance_meters": self.distance_meters,
            "duration_seconds": self.duration_seconds,
            "path": [c.to_dict() for c in self.path],
            "toll_fare": self.toll_fare,
            "traffic_light_count": self.traffic_light_count,
            "strategy": self.strategy,
        }


@dataclass(frozen=True)
class CacheEntry:
    """キャッシュの1行"""

    key: str
    value: AddressResult
    inserted_at: float  # 挿入時刻（単調時計の秒）
