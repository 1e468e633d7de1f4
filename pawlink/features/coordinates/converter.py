"""
測地系変換（WGS84 ⇔ GCJ-02）

デバイスGPSの測地系（WGS84）と地図ベンダーのオフセット測地系（GCJ-02）を
相互変換する。補正式はサービス地域内でのみ有効なため、地域外の座標は
補正せずにそのまま返す。
"""

import math
import random
from typing import Optional, Union

from ..geocoding.domain.models import Coordinate

# Krasovsky 1940 楕円体
_A = 6378245.0
_EE = 0.00669342162296594323

# 補正式が有効な地域（ベンダーのサービス地域）
TERRITORY_MIN_LONGITUDE = 72.004
TERRITORY_MAX_LONGITUDE = 137.8347
TERRITORY_MIN_LATITUDE = 0.8293
TERRITORY_MAX_LATITUDE = 55.8271

EARTH_RADIUS_METERS = 6371000.0

# 変換元・変換先の識別子
SYSTEM_GPS = "gps"
SYSTEM_AUTONAVI = "autonavi"


def is_in_territory(coord: Coordinate) -> bool:
    """補正式が有効な地域内かどうか"""
    return (
        TERRITORY_MIN_LONGITUDE <= coord.longitude <= TERRITORY_MAX_LONGITUDE
        and TERRITORY_MIN_LATITUDE <= coord.latitude <= TERRITORY_MAX_LATITUDE
    )


def _transform_lat(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * math.pi) + 40.0 * math.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * math.pi) + 320.0 * math.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lon(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * math.pi) + 40.0 * math.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * math.pi) + 300.0 * math.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


def _offset(longitude: float, latitude: float) -> tuple[float, float]:
    """(経度オフセット, 緯度オフセット) を度単位で返す"""
    d_lat = _transform_lat(longitude - 105.0, latitude - 35.0)
    d_lon = _transform_lon(longitude - 105.0, latitude - 35.0)

    rad_lat = latitude / 180.0 * math.pi
    magic = math.sin(rad_lat)
    magic = 1 - _EE * magic * magic
    sqrt_magic = math.sqrt(magic)

    d_lat = (d_lat * 180.0) / ((_A * (1 - _EE)) / (magic * sqrt_magic) * math.pi)
    d_lon = (d_lon * 180.0) / (_A / sqrt_magic * math.cos(rad_lat) * math.pi)
    return d_lon, d_lat


def to_vendor_datum(coord: Coordinate) -> Coordinate:
    """
    WGS84 → GCJ-02

    Args:
        coord: デバイス測地系の座標

    Returns:
        Coordinate: ベンダー測地系の座標（地域外なら入力をそのまま返す）
    """
    if not is_in_territory(coord):
        return coord

    d_lon, d_lat = _offset(coord.longitude, coord.latitude)
    return Coordinate(longitude=coord.longitude + d_lon, latitude=coord.latitude + d_lat)


def to_device_datum(coord: Coordinate) -> Coordinate:
    """
    GCJ-02 → WGS84

    オフセットを入力点で評価して差し引く近似逆変換。
    地域内での往復誤差は数メートル未満に収まる。

    Args:
        coord: ベンダー測地系の座標

    Returns:
        Coordinate: デバイス測地系の座標（地域外なら入力をそのまま返す）
    """
    if not is_in_territory(coord):
        return coord

    d_lon, d_lat = _offset(coord.longitude, coord.latitude)
    return Coordinate(longitude=coord.longitude - d_lon, latitude=coord.latitude - d_lat)


def convert_coords(
    coords: Union[Coordinate, list[Coordinate]],
    from_system: str = SYSTEM_GPS,
    to_system: str = SYSTEM_AUTONAVI,
) -> Union[Coordinate, list[Coordinate]]:
    """
    座標（単体またはリスト）を測地系変換

    gps ⇔ autonavi 以外の組み合わせは変換せずそのまま返す。
    """

    def convert(coord: Coordinate) -> Coordinate:
        if from_system == SYSTEM_GPS and to_system == SYSTEM_AUTONAVI:
            return to_vendor_datum(coord)
        if from_system == SYSTEM_AUTONAVI and to_system == SYSTEM_GPS:
            return to_device_datum(coord)
        return coord

    if isinstance(coords, list):
        return [convert(c) for c in coords]
    return convert(coords)


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """2点間の大圏距離（メートル）"""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def fuzzy_location(
    coord: Coordinate,
    radius: float = 500.0,
    rng: Optional[random.Random] = None,
) -> Coordinate:
    """
    位置のぼかし（プライバシー保護）

    ランダムな方向へ最大 radius メートルずらした座標を返す。

    Args:
        coord: 元の座標
        radius: ぼかし半径（メートル）
        rng: 乱数生成器（テスト用）
    """
    rng = rng or random.Random()
    angle = rng.random() * 2 * math.pi
    distance = rng.random() * radius

    # 緯度1度 ≒ 111km
    d_lat = distance * math.cos(angle) / 111000.0
    d_lon = distance * math.sin(angle) / (111000.0 * math.cos(math.radians(coord.latitude)))

    latitude = max(-90.0, min(90.0, coord.latitude + d_lat))
    longitude = max(-180.0, min(180.0, coord.longitude + d_lon))
    return Coordinate(longitude=longitude, latitude=latitude)
