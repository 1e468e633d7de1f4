"""測地系変換のテスト"""
import random

import pytest

from pawlink.features.coordinates.converter import (
    SYSTEM_AUTONAVI,
    SYSTEM_GPS,
    convert_coords,
    fuzzy_location,
    haversine_distance,
    is_in_territory,
    to_device_datum,
    to_vendor_datum,
)
from pawlink.features.geocoding.domain.models import Coordinate


@pytest.mark.parametrize(
    "longitude,latitude",
    [
        (-122.4194, 37.7749),  # サンフランシスコ
        (139.6917, 35.6895),  # 東京（経度が地域外）
        (2.3522, 48.8566),  # パリ
        (151.2093, -33.8688),  # シドニー
        (116.4074, 60.0),  # 緯度が地域外
    ],
)
def test_outside_territory_is_unchanged(longitude: float, latitude: float) -> None:
    """地域外の座標は補正されない"""
    coord = Coordinate(longitude=longitude, latitude=latitude)
    assert not is_in_territory(coord)
    assert to_vendor_datum(coord) == coord
    assert to_device_datum(coord) == coord


@pytest.mark.parametrize(
    "longitude,latitude",
    [
        (116.4074, 39.9042),  # 北京
        (121.4737, 31.2304),  # 上海
        (113.2644, 23.1291),  # 広州
        (104.0665, 30.5723),  # 成都
        (87.6168, 43.8256),  # ウルムチ
    ],
)
def test_round_trip_error_is_under_five_meters(longitude: float, latitude: float) -> None:
    """地域内の往復誤差は5m未満"""
    coord = Coordinate(longitude=longitude, latitude=latitude)
    round_trip = to_device_datum(to_vendor_datum(coord))
    assert haversine_distance(coord, round_trip) < 5.0


def test_vendor_datum_applies_nonlinear_offset() -> None:
    """地域内では数百メートル規模のオフセットがかかる"""
    beijing = Coordinate(longitude=116.4074, latitude=39.9042)
    shifted = to_vendor_datum(beijing)

    assert shifted != beijing
    assert 100 < haversine_distance(beijing, shifted) < 1000


def test_end_to_end_beijing_scenario() -> None:
    """(39.9042, 116.4074) を変換して戻すと5m未満の差に収まる"""
    device = Coordinate(longitude=116.4074, latitude=39.9042)
    vendor = convert_coords(device, from_system=SYSTEM_GPS, to_system=SYSTEM_AUTONAVI)
    back = convert_coords(vendor, from_system=SYSTEM_AUTONAVI, to_system=SYSTEM_GPS)
    assert haversine_distance(device, back) < 5.0


def test_convert_coords_accepts_list() -> None:
    """リストを渡すとリストで返る"""
    coords = [Coordinate(116.4074, 39.9042), Coordinate(-122.4194, 37.7749)]
    converted = convert_coords(coords)

    assert isinstance(converted, list)
    assert converted[0] == to_vendor_datum(coords[0])
    assert converted[1] == coords[1]


def test_convert_coords_unknown_system_passes_through() -> None:
    """未知の組み合わせは変換しない"""
    coord = Coordinate(116.4074, 39.9042)
    assert convert_coords(coord, from_system="baidu", to_system=SYSTEM_AUTONAVI) == coord


def test_haversine_distance_known_value() -> None:
    """北京〜上海の距離はおよそ1067km"""
    beijing = Coordinate(116.4074, 39.9042)
    shanghai = Coordinate(121.4737, 31.2304)
    assert haversine_distance(beijing, shanghai) == pytest.approx(1_067_000, rel=0.01)
    assert haversine_distance(beijing, beijing) == 0.0


def test_fuzzy_location_stays_within_radius() -> None:
    """ぼかした位置は半径内に収まる"""
    rng = random.Random(42)
    origin = Coordinate(116.4074, 39.9042)
    for _ in range(50):
        fuzzed = fuzzy_location(origin, radius=500, rng=rng)
        assert haversine_distance(origin, fuzzed) <= 505
