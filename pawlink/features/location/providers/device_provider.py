"""デバイスの位置情報APIを使うプロバイダー"""
from typing import Callable, Optional

from ....shared.exceptions.errors import LocationError, ValidationError
from ....shared.logging.config import get_logger
from ...geocoding.domain.models import Coordinate
from ..domain.enums import Datum, FailureReason, classify_error_code
from ..domain.models import Position
from .base import LocationProvider

logger = get_logger(__name__)

# position_fn の戻り値: (経度, 緯度, 精度) または Position
PositionFn = Callable[[], object]


class DeviceLocationProvider(LocationProvider):
    """
    デバイスの位置情報API（GPS）をラップするプロバイダー

    座標は WGS-84 で返る。ベンダー測地系への変換はコントローラーが行う。
    プラットフォームAPIは関数として注入する。
    """

    def __init__(
        self,
        permission_fn: Callable[[], bool],
        position_fn: PositionFn,
        name: str = "device",
        datum: Datum = Datum.WGS84,
    ) -> None:
        self.permission_fn = permission_fn
        self.position_fn = position_fn
        self.name = name
        self._datum = datum

    @property
    def datum(self) -> Datum:
        return self._datum

    def request_permission(self) -> bool:
        try:
            return bool(self.permission_fn())
        except LocationError:
            raise
        except Exception as e:
            raise _wrap(e) from e

    def get_current_position(self) -> Position:
        try:
            raw = self.position_fn()
        except LocationError:
            raise
        except Exception as e:
            raise _wrap(e) from e

        if isinstance(raw, Position):
            return raw
        return _to_position(raw, self._datum)


def _wrap(error: Exception) -> LocationError:
    """プラットフォームの例外（code属性を持つことが多い）を LocationError に変換"""
    code = getattr(error, "code", None)
    if isinstance(error, TimeoutError):
        reason = FailureReason.TIMEOUT
    elif isinstance(error, ConnectionError):
        reason = FailureReason.NETWORK_ERROR
    else:
        reason = classify_error_code(code, str(error))
    logger.debug(f"Device location error classified as {reason.value}: {error}")
    return LocationError(reason, str(error) or reason.value)


def _to_position(raw: object, datum: Datum) -> Position:
    try:
        longitude, latitude, *rest = raw  # type: ignore[misc]
        accuracy: Optional[float] = float(rest[0]) if rest and rest[0] is not None else None
        return Position(
            coordinate=Coordinate(longitude=float(longitude), latitude=float(latitude)),
            datum=datum,
            accuracy=accuracy,
        )
    except (TypeError, ValueError, ValidationError) as e:
        raise LocationError(FailureReason.PROVIDER_UNAVAILABLE, f"Unexpected device position: {raw!r}") from e
