"""位置情報プロバイダーの基底クラス"""
from abc import ABC, abstractmethod

from ..domain.enums import Datum
from ..domain.models import Position


class LocationProvider(ABC):
    """
    位置情報プロバイダーの基底クラス

    プライマリ（埋め込み地図経由）とセカンダリ（デバイスAPI）で共通の契約。
    タイムアウトはコントローラー側で管理する。
    """

    name: str = "provider"

    @property
    @abstractmethod
    def datum(self) -> Datum:
        """このプロバイダーが返す座標の測地系"""
        pass

    @abstractmethod
    def request_permission(self) -> bool:
        """
        位置情報の利用許可を求める

        Returns:
            bool: 許可された場合True

        Raises:
            LocationError: 許可の確認自体に失敗した場合
        """
        pass

    @abstractmethod
    def get_current_position(self) -> Position:
        """
        現在位置を1回取得

        Raises:
            LocationError: 取得に失敗した場合
        """
        pass

    def cancel(self) -> None:
        """タイムアウトで打ち切った取得を手放す（遅れて届いた結果は使われない）"""
        pass
