"""埋め込み地図（ブリッジ）経由の位置情報プロバイダー"""
from typing import Optional

from ....shared.exceptions.errors import LocationError
from ...mapbridge.correlation import LocationRequestTracker
from ..domain.enums import Datum
from ..domain.models import Position
from .base import LocationProvider


class BridgeLocationProvider(LocationProvider):
    """
    埋め込み地図の測位機能を使うプロバイダー

    地図ページ側で座標をベンダー測地系に変換して返すため datum は GCJ-02。
    権限の確認は地図ページ側で行われるので、ここでは常に許可として扱う。
    """

    name = "bridge"

    def __init__(self, tracker: LocationRequestTracker, wait_timeout: Optional[float] = None) -> None:
        """
        Args:
            tracker: ブリッジの測位リクエスト管理
            wait_timeout: 応答待ちの上限秒数（Noneの場合はコントローラーのタイムアウトに任せる）
        """
        self.tracker = tracker
        self.wait_timeout = wait_timeout

    @property
    def datum(self) -> Datum:
        return Datum.GCJ02

    def request_permission(self) -> bool:
        return True

    def get_current_position(self) -> Position:
        pending = self.tracker.request()
        try:
            return pending.wait(self.wait_timeout)
        except LocationError:
            if not pending.done:
                self.tracker.abandon(pending)
            raise

    def cancel(self) -> None:
        pending = self.tracker.outstanding
        if pending is not None:
            self.tracker.abandon(pending)
