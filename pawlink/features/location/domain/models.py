"""測位機能のドメインモデル"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ....shared.utils.datetime_utils import format_local, now_utc
from ...geocoding.domain.models import AddressResult, Coordinate
from .enums import AcquisitionStatus, Datum, FailureReason, ProviderRole


@dataclass(frozen=True)
class Position:
    """プロバイダーが返す測位結果"""

    coordinate: Coordinate
    datum: Datum  # coordinate の測地系
    accuracy: Optional[float] = None  # 精度（メートル）
    address: Optional[str] = None  # プロバイダーが付与した住所（あれば）


@dataclass(frozen=True)
class RetryPolicy:
    """
    リトライ・プロバイダー切替の方針

    しきい値は業務ルールではなく設定値として扱う。
    """

    max_attempts: int = 3  # 1プロバイダーあたりの最大試行回数
    backoff_base_seconds: float = 1.0  # 待機 = 基準 × 失敗した試行番号
    timeout_seconds: float = 20.0  # 1回の試行のタイムアウト
    switch_after_transient_failures: int = 2  # 連続一時失敗で切替

    def backoff_for(self, failed_attempt: int) -> float:
        """失敗した試行番号に対する待機時間（線形バックオフ）"""
        return self.backoff_base_seconds * failed_attempt


@dataclass(frozen=True)
class AcquisitionState:
    """
    1回の測位リクエストの状態

    リクエストごとに生成され、コントローラーが所有する。
    遷移は state_machine.transition でのみ行う。
    """

    status: AcquisitionStatus = AcquisitionStatus.IDLE
    provider: ProviderRole = ProviderRole.PRIMARY
    has_secondary: bool = False
    attempt: int = 0  # 現在のプロバイダーでの試行番号（1始まり）
    total_attempts: int = 0  # 全プロバイダー合計の試行回数
    consecutive_transient_failures: int = 0
    retry_delay: float = 0.0  # 次の試行前に待つ秒数
    position: Optional[Position] = None
    address: Optional[AddressResult] = None
    reason: Optional[FailureReason] = None
    address_error: Optional[str] = None  # 住所解決の失敗（致命的ではない）

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass
class LocationResult:
    """
    測位リクエストの最終結果

    coordinate は常にベンダー測地系（GCJ-02）。
    住所解決に失敗しても測位自体は成功として返し、address は None になる。
    """

    status: AcquisitionStatus
    coordinate: Optional[Coordinate] = None
    address: Optional[AddressResult] = None
    accuracy: Optional[float] = None
    reason: Optional[FailureReason] = None
    address_error: Optional[str] = None
    provider: Optional[ProviderRole] = None
    attempts: int = 0
    acquired_at: datetime = field(default_factory=now_utc)

    @property
    def succeeded(self) -> bool:
        return self.status == AcquisitionStatus.SUCCEEDED

    @property
    def guidance(self) -> Optional[str]:
        """失敗時の利用者向け案内文"""
        return self.reason.guidance if self.reason else None

    @property
    def address_text(self) -> Optional[str]:
        return self.address.formatted_address if self.address else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "coordinate": self.coordinate.to_dict() if self.coordinate else None,
            "address": self.address.to_dict() if self.address else None,
            "accuracy": self.accuracy,
            "reason": self.reason.value if self.reason else None,
            "guidance": self.guidance,
            "address_error": self.address_error,
            "provider": self.provider.value if self.provider else None,
            "attempts": self.attempts,
            "acquired_at": self.acquired_at.isoformat(),
            "acquired_at_local": format_local(self.acquired_at),
        }
