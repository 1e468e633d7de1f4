"""測位機能のEnum定義"""
from enum import Enum
from typing import Any, Optional


class AcquisitionStatus(str, Enum):
    """測位リクエストの状態"""

    IDLE = "idle"  # 待機
    REQUESTING_PERMISSION = "requesting_permission"  # 権限要求中
    ACQUIRING = "acquiring"  # 測位中
    RESOLVING_ADDRESS = "resolving_address"  # 住所解決中
    SUCCEEDED = "succeeded"  # 成功
    FAILED = "failed"  # 失敗

    @property
    def is_terminal(self) -> bool:
        """終端状態かどうか"""
        return self in (AcquisitionStatus.SUCCEEDED, AcquisitionStatus.FAILED)


class FailureReason(str, Enum):
    """測位失敗の理由"""

    PERMISSION_DENIED = "permission_denied"  # 権限拒否（リトライしない）
    TIMEOUT = "timeout"  # タイムアウト（リトライ可）
    PROVIDER_UNAVAILABLE = "provider_unavailable"  # プロバイダー利用不可
    NETWORK_ERROR = "network_error"  # 一時的な通信エラー（リトライ可）

    @property
    def is_retryable(self) -> bool:
        """同一プロバイダーでリトライ可能か"""
        return self in (FailureReason.TIMEOUT, FailureReason.NETWORK_ERROR)

    @property
    def guidance(self) -> str:
        """利用者向けの案内文"""
        return FAILURE_GUIDANCE[self]


FAILURE_GUIDANCE = {
    FailureReason.PERMISSION_DENIED: "定位权限被拒绝，请在设置中开启定位权限",
    FailureReason.TIMEOUT: "定位超时，请检查网络和GPS设置后重试",
    FailureReason.PROVIDER_UNAVAILABLE: "此设备定位不可用，请手动选择位置",
    FailureReason.NETWORK_ERROR: "网络异常，请检查网络连接后重试",
}


class ProviderRole(str, Enum):
    """プロバイダーの役割"""

    PRIMARY = "primary"  # 埋め込み地図経由
    SECONDARY = "secondary"  # デバイスの位置情報API


class Datum(str, Enum):
    """測地系"""

    WGS84 = "wgs84"  # デバイスGPS
    GCJ02 = "gcj02"  # 地図ベンダー


# プロバイダー・埋め込み地図が返すエラーコードの分類表
_ERROR_CODE_REASONS: dict[str, FailureReason] = {
    "PERMISSION_DENIED": FailureReason.PERMISSION_DENIED,
    "1": FailureReason.PERMISSION_DENIED,
    "POSITION_UNAVAILABLE": FailureReason.PROVIDER_UNAVAILABLE,
    "2": FailureReason.PROVIDER_UNAVAILABLE,
    "TIMEOUT": FailureReason.TIMEOUT,
    "LOCATION_TIMEOUT": FailureReason.TIMEOUT,
    "3": FailureReason.TIMEOUT,
    "API_UNAVAILABLE": FailureReason.PROVIDER_UNAVAILABLE,
    "17": FailureReason.PROVIDER_UNAVAILABLE,
    "PLAY_SERVICES_NOT_AVAILABLE": FailureReason.PROVIDER_UNAVAILABLE,
    "NETWORK_ERROR": FailureReason.NETWORK_ERROR,
}


def classify_error_code(code: Any = None, message: Optional[str] = None) -> FailureReason:
    """
    プロバイダーのエラーコード・メッセージを失敗理由に分類

    コードで判定できない場合はメッセージのキーワードで判定する。
    いずれにも該当しなければ PROVIDER_UNAVAILABLE とする。
    """
    if code is not None:
        reason = _ERROR_CODE_REASONS.get(str(code).strip().upper())
        if reason is not None:
            return reason

    text = (message or "").lower()
    if "permission" in text or "denied" in text or "权限" in text:
        return FailureReason.PERMISSION_DENIED
    if "timeout" in text or "超时" in text:
        return FailureReason.TIMEOUT
    if "network" in text or "iplocation" in text or "网络" in text:
        return FailureReason.NETWORK_ERROR
    return FailureReason.PROVIDER_UNAVAILABLE
