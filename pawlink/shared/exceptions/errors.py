"""カスタム例外定義"""

from typing import Any, Optional


class PawLinkError(Exception):
    """位置情報・地図ブリッジ基底例外"""

    pass


class HTTPError(PawLinkError):
    """HTTP関連のエラー"""

    pass


class RemoteServiceError(PawLinkError):
    """
    リモートサービス（地図ベンダーAPI）の呼び出し失敗

    ベンダー側の診断コード・メッセージをそのまま保持する
    """

    def __init__(self, code: str, message: str) -> None:
        """
        Args:
            code: ベンダーのエラーコード（infocode等）
            message: ベンダーのエラーメッセージ（info等）
        """
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class GeocodeError(RemoteServiceError):
    """逆ジオコーディングエラー"""

    pass


class LocationError(PawLinkError):
    """位置情報プロバイダーのエラー"""

    def __init__(self, reason: Any, message: Optional[str] = None) -> None:
        """
        Args:
            reason: 失敗理由（FailureReason）
            message: 詳細メッセージ
        """
        self.reason = reason
        self.message = message or str(getattr(reason, "value", reason))
        super().__init__(self.message)


class AcquisitionInProgressError(PawLinkError):
    """測位リクエストが既に実行中"""

    pass


class InvalidTransitionError(PawLinkError):
    """状態機械で許可されていない遷移"""

    pass


class BridgeProtocolError(PawLinkError):
    """ブリッジメッセージの形式エラー"""

    pass


class ConfigurationError(PawLinkError):
    """設定エラー"""

    pass


class ValidationError(PawLinkError):
    """バリデーションエラー"""

    pass
