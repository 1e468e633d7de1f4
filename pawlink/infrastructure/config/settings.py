"""アプリケーション設定（Pydantic Settings）"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ...shared.logging.config import get_logger

logger = get_logger(__name__)

# APIキーとして妥当とみなす最小長（この長さ以下は不正扱い）
API_KEY_MIN_LENGTH = 10


def is_valid_api_key(key: Optional[str]) -> bool:
    """APIキーの形式チェック（未設定または10文字以下は不正）"""
    return bool(key) and len(key) > API_KEY_MIN_LENGTH


class Settings(BaseSettings):
    """アプリケーション設定"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = Field(
        default="pawlink-location-bridge",
        description="プロジェクト名",
    )
    environment: str = Field(
        default="development",
        description="環境 (development, staging, production)",
    )

    # Amap Web Service
    amap_api_key: str = Field(
        default="",
        description="高徳地図 Web サービス API Key（逆ジオコーディング・検索等）",
    )
    amap_js_api_key: Optional[str] = Field(
        default=None,
        description="埋め込み地図（JS API）用のKey。未設定時は amap_api_key を使用",
    )
    amap_base_url: str = Field(
        default="https://restapi.amap.com/v3",
        description="Web サービス API のベースURL",
    )
    http_timeout: float = Field(
        default=10.0,
        description="HTTPリクエストのタイムアウト（秒）",
    )

    # Geocoding
    geocode_cache_ttl_seconds: float = Field(
        default=3600.0,
        description="逆ジオコーディングキャッシュの有効期間（秒）",
    )
    geocode_requests_per_second: Optional[float] = Field(
        default=None,
        description="ベンダーAPIへの最大リクエスト数/秒（未設定時は制限なし）",
    )

    # Location acquisition
    location_timeout_seconds: float = Field(
        default=20.0,
        description="1回の測位試行のタイムアウト（秒）",
    )
    location_max_attempts: int = Field(
        default=3,
        description="測位の最大試行回数",
    )
    location_backoff_base_seconds: float = Field(
        default=1.0,
        description="リトライ待機の基準時間（秒）。待機 = 基準 × 試行番号",
    )
    location_switch_after_transient_failures: int = Field(
        default=2,
        description="一時的失敗がこの回数連続したらセカンダリプロバイダーへ切り替え",
    )

    # Map host
    map_backend: str = Field(
        default="sandboxed",
        description="地図描画バックエンド (sandboxed, native)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # HTTP server
    port: int = Field(
        default=8080,
        description="HTTPサーバーのポート番号",
    )

    @field_validator("map_backend")
    @classmethod
    def _validate_map_backend(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ("sandboxed", "native"):
            raise ValueError(f"map_backend must be 'sandboxed' or 'native', got {value!r}")
        return normalized

    @field_validator("location_max_attempts", "location_switch_after_transient_failures")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("location_timeout_seconds", "location_backoff_base_seconds", "http_timeout")
    @classmethod
    def _validate_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @property
    def js_api_key(self) -> str:
        """埋め込み地図用のAPIキー"""
        return self.amap_js_api_key or self.amap_api_key

    def validate_api_key(self) -> bool:
        """
        APIキーの設定を検査

        不正な場合も例外にはせず警告ログのみ出力する。
        実際のリクエストはベンダー側の認証エラーで失敗する。

        Returns:
            bool: 妥当な形式ならTrue
        """
        if not is_valid_api_key(self.amap_api_key):
            logger.warning(
                "Amap API key is missing or malformed; set AMAP_API_KEY "
                "(requests will fail with a vendor auth error)"
            )
            return False
        return True

    @property
    def is_production(self) -> bool:
        """本番環境かどうか"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """開発環境かどうか"""
        return self.environment.lower() == "development"
