"""サービスコンテナ"""

from typing import Optional

from ...infrastructure.config.settings import Settings
from ...shared.exceptions.errors import ConfigurationError
from ...shared.http.client import HTTPClient
from ...shared.http.rate_limiter import RateLimiter
from ...shared.logging.config import get_logger
from ..geocoding.providers.amap_geocoder import AmapGeocodingClient
from ..geocoding.providers.geocode_cache import GeocodeCache
from ..location.domain.models import RetryPolicy
from ..location.providers.base import LocationProvider
from ..location.providers.bridge_provider import BridgeLocationProvider
from ..location.services.acquisition_controller import LocationAcquisitionController
from ..mapbridge.bridge import BridgeTransport, MapBridge
from ..mapbridge.correlation import LocationRequestTracker
from ..maphost.base import MapHostAdapter
from ..maphost.factory import BACKEND_NATIVE, BACKEND_SANDBOXED, create_map_host
from ..maphost.native_adapter import NativeMapWidget

logger = get_logger(__name__)


class ServiceContainer:
    """
    サービスコンテナ

    起動時に1つ生成し、各Featureを統合して依存性注入を行う。
    GeocodingClient（とそのキャッシュ）はここで1つだけ作り、
    コントローラー・アダプター・HTTPサーバーへ参照で渡す。
    """

    def __init__(self, settings: Settings, http_client: Optional[HTTPClient] = None) -> None:
        """
        Args:
            settings: アプリケーション設定
            http_client: HTTPクライアント（Noneの場合はリトライなしで新規作成）
        """
        self.settings = settings
        settings.validate_api_key()

        # キャッシュ・レート制限を初期化
        self.cache = GeocodeCache(ttl_seconds=settings.geocode_cache_ttl_seconds)
        self.rate_limiter: Optional[RateLimiter] = None
        if settings.geocode_requests_per_second:
            self.rate_limiter = RateLimiter(requests_per_second=settings.geocode_requests_per_second)

        # ベンダーAPIクライアントを初期化（内部リトライなし）
        self.http_client = http_client or HTTPClient(timeout=settings.http_timeout, max_retries=0)
        self.geocoder = AmapGeocodingClient(
            api_key=settings.amap_api_key,
            cache=self.cache,
            http_client=self.http_client,
            base_url=settings.amap_base_url,
            rate_limiter=self.rate_limiter,
        )

        self.retry_policy = RetryPolicy(
            max_attempts=settings.location_max_attempts,
            backoff_base_seconds=settings.location_backoff_base_seconds,
            timeout_seconds=settings.location_timeout_seconds,
            switch_after_transient_failures=settings.location_switch_after_transient_failures,
        )

        self._hosts: list[MapHostAdapter] = []

        logger.info(f"ServiceContainer initialized: environment={settings.environment}")

    def create_controller(
        self,
        primary: LocationProvider,
        secondary: Optional[LocationProvider] = None,
    ) -> LocationAcquisitionController:
        """共有の GeocodingClient と設定済みの方針で測位コントローラーを作成"""
        return LocationAcquisitionController(
            primary=primary,
            geocoder=self.geocoder,
            secondary=secondary,
            policy=self.retry_policy,
        )

    def create_sandboxed_host(
        self,
        transport: Optional[BridgeTransport],
        device_provider: Optional[LocationProvider] = None,
    ) -> MapHostAdapter:
        """
        埋め込み地図向けのアダプターを作成

        Args:
            transport: 埋め込み地図への送信経路
            device_provider: セカンダリのデバイスプロバイダー（任意）
        """
        if transport is None:
            raise ConfigurationError("Sandboxed map host requires a bridge transport")
        bridge = MapBridge(transport)
        tracker = LocationRequestTracker(bridge)
        controller = self.create_controller(BridgeLocationProvider(tracker), secondary=device_provider)
        host = create_map_host(BACKEND_SANDBOXED, controller=controller, bridge=bridge)
        self._hosts.append(host)
        return host

    def create_native_host(
        self,
        widget: Optional[NativeMapWidget],
        device_provider: Optional[LocationProvider],
        auto_locate: bool = False,
    ) -> MapHostAdapter:
        """
        ネイティブ地図向けのアダプターを作成

        Args:
            widget: ネイティブ地図ウィジェット
            device_provider: デバイスの位置情報プロバイダー
            auto_locate: 準備完了時に自動測位するか
        """
        if device_provider is None:
            raise ConfigurationError("Native map host requires a device location provider")
        controller = self.create_controller(device_provider)
        host = create_map_host(
            BACKEND_NATIVE,
            controller=controller,
            widget=widget,
            geocoder=self.geocoder,
            auto_locate=auto_locate,
        )
        self._hosts.append(host)
        return host

    def create_map_host(
        self,
        transport: Optional[BridgeTransport] = None,
        widget: Optional[NativeMapWidget] = None,
        device_provider: Optional[LocationProvider] = None,
    ) -> MapHostAdapter:
        """設定の map_backend に従ってアダプターを作成"""
        if self.settings.map_backend == BACKEND_NATIVE:
            return self.create_native_host(widget, device_provider)
        return self.create_sandboxed_host(transport, device_provider)

    def close(self) -> None:
        for host in self._hosts:
            host.close()
        self._hosts = []
        self.geocoder.close()
