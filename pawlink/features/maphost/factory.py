"""地図ホストアダプターの生成"""
from typing import Optional

from ...shared.exceptions.errors import ConfigurationError
from ..geocoding.providers.amap_geocoder import AmapGeocodingClient
from ..location.services.acquisition_controller import LocationAcquisitionController
from ..mapbridge.bridge import MapBridge
from .base import MapHostAdapter
from .native_adapter import NativeMapHostAdapter, NativeMapWidget
from .sandboxed_adapter import SandboxedMapHostAdapter

BACKEND_SANDBOXED = "sandboxed"
BACKEND_NATIVE = "native"


def create_map_host(
    backend: str,
    controller: Optional[LocationAcquisitionController] = None,
    bridge: Optional[MapBridge] = None,
    widget: Optional[NativeMapWidget] = None,
    geocoder: Optional[AmapGeocodingClient] = None,
    auto_locate: bool = False,
) -> MapHostAdapter:
    """
    指定されたバックエンドのアダプターを生成

    実行環境の判定は行わず、呼び出し側が渡した backend だけで決める。

    Args:
        backend: "sandboxed" または "native"
        controller: 測位コントローラー（native では必須）
        bridge: ブリッジ（sandboxed では必須）
        widget: ネイティブ地図ウィジェット（native では必須）
        geocoder: 検索用クライアント（native のみ使用）
        auto_locate: 準備完了時に自動測位するか（native のみ）

    Raises:
        ConfigurationError: 未知の backend、または必要な部品が無い場合
    """
    if backend == BACKEND_SANDBOXED:
        if bridge is None:
            raise ConfigurationError("Sandboxed map host requires a bridge")
        return SandboxedMapHostAdapter(bridge, controller=controller)

    if backend == BACKEND_NATIVE:
        if widget is None:
            raise ConfigurationError("Native map host requires a widget")
        if controller is None:
            raise ConfigurationError("Native map host requires a location controller")
        return NativeMapHostAdapter(widget, controller, geocoder=geocoder, auto_locate=auto_locate)

    raise ConfigurationError(f"Unknown map backend: {backend}")
