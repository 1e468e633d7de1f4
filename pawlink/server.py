"""HTTPサーバー（FastAPI）"""
from typing import Any, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .features.bootstrap.service_container import ServiceContainer
from .features.coordinates.converter import SYSTEM_AUTONAVI, SYSTEM_GPS, convert_coords, haversine_distance
from .features.geocoding.domain.models import Coordinate
from .infrastructure.config.settings import Settings
from .shared.exceptions.errors import RemoteServiceError, ValidationError
from .shared.logging.config import get_logger, setup_logging
from .shared.utils.datetime_utils import format_duration

logger = get_logger(__name__)

SERVICE_NAME = "PawLink 位置情報ブリッジ"
VERSION = "1.0.0"


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    FastAPIアプリケーションを作成

    Args:
        settings: アプリケーション設定（Noneの場合は環境変数から読み込み）
        container: サービスコンテナ（Noneの場合は settings から作成）
    """
    settings = settings or (container.settings if container else Settings())
    setup_logging(level=settings.log_level)
    container = container or ServiceContainer(settings)
    geocoder = container.geocoder

    app = FastAPI(
        title=SERVICE_NAME,
        description="高徳地図の逆ジオコーディング・POI検索・経路計画・座標変換を提供するサービス",
        version=VERSION,
    )
    app.state.container = container

    @app.on_event("startup")
    async def startup_event() -> None:
        """起動時の処理"""
        logger.info("Application starting up")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Project: {settings.project_name}")

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """シャットダウン時の処理"""
        logger.info("Application shutting down")
        container.close()

    @app.get("/")
    def root() -> dict[str, Any]:
        """ルートエンドポイント"""
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "status": "running",
            "environment": settings.environment,
        }

    @app.get("/health")
    def health() -> dict[str, Any]:
        """ヘルスチェックエンドポイント"""
        return {"status": "healthy", "api_key_configured": settings.validate_api_key()}

    @app.get("/geocode/regeo")
    def regeo(
        location: str = Query(..., description="lon,lat（GCJ-02）"),
        radius: int = 1000,
        extensions: str = "all",
        use_cache: bool = True,
    ) -> dict[str, Any]:
        """逆ジオコーディング"""
        coord = Coordinate.from_param(location)
        return geocoder.reverse_geocode(coord, radius=radius, extensions=extensions, use_cache=use_cache).to_dict()

    @app.get("/geocode/regeo/batch")
    def regeo_batch(
        locations: str = Query(..., description="lon,lat|lon,lat|..."),
        radius: int = 1000,
        extensions: str = "all",
    ) -> dict[str, Any]:
        """一括逆ジオコーディング（失敗したバッチは結果から除かれる）"""
        coords = [Coordinate.from_param(p) for p in locations.split("|") if p]
        results = geocoder.reverse_geocode_batch(coords, radius=radius, extensions=extensions)
        return {"requested": len(coords), "count": len(results), "results": [r.to_dict() for r in results]}

    @app.get("/place/text")
    def place_text(
        keywords: str,
        city: Optional[str] = None,
        location: Optional[str] = None,
        radius: int = 3000,
        offset: int = 20,
        page: int = 1,
        types: Optional[str] = None,
    ) -> dict[str, Any]:
        """POIキーワード検索"""
        pois = geocoder.search_poi(
            keywords,
            city=city,
            location=Coordinate.from_param(location) if location else None,
            radius=radius,
            offset=offset,
            page=page,
            types=types,
        )
        return {"count": len(pois), "pois": [p.to_dict() for p in pois]}

    @app.get("/assistant/inputtips")
    def input_tips(
        keywords: str,
        location: Optional[str] = None,
        city: Optional[str] = None,
        datatype: str = "all",
    ) -> dict[str, Any]:
        """入力補完"""
        tips = geocoder.input_suggest(
            keywords,
            location=Coordinate.from_param(location) if location else None,
            city=city,
            datatype=datatype,
        )
        return {"count": len(tips), "tips": [t.to_dict() for t in tips]}

    @app.get("/direction/{mode}")
    def direction(
        mode: str,
        origin: str,
        destination: str,
        strategy: int = 1,
        waypoints: Optional[str] = Query(None, description="lon,lat;lon,lat;..."),
    ) -> dict[str, Any]:
        """経路計画"""
        route = geocoder.plan_route(
            Coordinate.from_param(origin),
            Coordinate.from_param(destination),
            mode=mode,
            strategy=strategy,
            waypoints=[Coordinate.from_param(w) for w in waypoints.split(";") if w] if waypoints else None,
        )
        body = route.to_dict()
        body["duration_text"] = format_duration(route.duration_seconds)
        return body

    @app.get("/convert")
    def convert(
        location: str,
        from_system: str = Query(SYSTEM_GPS, alias="from"),
        to_system: str = Query(SYSTEM_AUTONAVI, alias="to"),
    ) -> dict[str, Any]:
        """座標変換（gps ⇔ autonavi）"""
        source = Coordinate.from_param(location)
        converted = convert_coords(source, from_system=from_system, to_system=to_system)
        return {
            "source": source.to_dict(),
            "converted": converted.to_dict(),
            "from": from_system,
            "to": to_system,
            "offset_meters": round(haversine_distance(source, converted), 3),
        }

    @app.get("/cache/stats")
    def cache_stats() -> dict[str, Any]:
        """逆ジオコーディングキャッシュの統計"""
        return geocoder.cache.stats()

    @app.delete("/cache")
    def clear_cache() -> dict[str, Any]:
        """逆ジオコーディングキャッシュを消去"""
        geocoder.cache.clear()
        logger.info("Geocode cache cleared via API")
        return {"status": "cleared", "size": len(geocoder.cache)}

    @app.exception_handler(RemoteServiceError)
    async def remote_service_error_handler(request: Request, exc: RemoteServiceError) -> JSONResponse:
        """ベンダーAPIの失敗（ベンダーのコードをそのまま返す）"""
        logger.warning(f"Remote service error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=502,
            content={"message": "Remote service error", "code": exc.code, "detail": exc.message},
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"message": "Invalid request", "detail": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """グローバル例外ハンドラー"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error", "detail": str(exc)},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = app.state.container.settings
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=_settings.port,
        log_level=_settings.log_level.lower(),
    )
