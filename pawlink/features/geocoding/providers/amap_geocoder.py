"""高徳地図 Web サービス API クライアント（逆ジオコーディング・POI検索・入力補完・経路計画）"""
import math
from typing import Any, Optional

from tqdm import tqdm

from ....shared.exceptions.errors import GeocodeError, HTTPError, RemoteServiceError, ValidationError
from ....shared.http.client import HTTPClient
from ....shared.http.rate_limiter import RateLimiter
from ....shared.logging.config import get_logger
from ....shared.utils.text import normalize_keyword, vendor_int, vendor_str
from ..domain.models import AddressResult, Coordinate, PointOfInterest, RouteResult
from .geocode_cache import GeocodeCache

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://restapi.amap.com/v3"

# ベンダーの一括逆ジオコーディング上限（1リクエストあたりの座標数）
BATCH_LIMIT = 20

ROUTE_MODES = ("driving", "walking", "bus", "multimodal")


class AmapGeocodingClient:
    """
    高徳地図 Web サービス API クライアント

    アプリ起動時に1つ生成し、コントローラーやアダプターへ参照で渡す。
    内部でのリトライは行わない（リトライ方針は呼び出し側が持つ）。
    座標はすべてベンダー測地系（GCJ-02）で受け渡す。
    """

    def __init__(
        self,
        api_key: str,
        cache: Optional[GeocodeCache] = None,
        http_client: Optional[HTTPClient] = None,
        base_url: str = DEFAULT_BASE_URL,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        """
        Args:
            api_key: 高徳地図 Web サービス API Key
            cache: 逆ジオコーディング用キャッシュ（Noneの場合は新規作成）
            http_client: HTTPクライアント（Noneの場合はリトライなしで新規作成）
            base_url: APIのベースURL
            rate_limiter: レート制限（Noneの場合は制限なし）
        """
        self.api_key = api_key
        self.cache = cache if cache is not None else GeocodeCache()
        self.http_client = http_client or HTTPClient(max_retries=0)
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter

        logger.info(f"AmapGeocodingClient initialized: base_url={self.base_url}")

    # ------------------------------------------------------------------
    # 逆ジオコーディング
    # ------------------------------------------------------------------

    def reverse_geocode(
        self,
        coord: Coordinate,
        radius: int = 1000,
        extensions: str = "all",
        use_cache: bool = True,
    ) -> AddressResult:
        """
        座標から住所を取得（逆ジオコーディング）

        Args:
            coord: ベンダー測地系の座標
            radius: 周辺検索半径（メートル）
            extensions: 返却情報レベル（base / all）
            use_cache: キャッシュを使用するか

        Returns:
            AddressResult: 住所情報

        Raises:
            GeocodeError: ベンダーが失敗ステータスを返した場合
            RemoteServiceError: 通信に失敗した場合
        """
        cache_key = coord.quantized_key()
        if use_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Using cached address for {cache_key}: {cached.formatted_address}")
                return cached

        payload = self._request(
            "geocode/regeo",
            {
                "location": coord.to_param(),
                "radius": radius,
                "extensions": extensions,
                "roadlevel": 0,
            },
            error_cls=GeocodeError,
        )

        regeocode = payload.get("regeocode")
        if not isinstance(regeocode, dict):
            raise GeocodeError(
                vendor_str(payload.get("infocode")) or "EMPTY_RESULT",
                f"Reverse geocoding returned no regeocode for {coord.to_param()}",
            )

        result = self._parse_regeo(regeocode, coord)

        if use_cache:
            self.cache.put(cache_key, result)

        logger.debug(f"Reverse geocoded: {coord.to_param()} -> {result.formatted_address}")
        return result

    def reverse_geocode_batch(
        self,
        coords: list[Coordinate],
        radius: int = 1000,
        extensions: str = "all",
        use_cache: bool = True,
        show_progress: bool = False,
    ) -> list[AddressResult]:
        """
        複数座標を一括で逆ジオコーディング

        ベンダー上限の20件ずつに分割してリクエストする。
        失敗したバッチはログに記録してスキップし、成功分のみを返す。

        Args:
            coords: ベンダー測地系の座標リスト
            radius: 周辺検索半径（メートル）
            extensions: 返却情報レベル
            use_cache: 結果をキャッシュへ格納するか
            show_progress: プログレスバーを表示するか

        Returns:
            list[AddressResult]: 成功したバッチの結果（入力順）
        """
        batches = [coords[i : i + BATCH_LIMIT] for i in range(0, len(coords), BATCH_LIMIT)]
        results: list[AddressResult] = []
        failed_batches = 0

        logger.info(
            f"Starting batch reverse geocoding: {len(coords)} coordinates, "
            f"{math.ceil(len(coords) / BATCH_LIMIT)} requests"
        )

        iterator = tqdm(batches, desc="逆ジオコーディング") if show_progress else batches

        for index, batch in enumerate(iterator):
            try:
                payload = self._request(
                    "geocode/regeo",
                    {
                        "location": "|".join(c.to_param() for c in batch),
                        "radius": radius,
                        "extensions": extensions,
                        "roadlevel": 0,
                        "batch": "true",
                    },
                    error_cls=GeocodeError,
                )
            except RemoteServiceError as e:
                failed_batches += 1
                logger.error(f"Batch reverse geocoding slice {index} failed, skipping: {e}")
                continue

            regeocodes = payload.get("regeocodes")
            if regeocodes is None and isinstance(payload.get("regeocode"), dict):
                regeocodes = payload["regeocode"].get("regeocodes")
            if not isinstance(regeocodes, list):
                failed_batches += 1
                logger.error(f"Batch reverse geocoding slice {index} returned no regeocodes, skipping")
                continue

            if len(regeocodes) != len(batch):
                logger.warning(
                    f"Batch slice {index}: expected {len(batch)} results, got {len(regeocodes)}"
                )

            for coord, item in zip(batch, regeocodes):
                result = self._parse_regeo(item if isinstance(item, dict) else {}, coord)
                if use_cache:
                    self.cache.put(coord.quantized_key(), result)
                results.append(result)

        logger.info(
            f"Batch reverse geocoding completed: {len(results)} results, "
            f"{failed_batches} failed slices"
        )
        return results

    # ------------------------------------------------------------------
    # POI検索・入力補完
    # ------------------------------------------------------------------

    def search_poi(
        self,
        keyword: str,
        city: Optional[str] = None,
        location: Optional[Coordinate] = None,
        radius: int = 3000,
        offset: int = 20,
        page: int = 1,
        types: Optional[str] = None,
        district: Optional[str] = None,
        extensions: str = "all",
    ) -> list[PointOfInterest]:
        """
        キーワードでPOIを検索

        返却順はベンダーの関連度順をそのまま維持する。

        Args:
            keyword: 検索キーワード
            city: 都市名または都市コード
            location: 中心座標（ベンダー測地系）
            radius: 検索半径（メートル、location指定時のみ有効）
            offset: 1ページあたりの件数（最大100）
            page: ページ番号
            types: POI種別コード（| 区切り）
            district: 区域
            extensions: 返却情報レベル

        Returns:
            list[PointOfInterest]: 検索結果

        Raises:
            ValidationError: キーワードが空の場合
            RemoteServiceError: 検索に失敗した場合
        """
        normalized = normalize_keyword(keyword)
        if not normalized:
            raise ValidationError("POI search keyword must not be empty")

        params: dict[str, Any] = {
            "keywords": normalized,
            "offset": offset,
            "page": page,
            "extensions": extensions,
        }
        if types:
            params["types"] = types
        if city:
            params["city"] = city
        if district:
            params["district"] = district
        if location:
            params["location"] = location.to_param()
            if radius:
                params["radius"] = radius

        payload = self._request("place/text", params)
        pois = payload.get("pois") or []

        results = [self._parse_poi(poi) for poi in pois if isinstance(poi, dict)]
        logger.debug(f"POI search '{normalized}': {len(results)} results")
        return results

    def input_suggest(
        self,
        keyword: str,
        location: Optional[Coordinate] = None,
        city: Optional[str] = None,
        datatype: str = "all",
        types: Optional[str] = None,
    ) -> list[PointOfInterest]:
        """
        入力補完候補を取得

        座標を持たない候補は呼び出し側で使えないため除外する。

        Args:
            keyword: 入力途中のキーワード
            location: 優先する周辺座標（ベンダー測地系）
            city: 都市名または都市コード
            datatype: 候補種別（all / poi / bus / ...）
            types: POI種別コード

        Returns:
            list[PointOfInterest]: 座標を持つ候補のみ

        Raises:
            ValidationError: キーワードが空の場合
            RemoteServiceError: 取得に失敗した場合
        """
        normalized = normalize_keyword(keyword)
        if not normalized:
            raise ValidationError("Input suggestion keyword must not be empty")

        params: dict[str, Any] = {"keywords": normalized, "datatype": datatype}
        if location:
            params["location"] = location.to_param()
        if city:
            params["city"] = city
        if types:
            params["types"] = types

        payload = self._request("assistant/inputtips", params)
        tips = payload.get("tips") or []

        results = []
        for tip in tips:
            if not isinstance(tip, dict):
                continue
            suggestion = self._parse_poi(tip)
            if suggestion.location is None:
                continue
            results.append(suggestion)

        logger.debug(f"Input suggestions '{normalized}': {len(results)}/{len(tips)} locatable")
        return results

    # ------------------------------------------------------------------
    # 経路計画
    # ------------------------------------------------------------------

    def plan_route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        mode: str = "driving",
        strategy: int = 1,
        waypoints: Optional[list[Coordinate]] = None,
        extensions: str = "all",
        ferry: int = 0,
        nosteps: int = 0,
    ) -> RouteResult:
        """
        2点間の経路を計画

        ベンダーが返す先頭の経路を採用する。

        Args:
            origin: 出発地（ベンダー測地系）
            destination: 目的地（ベンダー測地系）
            mode: 移動手段（driving / walking / bus / multimodal）
            strategy: 経路戦略
            waypoints: 経由地
            extensions: 返却情報レベル
            ferry: フェリーを使うか（0: 使う, 1: 使わない）
            nosteps: ステップ情報を省略するか

        Returns:
            RouteResult: 経路情報

        Raises:
            ValidationError: 移動手段が不正な場合
            RemoteServiceError: 計画に失敗した場合
        """
        if mode not in ROUTE_MODES:
            raise ValidationError(f"Unsupported route mode: {mode!r}. Available: {list(ROUTE_MODES)}")

        params: dict[str, Any] = {
            "origin": origin.to_param(),
            "destination": destination.to_param(),
            "strategy": strategy,
            "extensions": extensions,
            "ferry": ferry,
            "nosteps": nosteps,
        }
        if waypoints:
            params["waypoints"] = ";".join(w.to_param() for w in waypoints)

        payload = self._request(f"direction/{mode}", params)

        route = payload.get("route") or {}
        paths = route.get("paths") if isinstance(route, dict) else None
        if not paths:
            raise RemoteServiceError(
                vendor_str(payload.get("infocode")) or "NO_ROUTE",
                f"No route found from {origin.to_param()} to {destination.to_param()}",
            )

        path = paths[0]
        polyline = vendor_str(path.get("polyline"))
        if not polyline:
            # 経路全体のpolylineが無い場合は各ステップを連結する
            polyline = ";".join(
                vendor_str(step.get("polyline"))
                for step in path.get("steps") or []
                if isinstance(step, dict) and vendor_str(step.get("polyline"))
            )

        return RouteResult(
            distance_meters=vendor_int(path.get("distance")),
            duration_seconds=vendor_int(path.get("duration")),
            path=parse_polyline(polyline),
            toll_fare=vendor_int(path.get("tolls")),
            traffic_light_count=vendor_int(path.get("traffic_lights", path.get("trafficLights"))),
            strategy=strategy,
        )

    # ------------------------------------------------------------------
    # 内部処理
    # ------------------------------------------------------------------

    def _request(
        self,
        path: str,
        params: dict[str, Any],
        error_cls: type[RemoteServiceError] = RemoteServiceError,
    ) -> dict[str, Any]:
        """
        APIを呼び出し、成功ステータスのペイロードを返す

        Raises:
            RemoteServiceError: 通信失敗またはベンダーの失敗ステータス
        """
        if self.rate_limiter:
            self.rate_limiter.wait()

        url = f"{self.base_url}/{path}"
        try:
            payload = self.http_client.get_json(url, params={"key": self.api_key, **params})
        except HTTPError as e:
            raise error_cls("NETWORK_ERROR", str(e)) from e

        if vendor_str(payload.get("status")) != "1":
            code = vendor_str(payload.get("infocode")) or "UNKNOWN"
            info = vendor_str(payload.get("info")) or "unknown vendor error"
            logger.error(f"Amap API error on {path}: infocode={code} info={info}")
            raise error_cls(code, info)

        return payload

    def _parse_regeo(self, regeocode: dict[str, Any], source: Coordinate) -> AddressResult:
        """ベンダーの住所構成要素スキーマを AddressResult に変換"""
        component = regeocode.get("addressComponent") or {}
        if not isinstance(component, dict):
            component = {}

        street = component.get("streetNumber")
        street_name = vendor_str(street.get("street")) if isinstance(street, dict) else ""

        circles = component.get("businessCircles")
        circle_name = ""
        if isinstance(circles, list) and circles and isinstance(circles[0], dict):
            circle_name = vendor_str(circles[0].get("name"))

        return AddressResult(
            formatted_address=vendor_str(regeocode.get("formatted_address")),
            province=vendor_str(component.get("province")),
            city=vendor_str(component.get("city")),
            district=vendor_str(component.get("district")),
            township=vendor_str(component.get("township")) or None,
            street_number=street_name or None,
            business_circle=circle_name or None,
            adcode=vendor_str(component.get("adcode")),
            city_code=vendor_str(component.get("citycode")),
            source_coordinate=source,
        )

    def _parse_poi(self, item: dict[str, Any]) -> PointOfInterest:
        """POI / 入力補完の1行を変換（座標が解釈できなければ location=None）"""
        distance = vendor_str(item.get("distance")).strip()
        return PointOfInterest(
            id=vendor_str(item.get("id")),
            name=vendor_str(item.get("name")),
            address=vendor_str(item.get("address")),
            location=parse_location(item.get("location")),
            distance_meters=vendor_int(distance) if distance else None,
            type=vendor_str(item.get("type")) or None,
        )

    def close(self) -> None:
        """リソースをクリーンアップ"""
        if self.http_client:
            self.http_client.close()
        logger.info("AmapGeocodingClient closed")

    def __enter__(self) -> "AmapGeocodingClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def parse_location(value: Any) -> Optional[Coordinate]:
    """「lon,lat」形式の値を座標に変換（解釈できなければNone）"""
    text = vendor_str(value).strip()
    if not text:
        return None
    try:
        return Coordinate.from_param(text)
    except ValidationError:
        return None


def parse_polyline(polyline: str) -> list[Coordinate]:
    """「lon,lat;lon,lat;...」形式のpolylineを座標列に変換（不正な点は読み飛ばす）"""
    if not polyline:
        return []

    path: list[Coordinate] = []
    for point in polyline.split(";"):
        coord = parse_location(point)
        if coord is not None:
            path.append(coord)
    return path
