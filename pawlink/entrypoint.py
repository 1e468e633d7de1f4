"""CLIエントリーポイント"""
import argparse
import json
import sys
from typing import Any, Optional

from .features.bootstrap.service_container import ServiceContainer
from .features.coordinates.converter import SYSTEM_AUTONAVI, SYSTEM_GPS, convert_coords
from .features.geocoding.domain.models import Coordinate
from .infrastructure.config.settings import Settings
from .shared.exceptions.errors import PawLinkError
from .shared.logging.config import get_logger, setup_logging
from .shared.utils.datetime_utils import format_duration

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pawlink",
        description="高徳地図の逆ジオコーディング・POI検索・経路計画・座標変換ツール",
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="環境変数ファイルのパス（デフォルト: .env）",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="ログレベル",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    regeo = subparsers.add_parser("regeo", help="座標から住所を取得（lon,lat を複数指定可）")
    regeo.add_argument("locations", nargs="+", help="lon,lat（GCJ-02）")
    regeo.add_argument("--radius", type=int, default=1000)
    regeo.add_argument("--progress", action="store_true", help="一括処理の進捗を表示")

    poi = subparsers.add_parser("poi", help="キーワードでPOIを検索")
    poi.add_argument("keyword")
    poi.add_argument("--city")
    poi.add_argument("--location", help="lon,lat（周辺検索の中心）")
    poi.add_argument("--radius", type=int, default=3000)
    poi.add_argument("--page", type=int, default=1)

    tips = subparsers.add_parser("tips", help="入力補完候補を取得")
    tips.add_argument("keyword")
    tips.add_argument("--city")
    tips.add_argument("--location", help="lon,lat")

    route = subparsers.add_parser("route", help="2点間の経路を計画")
    route.add_argument("origin", help="lon,lat")
    route.add_argument("destination", help="lon,lat")
    route.add_argument("--mode", default="driving", choices=["driving", "walking", "bus", "multimodal"])
    route.add_argument("--strategy", type=int, default=1)

    convert = subparsers.add_parser("convert", help="座標の測地系を変換（APIキー不要）")
    convert.add_argument("locations", nargs="+", help="lon,lat")
    convert.add_argument("--from", dest="from_system", default=SYSTEM_GPS, choices=[SYSTEM_GPS, SYSTEM_AUTONAVI])
    convert.add_argument("--to", dest="to_system", default=SYSTEM_AUTONAVI, choices=[SYSTEM_GPS, SYSTEM_AUTONAVI])

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    メインエントリーポイント

    Returns:
        int: 終了コード（0: 成功, 1: 失敗, 130: 中断）
    """
    args = build_parser().parse_args(argv)

    container: Optional[ServiceContainer] = None
    try:
        # 設定を読み込み
        settings = Settings(_env_file=args.env_file)

        # ログレベルを上書き
        if args.log_level:
            settings.log_level = args.log_level

        setup_logging(level=settings.log_level)
        logger.debug(f"Environment: {settings.environment}")

        if args.command == "convert":
            coords = [Coordinate.from_param(v) for v in args.locations]
            converted = convert_coords(coords, from_system=args.from_system, to_system=args.to_system)
            _print([c.to_dict() for c in converted])
            return 0

        container = ServiceContainer(settings)
        geocoder = container.geocoder

        if args.command == "regeo":
            coords = [Coordinate.from_param(v) for v in args.locations]
            if len(coords) == 1:
                _print(geocoder.reverse_geocode(coords[0], radius=args.radius).to_dict())
            else:
                results = geocoder.reverse_geocode_batch(coords, radius=args.radius, show_progress=args.progress)
                _print([r.to_dict() for r in results])
        elif args.command == "poi":
            pois = geocoder.search_poi(
                args.keyword,
                city=args.city,
                location=Coordinate.from_param(args.location) if args.location else None,
                radius=args.radius,
                page=args.page,
            )
            _print([p.to_dict() for p in pois])
        elif args.command == "tips":
            suggestions = geocoder.input_suggest(
                args.keyword,
                location=Coordinate.from_param(args.location) if args.location else None,
                city=args.city,
            )
            _print([s.to_dict() for s in suggestions])
        elif args.command == "route":
            result = geocoder.plan_route(
                Coordinate.from_param(args.origin),
                Coordinate.from_param(args.destination),
                mode=args.mode,
                strategy=args.strategy,
            )
            body = result.to_dict()
            body["duration_text"] = format_duration(result.duration_seconds)
            _print(body)

        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # SIGINT
    except PawLinkError as e:
        logger.error(f"Command {args.command} failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Application failed: {e}", exc_info=True)
        return 1
    finally:
        if container is not None:
            container.close()


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    sys.exit(main())
