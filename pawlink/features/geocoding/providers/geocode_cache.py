"""逆ジオコーディング結果のTTLキャッシュ"""

import threading
import time
from typing import Any, Callable, Optional

from ....shared.logging.config import get_logger
from ..domain.models import AddressResult, CacheEntry

logger = get_logger(__name__)

# デフォルトの有効期間（1時間）
DEFAULT_TTL_SECONDS = 3600.0


class GeocodeCache:
    """
    時間制限付きキャッシュ

    量子化した座標（またはクエリ文字列）をキーに、解決済みの住所を保持する。
    期限切れの判定は get 時に遅延評価する（バックグラウンド掃除なし）。
    get と put の組は原子的ではないため、同一キーへの同時ミスは
    双方が書き込み得る（同一キーの値は同一なので後勝ちで問題ない）。
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            ttl_seconds: エントリの有効期間（秒）
            clock: 時計関数（テスト用に差し替え可能）
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hit_count = 0
        self.miss_count = 0

        logger.info(f"GeocodeCache initialized: ttl={ttl_seconds}s")

    def get(self, key: str) -> Optional[AddressResult]:
        """
        キーに対応する住所を取得

        Args:
            key: キャッシュキー

        Returns:
            Optional[AddressResult]: 有効なエントリがあれば値、なければNone
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.miss_count += 1
                logger.debug(f"Cache miss: {key}")
                return None

            if self._clock() - entry.inserted_at > self.ttl_seconds:
                # 期限切れ
                del self._entries[key]
                self.miss_count += 1
                logger.debug(f"Cache expired: {key}")
                return None

            self.hit_count += 1
            logger.debug(f"Cache hit: {key}")
            return entry.value

    def put(self, key: str, value: AddressResult) -> None:
        """
        住所を格納

        Args:
            key: キャッシュキー
            value: 逆ジオコーディング結果
        """
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, inserted_at=self._clock())

    def clear(self) -> None:
        """キャッシュをクリア"""
        with self._lock:
            cache_size = len(self._entries)
            self._entries.clear()
            self.hit_count = 0
            self.miss_count = 0
        logger.info(f"Cache cleared: {cache_size} entries removed")

    def stats(self) -> dict[str, Any]:
        """
        キャッシュ統計を取得

        Returns:
            dict[str, Any]: サイズ、キー一覧、ヒット数、ミス数
        """
        with self._lock:
            return {
                "size": len(self._entries),
                "keys": list(self._entries.keys()),
                "hits": self.hit_count,
                "misses": self.miss_count,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
