"""HTTPクライアント（地図ベンダーWeb API用）"""

from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions.errors import HTTPError
from ..logging.config import get_logger

logger = get_logger(__name__)


class HTTPClient:
    """
    JSON APIを呼び出すHTTPクライアント

    Features:
    - セッション管理（コネクション再利用）
    - タイムアウト設定
    - トランスポート層のリトライ（max_retries=0 で無効）
    - APIキーなど機密クエリのログマスク
    """

    def __init__(
        self,
        timeout: float = 10,
        max_retries: int = 0,
        backoff_factor: float = 0.5,
        status_forcelist: tuple[int, ...] = (500, 502, 503, 504),
        user_agent: Optional[str] = None,
        masked_params: tuple[str, ...] = ("key",),
    ):
        """
        Args:
            timeout: リクエストタイムアウト（秒）
            max_retries: 最大リトライ回数
            backoff_factor: バックオフ係数
            status_forcelist: リトライ対象のステータスコード
            user_agent: User-Agentヘッダー
            masked_params: ログ出力時に伏せるクエリパラメータ名
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.status_forcelist = status_forcelist
        self.user_agent = user_agent or "PawLink-LocationBridge/1.0"
        self.masked_params = masked_params

        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """セッションを作成"""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.status_forcelist,
            allowed_methods=["HEAD", "GET"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update(
            {"User-Agent": self.user_agent, "Accept": "application/json"}
        )

        return session

    def get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """
        GETリクエストを送信しJSONを返す

        Args:
            url: リクエストURL
            params: クエリパラメータ
            headers: 追加ヘッダー

        Returns:
            デコード済みのJSONオブジェクト

        Raises:
            HTTPError: 通信失敗・HTTPエラー・JSONでない応答
        """
        safe_params = self._mask(params)
        try:
            logger.debug(f"GET request to {url} params={safe_params}")
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error(f"GET request failed: {url} - {e}")
            raise HTTPError(f"Failed to GET {url}: {e}") from e
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            raise HTTPError(f"Invalid JSON response from {url}: {e}") from e

        if not isinstance(payload, dict):
            raise HTTPError(f"Unexpected JSON payload type from {url}: {type(payload).__name__}")

        logger.debug(f"GET request successful: {url} (status={response.status_code})")
        return payload

    def _mask(self, params: Optional[dict[str, Any]]) -> dict[str, Any]:
        """ログ用にクエリパラメータをマスク"""
        if not params:
            return {}
        return {k: ("***" if k in self.masked_params else v) for k, v in params.items()}

    def close(self) -> None:
        """セッションをクローズ"""
        if self.session:
            self.session.close()
            logger.debug("HTTP session closed")

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
