"""
ホストと埋め込み地図の間のメッセージブリッジ

受信メッセージは到着順に1件ずつハンドラーへ配送する。
形式不正のメッセージは警告ログを出して破棄し、ブリッジは停止しない。
"""
import threading
from collections import defaultdict
from typing import Callable, Protocol

from ...shared.exceptions.errors import BridgeProtocolError
from ...shared.logging.config import get_logger
from .domain.messages import BridgeMessage

logger = get_logger(__name__)

MessageHandler = Callable[[BridgeMessage], None]


class BridgeTransport(Protocol):
    """埋め込み地図へ文字列を送る経路（WebViewのpostMessage等）"""

    def send(self, raw: str) -> None:
        ...


class MapBridge:
    """
    埋め込み地図とのメッセージブリッジ

    送信: BridgeMessage をエンコードして transport へ渡す
    受信: receive() に渡された文字列をデコードし、type ごとのハンドラーへ配送
    """

    def __init__(self, transport: BridgeTransport) -> None:
        self.transport = transport
        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._dispatch_lock = threading.RLock()
        self.sent_count = 0
        self.received_count = 0
        self.dropped_count = 0

    def on(self, message_type: str, handler: MessageHandler) -> None:
        """指定 type のハンドラーを登録"""
        self._handlers[_type_name(message_type)].append(handler)

    def off(self, message_type: str, handler: MessageHandler) -> None:
        """ハンドラーの登録を解除（未登録なら何もしない）"""
        handlers = self._handlers.get(_type_name(message_type), [])
        if handler in handlers:
            handlers.remove(handler)

    def send(self, message: BridgeMessage) -> None:
        """
        メッセージを送信

        Raises:
            BridgeProtocolError: エンコードできない場合
        """
        raw = message.encode()
        self.transport.send(raw)
        self.sent_count += 1
        logger.debug(f"Bridge sent: {message.type}")

    def receive(self, raw: str) -> bool:
        """
        埋め込み地図からの1メッセージを処理

        Returns:
            bool: 配送した場合True、破棄した場合False
        """
        try:
            message = BridgeMessage.decode(raw)
        except BridgeProtocolError as e:
            self.dropped_count += 1
            logger.warning(f"Dropped malformed bridge message: {e}")
            return False

        # 到着順に1件ずつ処理する
        with self._dispatch_lock:
            self.received_count += 1
            handlers = list(self._handlers.get(message.type, []))
            if not handlers:
                logger.debug(f"No handler for bridge message: {message.type}")
                return True

            for handler in handlers:
                try:
                    handler(message)
                except Exception as e:
                    logger.error(f"Bridge handler failed for {message.type}: {e}", exc_info=True)
        return True


def _type_name(message_type) -> str:
    return getattr(message_type, "value", message_type)
