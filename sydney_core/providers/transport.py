"""WebSocket 传输实现。

基于 websockets 的同步客户端，负责把库异常翻译成领域异常，
上层 ChatSession 只需要区分 EndOfStream（可重连）和其他错误。
"""

from typing import Optional, Union

from websockets.exceptions import ConnectionClosedOK, InvalidHandshake, InvalidURI, WebSocketException
from websockets.sync.client import ClientConnection, connect

from sydney_core.domain.exceptions import ConnectError, EndOfStream, ReadError, WriteError
from sydney_core.providers.registry import DEFAULT_PROFILE

# 终止帧里带完整回答和引用卡片，默认 1MiB 不够
MAX_FRAME_SIZE = 16 * 1024 * 1024


class WebSocketTransport:
    """单条 WebSocket 连接。"""

    def __init__(self, conn: ClientConnection):
        self._conn = conn

    @classmethod
    def open(
        cls,
        url: str = DEFAULT_PROFILE.hub_url,
        *,
        proxy: Optional[str] = None,
        timeout: float = 30.0,
    ) -> "WebSocketTransport":
        try:
            conn = connect(
                url,
                proxy=proxy,
                open_timeout=timeout,
                max_size=MAX_FRAME_SIZE,
            )
        except (InvalidURI, InvalidHandshake) as e:
            raise ConnectError(message=f"ws handshake: {e}", url=url)
        except (OSError, TimeoutError, WebSocketException) as e:
            raise ConnectError(message=f"ws dial: {e}", url=url)
        return cls(conn)

    def send(self, data: bytes) -> None:
        # 服务端只接受文本帧
        try:
            self._conn.send(data.decode("utf-8"))
        except (WebSocketException, OSError) as e:
            raise WriteError(message=str(e))

    def recv(self) -> Union[bytes, str]:
        try:
            return self._conn.recv()
        except ConnectionClosedOK as e:
            raise EndOfStream(message=str(e))
        except (WebSocketException, OSError) as e:
            raise ReadError(message=str(e))

    def close(self) -> None:
        self._conn.close()
