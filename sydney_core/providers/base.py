"""传输层与会话协商的抽象接口。

ChatSession 不直接依赖 websockets / httpx，而是依赖这里的协议：

- Transport: 一条已建立的双向流连接（默认实现是 WebSocketTransport）。
- Negotiator: 一次性获取会话身份的协商器（默认实现是 ConversationNegotiator）。

测试里用假的 Transport / Negotiator 替换即可驱动完整的读写流程。
"""

from typing import Callable, Optional, Protocol, Union

from sydney_core.domain.models import ConversationIdentity


class Transport(Protocol):
    """一条双向流连接。

    实现者需要把底层异常翻译成领域异常：
    - send 失败抛 WriteError。
    - recv 遇到对端正常关闭抛 EndOfStream，其他错误抛 ReadError。
    """

    def send(self, data: bytes) -> None:
        ...

    def recv(self) -> Union[bytes, str]:
        ...

    def close(self) -> None:
        ...


# 无参工厂，每次调用都打开一条新连接，失败时抛 ConnectError
TransportFactory = Callable[[], Transport]


class Negotiator(Protocol):
    def negotiate(self, auth_cookie: Optional[str] = None) -> ConversationIdentity:
        ...
