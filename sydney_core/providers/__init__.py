"""远端聊天服务集成层。

该包下的模块负责：
- 定义传输与协商的抽象接口 (base)。
- 维护协议常量表 (registry)。
- 帧编解码 (codec)、WebSocket 传输 (transport)、会话协商 (negotiator)。
- 单用户会话 ChatSession (session)。
"""

from typing import Optional

from sydney_core.config.settings import settings
from sydney_core.providers.base import TransportFactory
from sydney_core.providers.negotiator import ConversationNegotiator
from sydney_core.providers.registry import DEFAULT_PROFILE, ProtocolProfile, get_profile
from sydney_core.providers.session import ChatSession
from sydney_core.providers.transport import WebSocketTransport


def websocket_factory(cfg=None, profile: ProtocolProfile = DEFAULT_PROFILE) -> TransportFactory:
    """根据配置生成打开 WebSocket 连接的工厂。"""

    cfg = cfg or settings

    def _open() -> WebSocketTransport:
        return WebSocketTransport.open(
            profile.hub_url,
            proxy=getattr(cfg, "proxy_url", None),
            timeout=getattr(cfg, "http_timeout", 30.0),
        )

    return _open


def resolve_profile(cfg=None) -> ProtocolProfile:
    """按配置里的 protocol_profile 选择协议常量表。"""

    cfg = cfg or settings
    return get_profile(getattr(cfg, "protocol_profile", DEFAULT_PROFILE.name))


def create_session(cfg=None, logger=None, profile: Optional[ProtocolProfile] = None) -> ChatSession:
    """创建一个尚未协商身份的 ChatSession。"""

    cfg = cfg or settings
    profile = profile or resolve_profile(cfg)
    return ChatSession(
        negotiator=ConversationNegotiator(cfg, profile),
        transport_factory=websocket_factory(cfg, profile),
        profile=profile,
        logger=logger,
    )
