"""会话与协议层共享的数据模型。

- ConversationIdentity: 服务端下发的会话身份三元组，之后每个问题帧都要携带。
- SessionState: 单个 ChatSession 的连接状态。
- AnswerFrame: 服务端推送的一帧消息（delta / terminal）。
- InboundEvent: 前端投递进来的一条用户消息或命令。

这些结构只在内存里流转，不做持久化。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from sydney_core.domain.exceptions import ServiceTurnError


@dataclass(frozen=True)
class ConversationIdentity:
    """一次会话协商的结果，获取后不可变。"""

    conversation_id: str
    client_id: str
    signature: str

    @property
    def is_valid(self) -> bool:
        return bool(self.conversation_id and self.client_id and self.signature)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    READING = "reading"


# 帧类型判别字段 type 的取值
FRAME_DELTA = 1
FRAME_TERMINAL = 2


@dataclass
class AnswerFrame:
    """服务端→客户端的一帧。

    - type: 1 为增量更新（delta），2 为本轮结束（terminal），其余值忽略。
    - raw: 解码后的原始 JSON，终止帧的结果从 item 字段里取。
    """

    type: int
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "AnswerFrame":
        try:
            frame_type = int(message.get("type") or 0)
        except (TypeError, ValueError):
            frame_type = 0
        return cls(type=frame_type, raw=message)

    @property
    def is_delta(self) -> bool:
        return self.type == FRAME_DELTA

    @property
    def is_terminal(self) -> bool:
        return self.type == FRAME_TERMINAL

    def answer_text(self, success_value: str = "success") -> str:
        """取出终止帧里的回答文本。

        item.result.value 不是 success（忽略大小写）时抛出 ServiceTurnError，
        message 为服务端给出的 item.result.message；否则返回 item.messages[1].text。
        """

        item = self.raw.get("item") or {}
        result = item.get("result") or {}
        status = str(result.get("value") or "")
        if status.lower() != success_value.lower():
            raise ServiceTurnError(message=str(result.get("message") or ""), status=status)
        messages = item.get("messages") or []
        if len(messages) < 2 or not isinstance(messages[1], dict):
            return ""
        return str(messages[1].get("text") or "")


@dataclass
class InboundEvent:
    """前端投递的一条消息。

    command 为去掉斜杠和 @botname 后的小写命令名；普通文本时为 None。
    mention 为命令里 @ 后面的机器人名，群聊里用来判断命令是不是发给自己的。
    """

    text: str
    command: Optional[str] = None
    mention: Optional[str] = None

    @property
    def is_command(self) -> bool:
        return self.command is not None

    @classmethod
    def from_text(cls, text: str) -> "InboundEvent":
        stripped = (text or "").strip()
        if not stripped.startswith("/") or len(stripped) < 2:
            return cls(text=text)
        head = stripped.split(maxsplit=1)[0][1:]
        name, _, mention = head.partition("@")
        command = name.lower()
        if not command:
            return cls(text=text)
        return cls(text=text, command=command, mention=mention or None)

    def addressed_to(self, username: Optional[str]) -> bool:
        """没有 @ 后缀，或后缀与 username 相同（不区分大小写）时视为发给自己。"""

        if self.mention is None or not username:
            return True
        return self.mention.lower() == username.lower()
