"""单个用户的聊天会话。

ChatSession 持有会话身份、invocation 计数器和一条流连接，负责：

1. 建立连接并完成 {"protocol":"json","version":1} 握手。
2. 构造问题帧（固定协议令牌 + 会话身份 + 用户输入）。
3. 发送问题，写失败时重连并重发一次。
4. 在独立线程里读取回复帧，直到终止帧出现，把回答通过队列交给调用方。

读取阶段的错误不会抛出，而是转换为回答文本：调用方只要拿到了 ask() 的返回值，
就一定能迭代到结束。
"""

import queue
import threading
from datetime import datetime
from typing import Any, Dict, Iterator, Optional
from uuid import uuid4

from sydney_core.domain.exceptions import (
    BusinessError,
    ConnectError,
    EndOfStream,
    ReadError,
    ServiceTurnError,
    ValidationError,
    WriteError,
)
from sydney_core.domain.models import AnswerFrame, ConversationIdentity, SessionState
from sydney_core.infrastructure.logging.logger import logger as default_logger
from sydney_core.providers.base import Negotiator, Transport, TransportFactory
from sydney_core.providers.codec import FrameCodec
from sydney_core.providers.registry import DEFAULT_PROFILE, ProtocolProfile

HANDSHAKE = {"protocol": "json", "version": 1}

FALLBACK_ANSWER = "server internal error, please retry"

# 队列结束标记
_DONE = object()


class ChatSession:
    """一个用户的一段对话。

    同一时刻最多只有一条连接；invocation_counter 只增不减，reset() 时归零。
    并发控制由上层 RequestGate 保证，本类本身不加锁。
    """

    def __init__(
        self,
        negotiator: Negotiator,
        transport_factory: TransportFactory,
        *,
        codec: Optional[FrameCodec] = None,
        profile: ProtocolProfile = DEFAULT_PROFILE,
        logger=None,
    ):
        self._negotiator = negotiator
        self._transport_factory = transport_factory
        self._codec = codec or FrameCodec()
        self._profile = profile
        self._logger = logger or default_logger

        self.identity: Optional[ConversationIdentity] = None
        self.invocation_counter = 0
        self.state = SessionState.DISCONNECTED
        self._conn: Optional[Transport] = None
        # close() 之后会话不再重连，读线程遇到连接结束直接给出兜底回答
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- 会话身份 ----

    def create_conversation(self) -> None:
        """重新协商会话身份，失败时保留原身份并抛出协商异常。"""

        self.identity = self._negotiator.negotiate()

    def reset(self) -> None:
        """关闭连接并把计数器归零，身份保留，由调用方再次 create_conversation()。"""

        self._close_conn()
        self.invocation_counter = 0

    def close(self) -> None:
        """永久关闭会话（淘汰或退出时），进行中的一轮会以兜底回答结束。"""

        self._closed = True
        self._close_conn()

    # ---- 连接 ----

    def connect(self) -> Transport:
        """确保连接可用，必要时拨号并握手。"""

        if self._closed:
            raise ConnectError(message="session closed")
        if self._conn is not None:
            return self._conn

        self.state = SessionState.HANDSHAKING
        self._logger.debug("ws connecting", extra={"extra": {"url": self._profile.hub_url}})
        try:
            conn = self._transport_factory()
        except BusinessError as e:
            self.state = SessionState.DISCONNECTED
            self._logger.error("ws connect", extra={"extra": {"error": e.message}})
            raise ConnectError(message=f"dial: {e.message}")

        try:
            conn.send(self._codec.encode(HANDSHAKE))
            # 回复内容不校验，收到一帧即视为协商成功
            conn.recv()
        except BusinessError as e:
            self.state = SessionState.DISCONNECTED
            self._logger.error("ws handshake", extra={"extra": {"error": e.message}})
            self._safe_close(conn)
            raise ConnectError(message=f"handshake: {e.message}")

        if self._closed:
            # 握手期间会话被关闭
            self.state = SessionState.DISCONNECTED
            self._safe_close(conn)
            raise ConnectError(message="session closed")
        self._conn = conn
        self.state = SessionState.READY
        self._logger.debug("ws connected", extra={"extra": {"url": self._profile.hub_url}})
        return conn

    def _reconnect(self) -> Transport:
        self._close_conn()
        return self.connect()

    def _close_conn(self) -> None:
        conn, self._conn = self._conn, None
        self.state = SessionState.DISCONNECTED
        if conn is not None:
            self._safe_close(conn)

    def _safe_close(self, conn: Transport) -> None:
        try:
            conn.close()
        except Exception as e:  # noqa: BLE001 - 关闭失败只记录，不影响后续重连
            self._logger.debug("ws close", extra={"extra": {"error": str(e)}})

    # ---- 问题帧 ----

    def build_question(self, prompt: str) -> Dict[str, Any]:
        """构造一条问题消息，构造完成后计数器 +1。"""

        identity = self.identity
        if identity is None or not identity.conversation_id:
            raise ValidationError(code="NO_CONVERSATION", message="conversation identity not negotiated")

        profile = self._profile
        question = {
            "arguments": [
                {
                    "source": profile.source,
                    "optionsSets": list(profile.options_sets),
                    "allowedMessageTypes": list(profile.allowed_message_types),
                    "sliceIds": list(profile.slice_ids),
                    "traceId": str(uuid4()),
                    "isStartOfSession": self.invocation_counter == 0,
                    "message": {
                        "author": "user",
                        "inputMethod": "Keyboard",
                        "text": prompt,
                        "messageType": "Chat",
                        "locale": profile.locale,
                        "market": profile.market,
                        "region": profile.region,
                    },
                    "timestamp": datetime.now().astimezone().isoformat(timespec="seconds"),
                    "conversationSignature": identity.signature,
                    "participant": {"id": identity.client_id},
                    "conversationId": identity.conversation_id,
                }
            ],
            "invocationId": str(self.invocation_counter),
            "target": profile.target,
            "type": profile.question_type,
        }
        self.invocation_counter += 1
        return question

    # ---- 一轮问答 ----

    def ask(self, prompt: str) -> Iterator[str]:
        """发送问题并返回回答迭代器。

        连接/握手失败抛 ConnectError，重发后仍写失败抛 WriteError；
        问题发出后返回的迭代器一定会结束，读取错误以回答文本的形式给出。
        """

        frame = self._codec.encode(self.build_question(prompt))
        conn = self.connect()
        try:
            conn.send(frame)
        except WriteError as e:
            # 写入失败时重试一次，有可能是服务端主动把连接断开了
            self._logger.info("ws write failed, reconnecting", extra={"extra": {"error": e.message}})
            conn = self._reconnect()
            try:
                conn.send(frame)
            except WriteError as e2:
                self._close_conn()
                raise WriteError(message=f"write to ws: {e2.message}")

        answers: "queue.Queue[Any]" = queue.Queue()
        self.state = SessionState.READING
        reader = threading.Thread(
            target=self._read_loop,
            args=(conn, answers),
            name=f"sydney-reader-{self.invocation_counter - 1}",
            daemon=True,
        )
        reader.start()
        return self._drain(answers)

    @staticmethod
    def _drain(answers: "queue.Queue[Any]") -> Iterator[str]:
        while True:
            item = answers.get()
            if item is _DONE:
                return
            yield item

    def _read_loop(self, conn: Transport, answers: "queue.Queue[Any]") -> None:
        try:
            finished = False
            while not finished:
                try:
                    chunk = conn.recv()
                except EndOfStream:
                    if self._closed:
                        self._logger.info("ws closed during turn")
                        answers.put(FALLBACK_ANSWER)
                        break
                    self._logger.info("ws end of stream, reconnecting")
                    try:
                        conn = self._reconnect()
                    except ConnectError as e:
                        self._logger.error("ws get", extra={"extra": {"error": e.message}})
                        answers.put(FALLBACK_ANSWER)
                        break
                    self.state = SessionState.READING
                    continue
                except ReadError as e:
                    self._logger.error("ws read", extra={"extra": {"error": e.message}})
                    self._close_conn()
                    answers.put(FALLBACK_ANSWER)
                    break

                for message in self._codec.decode(chunk):
                    frame = AnswerFrame.from_message(message)
                    if not frame.is_terminal:
                        continue
                    finished = True
                    try:
                        answers.put(frame.answer_text(self._profile.success_value))
                    except ServiceTurnError as e:
                        self._logger.error("ws", extra={"extra": {"error": e.message, "status": e.extra.get("status")}})
                        answers.put(e.message)
                    break
        finally:
            if self._conn is not None:
                self.state = SessionState.READY
            answers.put(_DONE)
