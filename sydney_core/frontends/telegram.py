"""Telegram 前端适配器。

通过 Bot API 长轮询 getUpdates 拉取消息，每条被接受的消息交给线程池处理，
不同用户并行；同一用户的并发由 SessionOrchestrator 里的 RequestGate 拒绝。

停止时只停止拉取新消息，已经在处理的消息会跑完再退出。
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import httpx

from sydney_core.config.settings import settings
from sydney_core.domain.exceptions import ApiError, BusinessError, NetworkError, ValidationError
from sydney_core.domain.models import InboundEvent
from sydney_core.infrastructure.logging.logger import logger

API_BASE = "https://api.telegram.org"

# getUpdates 失败后的等待秒数
RETRY_DELAY = 3.0


class TelegramBot:
    """Telegram Bot API 客户端 + 消息分发循环。"""

    def __init__(self, orchestrator, cfg=settings, executor: Optional[ThreadPoolExecutor] = None):
        if not getattr(cfg, "telegram_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="telegram_api_key not set")
        self._orchestrator = orchestrator
        self._settings = cfg
        self._base = f"{API_BASE}/bot{cfg.telegram_api_key}"
        self._executor = executor or ThreadPoolExecutor(
            max_workers=getattr(cfg, "max_workers", 16),
            thread_name_prefix="sydney-worker",
        )
        self._client = httpx.Client(**self._client_options())
        self.username: Optional[str] = None

    def _client_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "timeout": getattr(self._settings, "http_timeout", 30.0),
            "trust_env": False,
        }
        proxy = getattr(self._settings, "proxy_url", None)
        if proxy:
            options["proxy"] = proxy
            options["verify"] = False
        return options

    # ---- Bot API ----

    def _call(self, method: str, payload: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        kwargs: Dict[str, Any] = {"json": payload or {}}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = self._client.post(f"{self._base}/{method}", **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        try:
            data = resp.json()
        except ValueError:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        if resp.status_code >= 400 or not data.get("ok"):
            raise ApiError(
                code="API_ERROR",
                message=data.get("description") or resp.text,
                http_status=resp.status_code,
            )
        return data.get("result")

    def get_me(self) -> Dict[str, Any]:
        me = self._call("getMe")
        self.username = me.get("username")
        return me

    def get_updates(self, offset: int = 0, timeout: int = 0) -> List[Dict[str, Any]]:
        # HTTP 超时要比长轮询时间长，否则每次都会超时
        http_timeout = getattr(self._settings, "http_timeout", 30.0) + timeout
        return self._call(
            "getUpdates",
            {"offset": offset, "timeout": timeout, "allowed_updates": ["message"]},
            timeout=http_timeout,
        ) or []

    def send_message(self, chat_id: int, text: str, reply_to: Optional[int] = None) -> None:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to is not None:
            payload["reply_to_message_id"] = reply_to
        try:
            self._call("sendMessage", payload)
        except BusinessError as e:
            logger.error("tg send", extra={"extra": {"chat_id": chat_id, "error": e.message}})

    # ---- 分发 ----

    def run(self, stop_event: threading.Event) -> None:
        """长轮询直到 stop_event 被设置。"""

        me = self.get_me()
        logger.debug("Authorized", extra={"extra": {"account": me.get("username")}})
        logger.debug("bot start")
        offset = 0
        poll_timeout = getattr(self._settings, "poll_timeout", 60)
        while not stop_event.is_set():
            try:
                updates = self.get_updates(offset, poll_timeout)
            except BusinessError as e:
                logger.error("tg get updates", extra={"extra": {"error": e.message}})
                stop_event.wait(RETRY_DELAY)
                continue
            for update in updates:
                offset = max(offset, int(update.get("update_id", 0)) + 1)
                if stop_event.is_set():
                    break
                self.dispatch(update)
        logger.debug("bot stopped")

    def dispatch(self, update: Dict[str, Any]) -> Optional[Future]:
        """过滤一条 update，接受时提交到线程池并返回 Future。"""

        message = update.get("message")
        if not message:
            return None
        text = message.get("text") or ""
        if not text:
            return None
        sender = message.get("from") or {}
        if not sender:
            return None

        # 回复其他用户的消息不处理
        replied = message.get("reply_to_message")
        if replied is not None:
            replied_from = (replied.get("from") or {}).get("username")
            if replied_from != self.username:
                return None

        # /reset@otherbot 是发给别的机器人的命令
        event = InboundEvent.from_text(text)
        if not event.addressed_to(self.username):
            return None

        user_id = str(sender.get("id"))
        chat_id = (message.get("chat") or {}).get("id")
        return self._executor.submit(self._process, user_id, chat_id, message.get("message_id"), event)

    def _process(self, user_id: str, chat_id: int, message_id: Optional[int], event: InboundEvent) -> str:
        reply = self._orchestrator.handle(user_id, event)
        self.send_message(chat_id, reply, reply_to=message_id)
        return reply

    def stop(self) -> None:
        logger.debug("bot stop")
        self._executor.shutdown(wait=True)
        self._client.close()
