"""对外服务模块。

SessionOrchestrator 是前端分发器唯一需要调用的入口：
给定 (user_id, 事件)，返回一条要发回给用户的文本。
"""

import logging
from typing import Optional

from sydney_core.config.settings import settings
from sydney_core.domain.exceptions import BusinessError
from sydney_core.domain.models import InboundEvent
from sydney_core.infrastructure.logging.logger import user_logger
from sydney_core.providers import create_session, resolve_profile
from sydney_core.sessions.gate import RequestGate
from sydney_core.sessions.store import SessionStore

UNKNOWN_COMMAND_ANSWER = "I can't understand your command."
RESET_FAILED_ANSWER = "I can't create conversation with AI."


class SessionOrchestrator:
    """组合 SessionStore + RequestGate + ChatSession 处理一条入站事件。"""

    def __init__(self, store: SessionStore, gate: RequestGate, cfg=settings):
        self._store = store
        self._gate = gate
        self._settings = cfg

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def gate(self) -> RequestGate:
        return self._gate

    def handle(self, user_id: str, event: InboundEvent) -> str:
        """处理一条事件并返回回复文本。

        同一用户上一条还在处理时直接返回 repeated_answer，不触碰 SessionStore。
        """

        logger = user_logger(user_id)
        if not self._gate.try_enter(user_id):
            logger.info("busy", extra={"extra": {"message": event.text}})
            return self._settings.repeated_answer

        try:
            logger.info("request", extra={"extra": {"message": event.text}})
            if event.is_command:
                reply = self._handle_command(user_id, event.command or "", logger)
            else:
                reply = self._handle_prompt(user_id, event.text, logger)
            logger.info("reply", extra={"extra": {"message": reply}})
            return reply
        finally:
            # 闸门条目与会话条目同生共死：没有缓存会话的用户不保留闸门条目
            if user_id in self._store:
                self._gate.leave(user_id)
            else:
                self._gate.forget(user_id)

    def close(self) -> None:
        self._store.close()

    def _handle_command(self, user_id: str, command: str, logger: logging.Logger) -> str:
        if command == "start":
            return self._settings.command_start_answer
        if command == "help":
            return self._settings.command_help_answer
        if command != "reset":
            return UNKNOWN_COMMAND_ANSWER

        try:
            session = self._store.get_or_create(user_id)
        except BusinessError as e:
            logger.error("get session", extra={"extra": {"code": e.code, "error": e.message}})
            return self._settings.fallback_answer
        session.reset()
        try:
            session.create_conversation()
        except BusinessError as e:
            logger.error("create conversation", extra={"extra": {"code": e.code, "error": e.message}})
            return RESET_FAILED_ANSWER
        return self._settings.command_reset_answer

    def _handle_prompt(self, user_id: str, prompt: str, logger: logging.Logger) -> str:
        try:
            session = self._store.get_or_create(user_id)
        except BusinessError as e:
            logger.error("get session", extra={"extra": {"code": e.code, "error": e.message}})
            return self._settings.fallback_answer

        try:
            answers = session.ask(prompt)
        except BusinessError as e:
            logger.error("ask", extra={"extra": {"code": e.code, "error": e.message}})
            return self._settings.fallback_answer

        reply = ""
        for answer in answers:
            reply = answer
        if not reply:
            logger.error("answer is empty")
            return self._settings.fallback_answer
        return reply


_orchestrator: Optional[SessionOrchestrator] = None


def build_orchestrator(cfg=settings) -> SessionOrchestrator:
    """按配置组装 Orchestrator，会话淘汰时同步清理闸门条目。

    协议版本在这里解析，配置错误时启动即失败，而不是等到第一条消息。
    """

    profile = resolve_profile(cfg)
    gate = RequestGate()
    store = SessionStore(
        lambda user_id: create_session(cfg, logger=user_logger(user_id), profile=profile),
        ttl=cfg.session_ttl_seconds,
        sweep_interval=cfg.session_sweep_seconds,
        on_evicted=gate.forget_idle,
    )
    return SessionOrchestrator(store, gate, cfg)


def get_default_orchestrator() -> SessionOrchestrator:
    """获取默认的 SessionOrchestrator 实例（单例）。"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(settings)
    return _orchestrator
