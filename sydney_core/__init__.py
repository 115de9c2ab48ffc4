"""Sydney Core 顶层包。

该包把远端 AI 聊天服务的私有流式协议封装成简单的问答接口，
包括会话身份协商、分隔符帧编解码、断线重连、按用户的会话缓存与并发闸门，
以及 Telegram 前端适配。
"""

from sydney_core.api.service import SessionOrchestrator, get_default_orchestrator

__all__ = ["SessionOrchestrator", "get_default_orchestrator"]
