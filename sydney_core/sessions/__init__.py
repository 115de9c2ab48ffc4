"""会话缓存 (store) 与按用户的并发闸门 (gate)。"""

from sydney_core.sessions.gate import RequestGate
from sydney_core.sessions.store import SessionEntry, SessionStore

__all__ = ["RequestGate", "SessionEntry", "SessionStore"]
