"""按用户缓存 ChatSession，空闲超时自动淘汰。

- 过期时间是滑动的：每次 get_or_create / get 命中都会顺延。
- 后台线程每隔 sweep_interval 秒清扫一次过期条目；查询时遇到已过期条目也会立即淘汰。
- 淘汰时关闭会话（进行中的一轮会以兜底回答结束），并回调 on_evicted(user_id)，
  用于同步清理 RequestGate；这两步在锁外执行，不会因为某条连接关闭慢而阻塞其他用户。

整个 map 由一把全局锁保护，协商也在锁内完成，用户量不大时足够。
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from sydney_core.infrastructure.logging.logger import logger
from sydney_core.providers.session import ChatSession

SessionFactory = Callable[[str], ChatSession]
EvictionCallback = Callable[[str], None]


@dataclass
class SessionEntry:
    session: ChatSession
    expires_at: float


class SessionStore:
    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        ttl: float = 300.0,
        sweep_interval: float = 10.0,
        on_evicted: Optional[EvictionCallback] = None,
        clock: Callable[[], float] = time.monotonic,
        start_sweeper: bool = True,
    ):
        self._factory = session_factory
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._on_evicted = on_evicted
        self._clock = clock

        self._entries: Dict[str, SessionEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if start_sweeper:
            self._sweeper = threading.Thread(target=self._sweep_loop, name="sydney-session-sweeper", daemon=True)
            self._sweeper.start()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(user_id)
            return entry is not None and entry.expires_at > self._clock()

    def get_or_create(self, user_id: str) -> ChatSession:
        """返回未过期的会话，没有则新建并协商身份；协商失败时不缓存。"""

        evicted: List[Tuple[str, SessionEntry]] = []
        try:
            with self._lock:
                session = self._lookup_locked(user_id, evicted)
                if session is None:
                    session = self._factory(user_id)
                    session.create_conversation()
                    logger.debug("conversation created", extra={"extra": {"user_id": user_id}})
                self._entries[user_id] = SessionEntry(session=session, expires_at=self._clock() + self._ttl)
                return session
        finally:
            self._release(evicted)

    def get(self, user_id: str) -> Optional[ChatSession]:
        evicted: List[Tuple[str, SessionEntry]] = []
        with self._lock:
            session = self._lookup_locked(user_id, evicted)
            if session is not None:
                self._entries[user_id].expires_at = self._clock() + self._ttl
        self._release(evicted)
        return session

    def remove(self, user_id: str) -> bool:
        with self._lock:
            entry = self._entries.pop(user_id, None)
        if entry is None:
            return False
        self._release([(user_id, entry)])
        return True

    def sweep(self) -> List[str]:
        """清理所有已过期条目，返回被淘汰的 user_id。"""

        with self._lock:
            now = self._clock()
            evicted = [(uid, entry) for uid, entry in self._entries.items() if entry.expires_at <= now]
            for uid, _ in evicted:
                del self._entries[uid]
        self._release(evicted)
        return [uid for uid, _ in evicted]

    def close(self) -> None:
        """停止清扫线程并淘汰所有会话（进程退出时调用）。"""

        self._stop.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=self._sweep_interval)
        with self._lock:
            evicted = list(self._entries.items())
            self._entries.clear()
        self._release(evicted)

    def _lookup_locked(self, user_id: str, evicted: List[Tuple[str, SessionEntry]]) -> Optional[ChatSession]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            evicted.append((user_id, self._entries.pop(user_id)))
            return None
        return entry.session

    def _release(self, evicted: List[Tuple[str, SessionEntry]]) -> None:
        # 关闭连接可能要等对端确认，放在锁外进行
        for user_id, entry in evicted:
            entry.session.close()
            if self._on_evicted is not None:
                self._on_evicted(user_id)
            logger.debug("conversation timeout", extra={"extra": {"user_id": user_id}})

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception:  # noqa: BLE001 - 清扫线程不能因为单次失败退出
                logger.exception("session sweep failed")
