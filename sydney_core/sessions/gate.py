"""按用户的处理中标记。

同一用户上一条消息还没处理完时，新消息直接被拒绝而不是排队。
"""

import threading
from typing import Dict


class RequestGate:
    def __init__(self):
        self._busy: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def try_enter(self, user_id: str) -> bool:
        """原子地检查并置位，已在处理中时返回 False 且不做任何修改。"""

        with self._lock:
            if self._busy.get(user_id):
                return False
            self._busy[user_id] = True
            return True

    def leave(self, user_id: str) -> None:
        with self._lock:
            if user_id in self._busy:
                self._busy[user_id] = False

    def forget(self, user_id: str) -> None:
        with self._lock:
            self._busy.pop(user_id, None)

    def forget_idle(self, user_id: str) -> None:
        """会话被淘汰时删除对应条目；处理中的条目保留，由处理线程结束时自己清理。"""

        with self._lock:
            if not self._busy.get(user_id):
                self._busy.pop(user_id, None)

    def is_busy(self, user_id: str) -> bool:
        with self._lock:
            return self._busy.get(user_id, False)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._busy
