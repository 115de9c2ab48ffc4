"""进程入口：启动 Telegram 前端，收到 SIGINT / SIGTERM 后停止拉取新消息并退出。"""

import signal
import threading

from sydney_core.api.service import get_default_orchestrator
from sydney_core.domain.exceptions import BusinessError
from sydney_core.frontends.telegram import TelegramBot
from sydney_core.infrastructure.logging.logger import logger


def main() -> int:
    stop_event = threading.Event()

    def _on_signal(signum, _frame):
        logger.info("signal received", extra={"extra": {"signal": signum}})
        stop_event.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        orchestrator = get_default_orchestrator()
    except BusinessError as e:
        logger.error("orchestrator", extra={"extra": {"code": e.code, "error": e.message}})
        return 1

    try:
        bot = TelegramBot(orchestrator)
    except BusinessError as e:
        logger.error("bot start", extra={"extra": {"error": e.message}})
        orchestrator.close()
        return 1

    try:
        bot.run(stop_event)
    except BusinessError as e:
        logger.error("bot start", extra={"extra": {"error": e.message}})
        return 1
    finally:
        # 正在处理的消息跑完后再关闭会话缓存
        bot.stop()
        orchestrator.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
