"""消息前端适配器。"""

from sydney_core.frontends.telegram import TelegramBot

__all__ = ["TelegramBot"]
