"""分隔符帧编解码。

线上每条逻辑消息都是 UTF-8 JSON + 一个 0x1E 字节，一次读取可能拿到多帧拼接在一起，
也可能出现连续或结尾的分隔符，解码时需要重新切分并丢弃空段。
"""

import json
from typing import Any, Dict, List, Union

from sydney_core.infrastructure.logging.logger import logger

DELIMITER = b"\x1e"


class FrameCodec:
    """无状态的帧编解码器，整个会话内复用同一个实例即可。"""

    delimiter = DELIMITER

    def encode(self, message: Dict[str, Any]) -> bytes:
        data = json.dumps(message, ensure_ascii=False, separators=(",", ":"))
        return data.encode("utf-8") + self.delimiter

    def split(self, buffer: Union[bytes, str]) -> List[bytes]:
        if isinstance(buffer, str):
            buffer = buffer.encode("utf-8")
        return [segment for segment in buffer.split(self.delimiter) if segment]

    def decode(self, buffer: Union[bytes, str]) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        for segment in self.split(buffer):
            try:
                message = json.loads(segment)
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.debug("skip malformed frame", extra={"extra": {"size": len(segment)}})
                continue
            if isinstance(message, dict):
                messages.append(message)
        return messages
