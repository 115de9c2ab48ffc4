"""统一业务异常模型。

所有跨模块抛出的错误都继承自 BusinessError，便于 Orchestrator / 前端统一捕获，
并把错误转换为用户可读的回复。

错误分层：
- 协商阶段：AuthenticationFailed / ProtocolError / NetworkError。
- 连接阶段：ConnectError / WriteError，对单轮对话是致命的。
- 读取阶段：EndOfStream（内部重连恢复）/ ReadError / ServiceTurnError，
  最终都会被转成回答文本，不会抛给调用方。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "AUTHENTICATION_FAILED"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 user_id、原始响应体等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如 DNS 失败、连接超时等。"""


class ApiError(BusinessError):
    """第三方 HTTP API 返回错误时抛出。"""


class ValidationError(BusinessError):
    """参数、配置或会话状态校验失败。"""


class AuthenticationFailed(BusinessError):
    """Cookie 无效或被服务端拒绝。"""

    def __init__(self, message: str = "authentication failed", **extra):
        super().__init__(code="AUTHENTICATION_FAILED", message=message, http_status=401, **extra)


class ProtocolError(BusinessError):
    """协商响应格式不符合预期，raw 中保留原始响应体便于排查。"""

    def __init__(self, message: str, raw: str = "", **extra):
        super().__init__(code="PROTOCOL_ERROR", message=message, http_status=502, raw=raw, **extra)


class ConnectError(BusinessError):
    """建立 WebSocket 连接或握手失败。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="CONNECT_ERROR", message=message, http_status=502, **extra)


class WriteError(BusinessError):
    """向连接写入问题帧失败。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="WRITE_ERROR", message=message, http_status=502, **extra)


class EndOfStream(BusinessError):
    """服务端正常关闭了流，读取方应重连后继续。"""

    def __init__(self, message: str = "end of stream", **extra):
        super().__init__(code="END_OF_STREAM", message=message, http_status=502, **extra)


class ReadError(BusinessError):
    """除流结束以外的读取错误。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="READ_ERROR", message=message, http_status=502, **extra)


class ServiceTurnError(BusinessError):
    """终止帧报告了非 success 状态，message 为服务端原文。"""

    def __init__(self, message: str, status: str = "", **extra):
        super().__init__(code="SERVICE_TURN_ERROR", message=message, http_status=502, status=status, **extra)
