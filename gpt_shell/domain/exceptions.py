"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
CLI 层统一捕获并打印 ``error: <message>``。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "TRANSPORT_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、status 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""

    def __init__(self, message: str):
        super().__init__(code="NETWORK_ERROR", message=message, http_status=503)


class TransportError(BusinessError):
    """Provider 返回非 2xx 状态码。status/body 原样保留。"""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(
            code="TRANSPORT_ERROR",
            message=f"API request failed with status {status}: {body}",
            http_status=status,
        )


class DecodeError(BusinessError):
    """必须解析的响应（如非流式模式）无法解析或缺少内容。"""

    def __init__(self, raw: str, reason: str = "failed to extract content from response"):
        self.raw = raw
        super().__init__(code="DECODE_ERROR", message=f"{reason}: {raw[:200]}", http_status=502)


class VendorError(BusinessError):
    """API 在响应体中显式返回了错误字段。"""

    def __init__(self, message: str):
        super().__init__(code="VENDOR_ERROR", message=f"API Error: {message}", http_status=502)


class CancelledPartial(BusinessError):
    """用户中断。accumulated_text 为中断前已收到的文本。"""

    def __init__(self, accumulated_text: str = ""):
        self.accumulated_text = accumulated_text
        super().__init__(code="CANCELLED", message="cancelled", http_status=499)


class InvalidReplyFormat(BusinessError):
    """agent 模式下模型始终没有给出可解析的 JSON 对象。"""

    def __init__(self, raw: str, reason: str = "invalid JSON reply"):
        self.raw = raw
        super().__init__(code="INVALID_REPLY_FORMAT", message=f"{reason}: {raw[:200]}")


class ExecutionFailure(BusinessError):
    """agent 命令执行失败（可恢复，会反馈给模型重试）。"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(code="EXECUTION_FAILED", message=reason)


class AgentTurnLimitExceeded(BusinessError):
    """agent 循环超过最大轮数。"""

    def __init__(self, max_turns: int, last_reply: Optional[str] = None):
        self.max_turns = max_turns
        self.last_reply = last_reply
        super().__init__(
            code="AGENT_TURN_LIMIT",
            message=f"agent stopped after {max_turns} model calls without finishing",
        )


class ValidationError(BusinessError):
    """参数或配置校验失败。"""

    def __init__(self, message: str):
        super().__init__(code="VALIDATION_ERROR", message=message)


class NotFoundError(BusinessError):
    """模型 / 机器人 / 别名 / agent 不存在。"""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(code="NOT_FOUND", message=f"{kind} not found: {name}", http_status=404)
