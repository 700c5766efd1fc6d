"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层统一映射为 HTTP 响应，或在后台任务边界统一记录日志。

错误分为两类：
- 同步失败（AuthenticationError / ProtocolError）：直接让当前请求失败。
- 后台失败（StreamFramingError / ApiError / NetworkError）：只终止当前
  talk 任务，由任务边界记录日志，不会影响服务进程。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "INVALID_SIGNATURE"）。
        message: 可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 interaction_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class AuthenticationError(BusinessError):
    """入站请求签名缺失或校验失败。"""

    def __init__(self, code: str = "INVALID_SIGNATURE", message: str = "invalid request signature", **extra):
        super().__init__(code=code, message=message, http_status=401, **extra)


class ProtocolError(BusinessError):
    """无法识别的 interaction 类型、命令名或命令参数。"""

    def __init__(self, code: str, message: str, **extra):
        super().__init__(code=code, message=message, http_status=500, **extra)


class StreamFramingError(BusinessError):
    """流式响应中的某一帧无法解析，说明分帧状态已经错乱。"""

    def __init__(self, code: str, message: str, **extra):
        super().__init__(code=code, message=message, http_status=502, **extra)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx 或响应体不可读时抛出。"""


class RateLimitError(ApiError):
    """上游限流错误；本项目不做重试，由调用方决定是否重新发起。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""
