"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在服务层统一捕获并转换为助手消息或日志。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、slot 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回错误状态，或响应缺少预期结构时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误。本系统不做自动重试。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class PersistenceError(BusinessError):
    """持久化存储槽相关错误的基类。"""


class StorageQuotaError(PersistenceError):
    """写入内容超出存储槽配额，可通过淘汰最旧记录后重试恢复。"""


class StorageReadError(PersistenceError):
    """读取存储槽失败。"""


class StorageWriteError(PersistenceError):
    """写入存储槽失败（非配额原因）。"""
