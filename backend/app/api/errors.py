"""
自定义异常模块

定义应用特定的异常类，用于统一的错误处理。
所有业务异常都继承自 AppError，在 main.py 中有统一的异常处理器。

错误分类（error 字段是稳定的字符串，客户端按它分支）：
- ConfigurationError: 服务端缺少密钥等配置，500，不重试
- CryptoError: 私钥或签名数据格式错误，500
- AuthError: 用户 token 无效（401），或 Apple 拒绝我们的凭证
- ForbiddenError: 资格检查未通过，403
- ValidationError: 请求参数错误，400
- NotFoundError: 套餐或交易不存在，404
- UpstreamError: Apple 请求失败或超时，500，调用方可退避重试
- MalformedResponseError: Apple 返回的数据无法解码，500，需要告警
"""
from __future__ import annotations


class AppError(Exception):
    """
    应用自定义异常类

    用于业务逻辑中的错误处理，包含：
    - code: 业务错误码（整数，沿用原有的 HTTP 状态码 * 1000 + 序号 规则）
    - error: 稳定的错误标识字符串（如 "SUBSCRIPTION_NOT_ELIGIBLE"）
    - message: 错误消息
    - status_code: HTTP 状态码（400, 404, 500 等）

    使用示例：
        raise AppError(code=404001, error="PLAN_NOT_FOUND", message="Plan not found", status_code=404)
    """

    def __init__(
        self,
        *,
        code: int,
        message: str,
        status_code: int = 400,
        error: str | None = None,
    ) -> None:
        """
        初始化异常

        Args:
            code: 业务错误码
            message: 错误消息
            status_code: HTTP 状态码（默认 400）
            error: 错误标识字符串（默认 "ERROR"）
        """
        super().__init__(message)  # 调用父类构造函数
        self.code = code
        self.error = error or "ERROR"
        self.message = message
        self.status_code = status_code


class ConfigurationError(AppError):
    def __init__(self, message: str = "Server not configured", *, error: str = "SERVER_NOT_CONFIGURED") -> None:
        super().__init__(code=500001, error=error, message=message, status_code=500)


class CryptoError(AppError):
    def __init__(self, message: str = "Invalid key material", *, error: str = "CRYPTO_ERROR") -> None:
        super().__init__(code=500002, error=error, message=message, status_code=500)


class AuthError(AppError):
    def __init__(
        self,
        message: str = "Not authenticated",
        *,
        error: str = "NOT_AUTHENTICATED",
        status_code: int = 401,
    ) -> None:
        super().__init__(code=status_code * 1000 + 1, error=error, message=message, status_code=status_code)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden", *, error: str = "FORBIDDEN") -> None:
        super().__init__(code=403001, error=error, message=message, status_code=403)


class ValidationError(AppError):
    def __init__(self, message: str = "Invalid request", *, error: str = "INVALID_REQUEST") -> None:
        super().__init__(code=400001, error=error, message=message, status_code=400)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found", *, error: str = "NOT_FOUND") -> None:
        super().__init__(code=404001, error=error, message=message, status_code=404)


class UpstreamError(AppError):
    """
    Apple 接口失败

    attempts 记录每次请求的 (环境, HTTP 状态, 截断后的响应体)，
    只在 DEBUG_ERRORS 打开时返回给客户端。
    """

    def __init__(
        self,
        message: str = "Upstream request failed",
        *,
        error: str = "UPSTREAM_ERROR",
        attempts: list[tuple[str, int | None, str]] | None = None,
    ) -> None:
        super().__init__(code=500003, error=error, message=message, status_code=500)
        self.attempts = attempts or []


class MalformedResponseError(AppError):
    def __init__(self, message: str = "Malformed upstream payload", *, error: str = "MALFORMED_RESPONSE") -> None:
        super().__init__(code=500004, error=error, message=message, status_code=500)


def subscription_not_eligible() -> ForbiddenError:
    """
    创建"无订阅资格"异常（便捷函数）

    使用示例：
        if not gate.is_eligible(user_id):
            raise subscription_not_eligible()
    """
    return ForbiddenError("Subscription not eligible", error="SUBSCRIPTION_NOT_ELIGIBLE")
