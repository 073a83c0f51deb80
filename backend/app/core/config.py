"""
应用配置模块

使用 Pydantic Settings 管理所有环境变量和配置。
配置从项目根目录的 .env 文件读取，支持类型验证和默认值。

关键概念：
- BaseSettings: Pydantic 的配置基类，自动从环境变量读取
- computed_field: 计算字段，根据其他字段动态生成
- model_validator: 模型验证器，用于自定义验证逻辑

Apple 相关的配置只在启动时读取一次，之后转换成不可变的 AppStoreConfig
（见 app/storekit/config.py）注入到业务对象中，业务代码不直接读取环境变量。
"""
import secrets  # 用于生成安全的随机字符串
import warnings  # 用于发出警告
from typing import Annotated, Any, Literal  # 类型注解工具

from pydantic import (
    AnyUrl,  # URL 类型验证
    BeforeValidator,  # 字段验证前的转换器
    HttpUrl,  # HTTP URL 类型验证
    PostgresDsn,  # PostgreSQL 连接字符串验证
    SecretStr,  # 敏感字符串，repr 时不泄露内容
    computed_field,  # 计算字段装饰器
    model_validator,  # 模型验证器装饰器
)
from pydantic_settings import BaseSettings, SettingsConfigDict  # 配置管理
from typing_extensions import Self  # 用于类型注解中引用自身类型


def parse_cors(v: Any) -> list[str] | str:
    """
    解析 CORS 配置值

    支持两种格式：
    1. 逗号分隔的字符串："http://localhost:3000,http://localhost:3001"
    2. 列表格式：["http://localhost:3000", "http://localhost:3001"]

    Args:
        v: 输入的配置值（字符串或列表）

    Returns:
        解析后的列表或字符串

    Raises:
        ValueError: 当输入格式不正确时
    """
    if isinstance(v, str) and not v.startswith("["):
        # 如果是字符串且不是列表格式，按逗号分割
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    """
    应用配置类

    继承自 BaseSettings，自动从环境变量和 .env 文件读取配置。
    所有配置项都有类型验证和默认值。

    配置来源优先级：
    1. 环境变量（最高优先级）
    2. .env 文件
    3. 代码中的默认值（最低优先级）
    """
    model_config = SettingsConfigDict(
        # 使用项目根目录的 .env 文件（backend/ 目录的上一级）
        env_file="../.env",
        env_ignore_empty=True,  # 忽略空的环境变量
        extra="ignore",  # 忽略未定义的额外字段
    )
    API_V1_STR: str = "/api/v1"  # API 版本前缀
    SECRET_KEY: str = secrets.token_urlsafe(32)  # 用户 JWT 验签密钥（默认随机生成）
    AUTH_JWT_AUDIENCE: str = "authenticated"  # 用户 JWT 的 aud
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    # Literal: 限制只能取这几个值之一

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []
    # Annotated: 类型注解，BeforeValidator 在验证前先调用 parse_cors 函数转换格式

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        """
        计算字段：获取所有 CORS 允许的源（去除尾部斜杠）

        Returns:
            CORS 允许的源列表（字符串格式）
        """
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    PROJECT_NAME: str = "iap-verify"
    SENTRY_DSN: HttpUrl | None = None

    # 错误响应中是否附带原始异常信息（仅用于排查问题，生产环境保持关闭）
    DEBUG_ERRORS: bool = False

    # 日志
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # Apple App Store Server API 配置
    APPLE_ISSUER_ID: str | None = None  # App Store Connect Issuer ID
    APPLE_KEY_ID: str | None = None  # In-App Purchase Key ID
    APPLE_PRIVATE_KEY: SecretStr | None = None  # .p8 私钥（PEM 格式）
    APPLE_BUNDLE_ID: str | None = None  # 写入 JWT 的 bid（可选）
    APPLE_SANDBOX: bool = False  # 只请求 sandbox 环境（TestFlight 构建）
    APPLE_API_TIMEOUT_SECONDS: float = 10.0  # 单次请求超时
    IAP_VERIFY_DEADLINE_SECONDS: float = 25.0  # 整个 Apple 阶段的截止时间
    IAP_DEV_MODE: bool = False  # 跳过 Apple 校验（仅本地）
    IAP_FALLBACK_PLAN_CODE: str = "premium_monthly"  # product_id 未配置时按 code 匹配
    IAP_PREMIUM_PRODUCT_ID: str | None = None  # 种子数据中默认套餐的 App Store 商品 ID

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        """
        检查敏感配置是否使用了默认值

        如果配置项使用了默认值 "changethis"，在本地环境会发出警告，
        在生产环境会抛出错误，强制修改。

        Args:
            var_name: 配置项名称
            value: 配置项的值

        Raises:
            ValueError: 在生产环境使用默认值时
        """
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                # 本地环境只警告，不阻止运行
                warnings.warn(message, stacklevel=1)
            else:
                # 生产环境直接报错，强制修改
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        """
        模型验证器：确保敏感配置不使用默认值

        同时检查 IAP_DEV_MODE 只能在本地环境开启。

        Returns:
            self: 返回配置实例本身
        """
        self._check_default_secret("SECRET_KEY", self.SECRET_KEY)
        self._check_default_secret("POSTGRES_PASSWORD", self.POSTGRES_PASSWORD)
        if self.IAP_DEV_MODE and self.ENVIRONMENT != "local":
            raise ValueError("IAP_DEV_MODE can only be enabled in the local environment")

        return self


# 创建全局配置实例，整个应用共享
settings = Settings()  # type: ignore
